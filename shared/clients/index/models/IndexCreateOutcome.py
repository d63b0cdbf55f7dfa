from enum import Enum


class IndexCreateOutcome(str, Enum):
    """Normalised answer of an index backend to a create request."""

    OK = "ok"
    ALREADY_EXISTS = "already_exists"
    UNSUPPORTED = "unsupported"

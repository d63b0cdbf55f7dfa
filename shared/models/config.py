from pydantic import BaseModel, Field

from shared.helper.HelperConfig import HelperConfig


class EnvConfig(BaseModel):
    """
    Represents a single configuration parameter required for a env setting.

    Attributes:
        env_key (str): The key/name of the environment variable to read.
        val_type (str): The expected type of the environment variable's value. Supported types are "string", "number", "bool", and "list".
        default (str | int | bool | list | None): An optional default value if the environment variable is not set. If None, the variable is required and an error will be raised if it is not set.
    """

    env_key: str
    val_type: str
    default: str | int | float | bool | list | None = None


class VectorSyncSettings(BaseModel):
    """
    Tunables of the discovery, embedding and change feed pipeline.

    Durations are seconds. Both windows are heuristics: the freshness window
    bounds redundant provider calls, the quiescence window keeps the pipeline's
    own writes from re-triggering it through the change feed.
    """

    # embedding model / index shape
    embedding_model: str = "text-embedding-3-small"
    vector_dimensions: int = 1536
    similarity_metric: str = "cosine"
    index_prefix: str = "universal_vector"

    # batch processing
    batch_size: int = Field(default=50, ge=1)
    rate_limit_delay: float = Field(default=0.1, ge=0)
    freshness_window: float = Field(default=7 * 24 * 60 * 60, ge=0)
    max_retries: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=30.0, ge=0)

    # workers
    worker_count: int = Field(default=4, ge=1)
    queue_size: int = Field(default=100, ge=1)

    # change feed
    quiescence_window: float = Field(default=60.0, ge=0)
    debounce_delay: float = Field(default=2.0, ge=0)
    reconnect_delay: float = Field(default=5.0, ge=0)
    shutdown_grace_period: float = Field(default=30.0, ge=0)
    cursor_collection: str | None = None

    # scope
    collections: list[str] | None = None

    # monitoring
    metrics_log_interval: float = Field(default=60.0, ge=0)

    @classmethod
    def from_helper_config(cls, helper_config: HelperConfig) -> "VectorSyncSettings":
        """Build the settings from environment variables, falling back to the model defaults.

        Args:
            helper_config (HelperConfig): The configuration helper to read from.

        Returns:
            VectorSyncSettings: The validated settings.

        Raises:
            ValueError: If a variable is set but cannot be parsed.
        """
        defaults = cls()
        collections = helper_config.get_list_val("VECTOR_SYNC_COLLECTIONS", default=[])
        return cls(
            embedding_model=helper_config.get_string_val("EMBED_MODEL", default=defaults.embedding_model),
            vector_dimensions=helper_config.get_number_val("EMBED_DIMENSIONS", default=defaults.vector_dimensions),
            similarity_metric=helper_config.get_string_val("VECTOR_SIMILARITY", default=defaults.similarity_metric),
            index_prefix=helper_config.get_string_val("VECTOR_INDEX_PREFIX", default=defaults.index_prefix),
            batch_size=helper_config.get_number_val("VECTOR_SYNC_BATCH_SIZE", default=defaults.batch_size),
            rate_limit_delay=helper_config.get_number_val("VECTOR_SYNC_RATE_LIMIT_DELAY", default=defaults.rate_limit_delay),
            freshness_window=helper_config.get_number_val("VECTOR_SYNC_FRESHNESS_WINDOW", default=defaults.freshness_window),
            max_retries=helper_config.get_number_val("VECTOR_SYNC_MAX_RETRIES", default=defaults.max_retries),
            retry_base_delay=helper_config.get_number_val("VECTOR_SYNC_RETRY_BASE_DELAY", default=defaults.retry_base_delay),
            retry_max_delay=helper_config.get_number_val("VECTOR_SYNC_RETRY_MAX_DELAY", default=defaults.retry_max_delay),
            worker_count=helper_config.get_number_val("VECTOR_SYNC_WORKERS", default=defaults.worker_count),
            queue_size=helper_config.get_number_val("VECTOR_SYNC_QUEUE_SIZE", default=defaults.queue_size),
            quiescence_window=helper_config.get_number_val("VECTOR_SYNC_QUIESCENCE_WINDOW", default=defaults.quiescence_window),
            debounce_delay=helper_config.get_number_val("VECTOR_SYNC_DEBOUNCE_DELAY", default=defaults.debounce_delay),
            reconnect_delay=helper_config.get_number_val("VECTOR_SYNC_RECONNECT_DELAY", default=defaults.reconnect_delay),
            shutdown_grace_period=helper_config.get_number_val("VECTOR_SYNC_SHUTDOWN_GRACE", default=defaults.shutdown_grace_period),
            cursor_collection=helper_config.get_optional_string_val("VECTOR_SYNC_CURSOR_COLLECTION"),
            collections=collections or None,
            metrics_log_interval=helper_config.get_number_val("VECTOR_SYNC_METRICS_INTERVAL", default=defaults.metrics_log_interval),
        )

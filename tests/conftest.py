"""Shared pytest fixtures for the vector sync suite."""

import logging

import pytest

from shared.helper.HelperConfig import HelperConfig
from shared.models.config import VectorSyncSettings
from shared.models.profile import DocumentTypeProfile


@pytest.fixture
def helper_config() -> HelperConfig:
    return HelperConfig(logger=logging.getLogger("vector_sync.tests"))


@pytest.fixture
def settings() -> VectorSyncSettings:
    # no waiting anywhere unless a test asks for it
    return VectorSyncSettings(
        rate_limit_delay=0,
        retry_base_delay=0,
        retry_max_delay=0,
        debounce_delay=0,
        reconnect_delay=0,
        shutdown_grace_period=1,
        metrics_log_interval=0,
        worker_count=2,
        queue_size=10,
    )


@pytest.fixture
def invoice_profile() -> DocumentTypeProfile:
    return DocumentTypeProfile(
        type_name="paintInvoice",
        source_collection="invoices",
        identifier_fields=["invoiceNumber"],
        numeric_fields=["totalAmount"],
        date_fields=["purchaseDate"],
    )

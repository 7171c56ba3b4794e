# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""Fixtures for haproxy-provider unit tests."""

import pytest

from haproxy_provider.config import ApiVersion, ProviderConfig
from haproxy_provider.transaction import TransactionCoordinator

from .helper import FakeDataplane, RecordingContext

BASE_URL = "http://haproxy.local:5555"


@pytest.fixture(scope="function", name="dataplane")
def dataplane_fixture() -> FakeDataplane:
    """In-memory Data Plane API."""
    return FakeDataplane()


@pytest.fixture(scope="function", name="ctx")
def ctx_fixture() -> RecordingContext:
    """Context recording retry delays instead of sleeping."""
    return RecordingContext()


@pytest.fixture(scope="function", name="coordinator")
def coordinator_fixture(dataplane: FakeDataplane) -> TransactionCoordinator:
    """Transaction coordinator over the in-memory Data Plane API."""
    return TransactionCoordinator(dataplane)  # type: ignore[arg-type]


@pytest.fixture(scope="function", name="config_v3")
def config_v3_fixture() -> ProviderConfig:
    """Provider configuration talking v3."""
    return ProviderConfig(url=BASE_URL, username="admin", password="adminpwd")


@pytest.fixture(scope="function", name="config_v2")
def config_v2_fixture() -> ProviderConfig:
    """Provider configuration talking v2."""
    return ProviderConfig(
        url=BASE_URL, username="admin", password="adminpwd", api_version=ApiVersion.V2
    )

# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""Unit tests for the provider configuration."""

import pytest
from pydantic import ValidationError

from haproxy_provider.config import DEFAULT_TIMEOUT, ApiVersion, ProviderConfig
from haproxy_provider.exceptions import InvalidProviderConfigError

from .conftest import BASE_URL

CREDENTIALS = {"username": "admin", "password": "adminpwd"}


def test_from_mapping_defaults():
    """
    arrange: Given a provider block with only the required attributes.
    act: Build the configuration.
    assert: The defaults are v3, TLS verification on and the default timeout.
    """
    config = ProviderConfig.from_mapping({"url": BASE_URL, **CREDENTIALS}, environ={})

    assert config.url == BASE_URL
    assert config.api_version == ApiVersion.V3
    assert config.insecure is False
    assert config.timeout == DEFAULT_TIMEOUT
    assert config.base_url == f"{BASE_URL}/v3"


def test_from_mapping_environment_fallback():
    """
    arrange: Given an empty provider block and HAPROXY_* environment variables.
    act: Build the configuration.
    assert: Every attribute is read from the environment.
    """
    environ = {
        "HAPROXY_URL": "https://lb.internal:5555/",
        "HAPROXY_USERNAME": "ops",
        "HAPROXY_PASSWORD": "s3cret",
        "HAPROXY_INSECURE": "True",
        "HAPROXY_API_VERSION": "v2",
        "HAPROXY_TIMEOUT": "10",
    }

    config = ProviderConfig.from_mapping({}, environ=environ)

    assert config.url == "https://lb.internal:5555"
    assert config.username == "ops"
    assert config.password == "s3cret"
    assert config.insecure is True
    assert config.api_version == ApiVersion.V2
    assert config.timeout == 10
    assert config.base_url == "https://lb.internal:5555/v2"


def test_from_mapping_block_wins_over_environment():
    """
    arrange: Given attributes set both in the provider block and the environment.
    act: Build the configuration.
    assert: The provider block values are used.
    """
    environ = {"HAPROXY_URL": "http://other:5555", "HAPROXY_INSECURE": "yes"}

    config = ProviderConfig.from_mapping(
        {"url": BASE_URL, "insecure": False, **CREDENTIALS}, environ=environ
    )

    assert config.url == BASE_URL
    assert config.insecure is False


@pytest.mark.parametrize("value", ["0", "false", "no", ""])
def test_from_mapping_insecure_false_values(value: str):
    """
    arrange: Given HAPROXY_INSECURE set to a false value.
    act: Build the configuration.
    assert: TLS verification stays on.
    """
    config = ProviderConfig.from_mapping(
        {"url": BASE_URL, **CREDENTIALS}, environ={"HAPROXY_INSECURE": value}
    )

    assert config.insecure is False


def test_from_mapping_invalid_fields():
    """
    arrange: Given a provider block with a bad URL scheme and no password.
    act: Build the configuration.
    assert: InvalidProviderConfigError names both attributes.
    """
    with pytest.raises(InvalidProviderConfigError) as exc_info:
        ProviderConfig.from_mapping(
            {"url": "ftp://haproxy.local", "username": "admin"}, environ={}
        )

    assert "url" in str(exc_info.value)
    assert "password" in str(exc_info.value)


@pytest.mark.parametrize(
    "overrides",
    [
        pytest.param({"timeout": 0}, id="zero timeout"),
        pytest.param({"api_version": "v1"}, id="unknown version"),
        pytest.param({"username": ""}, id="empty username"),
    ],
)
def test_invalid_values(overrides: dict):
    """
    arrange: Given an invalid attribute value.
    act: Build the configuration directly.
    assert: A validation error is raised.
    """
    with pytest.raises(ValidationError):
        ProviderConfig(**{"url": BASE_URL, **CREDENTIALS, **overrides})


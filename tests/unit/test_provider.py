# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""Unit tests for the provider entry point."""

import pytest
import responses

from haproxy_provider import HAProxyProvider
from haproxy_provider.config import ApiVersion
from haproxy_provider.exceptions import InvalidProviderConfigError
from haproxy_provider.resources import Severity

from .conftest import BASE_URL

PROVIDER_BLOCK = {"url": BASE_URL, "username": "admin", "password": "adminpwd"}


def test_configure():
    """
    arrange: Given a valid provider block.
    act: Configure the provider.
    assert: No diagnostic is returned and the shared client is built.
    """
    provider = HAProxyProvider()

    diagnostics = provider.configure({**PROVIDER_BLOCK, "api_version": "v2"}, environ={})

    assert diagnostics == []
    assert provider.config is not None
    assert provider.client is not None
    assert provider.client.api_version == ApiVersion.V2
    assert provider.coordinator is not None
    assert provider.coordinator.client is provider.client


def test_configure_invalid():
    """
    arrange: Given a provider block without credentials.
    act: Configure the provider.
    assert: An error diagnostic names the invalid attributes and the provider stays unconfigured.
    """
    provider = HAProxyProvider()

    diagnostics = provider.configure({"url": BASE_URL}, environ={})

    assert len(diagnostics) == 1
    assert diagnostics[0].severity == Severity.ERROR
    assert "username" in diagnostics[0].detail
    assert "password" in diagnostics[0].detail
    assert provider.client is None


def test_unconfigured_provider():
    """
    arrange: Given a provider that was never configured.
    act: Ask for its resources and data sources.
    assert: InvalidProviderConfigError is raised.
    """
    provider = HAProxyProvider()

    with pytest.raises(InvalidProviderConfigError):
        provider.resources()
    with pytest.raises(InvalidProviderConfigError):
        provider.data_sources()


def test_registries():
    """
    arrange: Given a configured provider.
    act: List its resources and data sources.
    assert: Every entity kind is exposed under its type name.
    """
    provider = HAProxyProvider()
    provider.configure(PROVIDER_BLOCK, environ={})

    resources = provider.resources()
    data_sources = provider.data_sources()

    assert {
        "haproxy_backend",
        "haproxy_frontend",
        "haproxy_resolver",
        "haproxy_peers",
        "haproxy_stick_table",
        "haproxy_server",
        "haproxy_bind",
        "haproxy_nameserver",
        "haproxy_peer_entry",
        "haproxy_acls",
        "haproxy_http_request_rules",
        "haproxy_http_response_rules",
        "haproxy_http_checks",
        "haproxy_tcp_checks",
        "haproxy_tcp_request_rules",
        "haproxy_tcp_response_rules",
        "haproxy_stick_rules",
        "haproxy_global",
        "haproxy_stack",
    } == set(resources)
    assert {
        "haproxy_backends",
        "haproxy_servers",
        "haproxy_global",
        "haproxy_acls",
        "haproxy_backend",
        "haproxy_server",
        "haproxy_acl",
        "haproxy_tcp_request_rule",
    } <= set(data_sources)
    assert data_sources["haproxy_acl"].schema()["index"].required
    assert resources["haproxy_server"].schema()["parent_name"].required
    assert provider.schema()["password"].sensitive


@responses.activate
def test_backend_through_provider():
    """
    arrange: Given a configured provider and a v3 Data Plane API.
    act: Create a backend through the haproxy_backend resource.
    assert: The backend is created in a committed transaction.
    """
    api = f"{BASE_URL}/v3/services/haproxy"
    responses.add(responses.GET, f"{api}/configuration/version", json=5)
    responses.add(responses.POST, f"{api}/transactions", json={"id": "txn-1"}, status=201)
    responses.add(
        responses.POST, f"{api}/configuration/backends", json={"name": "web"}, status=202
    )
    responses.add(responses.PUT, f"{api}/transactions/txn-1", json={"id": "txn-1"}, status=202)
    provider = HAProxyProvider()
    provider.configure(PROVIDER_BLOCK, environ={})

    response = provider.resources()["haproxy_backend"].create({"name": "web", "mode": "http"})

    assert not response.diagnostics
    assert response.state == {"id": "web", "name": "web", "mode": "http"}
    assert [(call.request.method, call.request.path_url) for call in responses.calls] == [
        ("GET", "/v3/services/haproxy/configuration/version"),
        ("POST", "/v3/services/haproxy/transactions?version=5"),
        ("POST", "/v3/services/haproxy/configuration/backends?transaction_id=txn-1"),
        ("PUT", "/v3/services/haproxy/transactions/txn-1"),
    ]

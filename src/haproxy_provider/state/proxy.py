# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""Proxy section payloads: frontends, backends, servers and binds."""

from enum import StrEnum
from typing import Optional

from pydantic import Field

from .base import PayloadModel


class ProxyMode(StrEnum):
    """StrEnum of proxy modes.

    Attrs:
        HTTP: http.
        TCP: tcp.
    """

    HTTP = "http"
    TCP = "tcp"


class Balance(PayloadModel):
    """Load balancing settings of a backend.

    Attrs:
        algorithm: Load balancing algorithm (roundrobin, leastconn, source...).
        hdr_name: Header used by the hdr algorithm.
        url_param: URL parameter used by the url_param algorithm.
    """

    algorithm: str
    hdr_name: Optional[str] = None
    url_param: Optional[str] = None


class Forwardfor(PayloadModel):
    """option forwardfor settings.

    Attrs:
        enabled: enabled or disabled.
        header: Custom header name.
        ifnone: Only add the header if it is missing.
    """

    enabled: str = "enabled"
    header: Optional[str] = None
    ifnone: Optional[bool] = None


class HttpchkParams(PayloadModel):
    """option httpchk settings.

    Attrs:
        method: HTTP method of the check.
        uri: URI of the check.
        version: HTTP version of the check.
    """

    method: Optional[str] = None
    uri: Optional[str] = None
    version: Optional[str] = None


class Backend(PayloadModel):
    """A backend section.

    Attrs:
        name: Backend name.
        mode: Proxy mode.
        balance: Load balancing settings.
        adv_check: Advanced health check (httpchk, tcp-check...).
        httpchk_params: option httpchk settings.
        forwardfor: option forwardfor settings.
        http_connection_mode: HTTP connection mode.
        server_timeout: timeout server in milliseconds.
        check_timeout: timeout check in milliseconds.
        connect_timeout: timeout connect in milliseconds.
        queue_timeout: timeout queue in milliseconds.
        tunnel_timeout: timeout tunnel in milliseconds.
        retries: Number of connection retries.
        stick_table: Stick table declared in this backend.
    """

    name: str = Field(min_length=1)
    mode: Optional[ProxyMode] = None
    balance: Optional[Balance] = None
    adv_check: Optional[str] = None
    httpchk_params: Optional[HttpchkParams] = None
    forwardfor: Optional[Forwardfor] = None
    http_connection_mode: Optional[str] = None
    server_timeout: Optional[int] = None
    check_timeout: Optional[int] = None
    connect_timeout: Optional[int] = None
    queue_timeout: Optional[int] = None
    tunnel_timeout: Optional[int] = None
    retries: Optional[int] = None
    stick_table: Optional[dict] = None


class Frontend(PayloadModel):
    """A frontend section.

    Attrs:
        name: Frontend name.
        mode: Proxy mode.
        default_backend: Backend receiving unmatched traffic.
        maxconn: Maximum concurrent connections.
        backlog: Listen backlog.
        http_connection_mode: HTTP connection mode.
        httplog: Enable option httplog.
        tcplog: Enable option tcplog.
        log_format: Custom log format.
        client_timeout: timeout client in milliseconds.
        http_request_timeout: timeout http-request in milliseconds.
        http_keep_alive_timeout: timeout http-keep-alive in milliseconds.
    """

    name: str = Field(min_length=1)
    mode: Optional[ProxyMode] = None
    default_backend: Optional[str] = None
    maxconn: Optional[int] = None
    backlog: Optional[int] = None
    http_connection_mode: Optional[str] = None
    httplog: Optional[bool] = None
    tcplog: Optional[bool] = None
    log_format: Optional[str] = None
    client_timeout: Optional[int] = None
    http_request_timeout: Optional[int] = None
    http_keep_alive_timeout: Optional[int] = None


class Server(PayloadModel):
    """A server line of a backend.

    Attrs:
        name: Server name.
        address: Server address.
        port: Server port.
        check: Enable health checks (enabled/disabled).
        backup: Mark as backup server (enabled/disabled).
        maintenance: Put the server in maintenance (enabled/disabled).
        weight: Load balancing weight.
        maxconn: Maximum concurrent connections.
        inter: Health check interval in milliseconds.
        rise: Successful checks before the server is up.
        fall: Failed checks before the server is down.
        ssl: Use TLS towards the server (enabled/disabled).
        verify: TLS verification mode (none/required).
        sni: SNI expression.
        init_addr: init-addr resolution order.
        resolvers: Resolvers section used for runtime resolution.
    """

    name: str = Field(min_length=1)
    address: str = Field(min_length=1)
    port: Optional[int] = Field(default=None, gt=0, le=65535)
    check: Optional[str] = None
    backup: Optional[str] = None
    maintenance: Optional[str] = None
    weight: Optional[int] = None
    maxconn: Optional[int] = None
    inter: Optional[int] = None
    rise: Optional[int] = None
    fall: Optional[int] = None
    ssl: Optional[str] = None
    verify: Optional[str] = None
    sni: Optional[str] = None
    init_addr: Optional[str] = Field(default=None, alias="init-addr")
    resolvers: Optional[str] = None


class Bind(PayloadModel):
    """A bind line of a frontend.

    Attrs:
        name: Bind name.
        address: Listen address.
        port: Listen port.
        port_range_end: Last port of a port range.
        ssl: Terminate TLS on this bind.
        ssl_certificate: Certificate path.
        ssl_min_ver: Minimum TLS version.
        alpn: ALPN protocols.
        accept_proxy: Expect the PROXY protocol.
        transparent: Transparent bind.
        maxconn: Maximum concurrent connections.
        v4v6: Accept both IPv4 and IPv6.
    """

    name: str = Field(min_length=1)
    address: Optional[str] = None
    port: Optional[int] = Field(default=None, gt=0, le=65535)
    port_range_end: Optional[int] = Field(default=None, alias="port-range-end")
    ssl: Optional[bool] = None
    ssl_certificate: Optional[str] = None
    ssl_min_ver: Optional[str] = None
    alpn: Optional[str] = None
    accept_proxy: Optional[bool] = None
    transparent: Optional[bool] = None
    maxconn: Optional[int] = None
    v4v6: Optional[bool] = None

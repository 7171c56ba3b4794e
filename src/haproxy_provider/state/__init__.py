# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""Payload models of the Data Plane API entities."""

from .base import IndexedPayloadModel, PayloadModel
from .proxy import Backend, Balance, Bind, Forwardfor, Frontend, HttpchkParams, ProxyMode, Server
from .rules import (
    Acl,
    HttpCheck,
    HttpRequestRule,
    HttpResponseRule,
    StickRule,
    TcpCheck,
    TcpRequestRule,
    TcpResponseRule,
)
from .sections import Global, Nameserver, PeerEntry, Peers, Resolver, StickTable

__all__ = [
    "Acl",
    "Backend",
    "Balance",
    "Bind",
    "Forwardfor",
    "Frontend",
    "Global",
    "HttpCheck",
    "HttpRequestRule",
    "HttpResponseRule",
    "HttpchkParams",
    "IndexedPayloadModel",
    "Nameserver",
    "PayloadModel",
    "PeerEntry",
    "Peers",
    "ProxyMode",
    "Resolver",
    "Server",
    "StickRule",
    "StickTable",
    "TcpCheck",
    "TcpRequestRule",
    "TcpResponseRule",
]

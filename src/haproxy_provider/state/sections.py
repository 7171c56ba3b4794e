# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""Auxiliary sections: global, resolvers, peers and stick tables."""

from typing import Optional

from pydantic import Field

from .base import PayloadModel


class Global(PayloadModel):
    """The global section.

    Attrs:
        maxconn: Process-wide maximum concurrent connections.
        daemon: Run in background (enabled/disabled).
        nbthread: Number of threads.
        stats_timeout: Stats socket timeout in milliseconds.
        tune_ssl_default_dh_param: Default DH parameter size.
        ssl_default_bind_ciphers: Default bind ciphers.
        ssl_default_bind_options: Default bind options.
        ssl_default_server_ciphers: Default server ciphers.
        ssl_default_server_options: Default server options.
    """

    maxconn: Optional[int] = Field(default=None, gt=0)
    daemon: Optional[str] = None
    nbthread: Optional[int] = None
    stats_timeout: Optional[int] = None
    tune_ssl_default_dh_param: Optional[int] = None
    ssl_default_bind_ciphers: Optional[str] = None
    ssl_default_bind_options: Optional[str] = None
    ssl_default_server_ciphers: Optional[str] = None
    ssl_default_server_options: Optional[str] = None


class Resolver(PayloadModel):
    """A resolvers section.

    Attrs:
        name: Section name.
        accepted_payload_size: Maximum DNS payload size.
        hold_nx: hold nx in milliseconds.
        hold_valid: hold valid in milliseconds.
        hold_other: hold other in milliseconds.
        resolve_retries: Number of resolution retries.
        timeout_resolve: timeout resolve in milliseconds.
        timeout_retry: timeout retry in milliseconds.
    """

    name: str = Field(min_length=1)
    accepted_payload_size: Optional[int] = None
    hold_nx: Optional[int] = None
    hold_valid: Optional[int] = None
    hold_other: Optional[int] = None
    resolve_retries: Optional[int] = None
    timeout_resolve: Optional[int] = None
    timeout_retry: Optional[int] = None


class Nameserver(PayloadModel):
    """A nameserver of a resolvers section.

    Attrs:
        name: Nameserver name.
        address: Nameserver address.
        port: Nameserver port.
    """

    name: str = Field(min_length=1)
    address: str = Field(min_length=1)
    port: Optional[int] = Field(default=None, gt=0, le=65535)


class Peers(PayloadModel):
    """A peers section.

    Attrs:
        name: Section name.
    """

    name: str = Field(min_length=1)


class PeerEntry(PayloadModel):
    """A peer of a peers section.

    Attrs:
        name: Peer name, must match the local peer name on one node.
        address: Peer address.
        port: Peer port.
    """

    name: str = Field(min_length=1)
    address: str = Field(min_length=1)
    port: int = Field(gt=0, le=65535)


class StickTable(PayloadModel):
    """A stick table, declared through a dedicated backend.

    Attrs:
        name: Backend holding the table.
        type: Key type (ip, ipv6, integer, string, binary).
        size: Maximum number of entries.
        expire: Entry expiration delay in milliseconds.
        store: Comma separated data types stored.
        peers: Peers section used for replication.
        nopurge: Disable purging of the oldest entries.
    """

    name: str = Field(min_length=1)
    type: Optional[str] = None
    size: Optional[str] = None
    expire: Optional[int] = None
    store: Optional[str] = None
    peers: Optional[str] = None
    nopurge: Optional[bool] = None

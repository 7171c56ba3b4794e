# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""Provider entry point: configuration and registry of resources and data sources."""

import logging
import typing

import requests

from .config import ProviderConfig
from .dataplane import DataplaneClient
from .exceptions import InvalidProviderConfigError
from .kinds import (
    ACL,
    BACKEND,
    BIND,
    FRONTEND,
    HTTP_CHECK,
    HTTP_REQUEST_RULE,
    HTTP_RESPONSE_RULE,
    KINDS,
    NAMESERVER,
    PEER_ENTRY,
    PEERS,
    RESOLVER,
    SERVER,
    STICK_TABLE,
    TCP_CHECK,
    TCP_REQUEST_RULE,
    TCP_RESPONSE_RULE,
)
from .resources import (
    Attribute,
    ChildResource,
    DataSource,
    Diagnostic,
    GetDataSource,
    GlobalResource,
    ListDataSource,
    NamedResource,
    OrderedCollectionResource,
    Resource,
    Severity,
    StackResource,
)
from .transaction import TransactionCoordinator

logger = logging.getLogger(__name__)

NAMED_KINDS = (BACKEND, FRONTEND, RESOLVER, PEERS, STICK_TABLE)
CHILD_KINDS = (SERVER, BIND, NAMESERVER, PEER_ENTRY)
LOOKUP_KINDS = (
    BACKEND,
    FRONTEND,
    SERVER,
    BIND,
    ACL,
    HTTP_CHECK,
    HTTP_REQUEST_RULE,
    HTTP_RESPONSE_RULE,
    TCP_CHECK,
    TCP_REQUEST_RULE,
    TCP_RESPONSE_RULE,
)


class HAProxyProvider:
    """Provider for the HAProxy Data Plane API.

    Attrs:
        type_name: Provider name, prefix of every resource type.
        config: Configuration, set by configure.
        client: Data Plane API client shared by every handler.
        coordinator: Transaction coordinator shared by every handler.
    """

    type_name = "haproxy"

    def __init__(self, session: typing.Optional[requests.Session] = None):
        """Initialize an unconfigured provider.

        Args:
            session: HTTP session handed to the client, a new one is created if omitted.
        """
        self._session = session
        self.config: typing.Optional[ProviderConfig] = None
        self.client: typing.Optional[DataplaneClient] = None
        self.coordinator: typing.Optional[TransactionCoordinator] = None

    def schema(self) -> dict[str, Attribute]:
        """Describe the provider block.

        Returns:
            dict: Attributes keyed by name.
        """
        return {
            "url": Attribute(type="string"),
            "username": Attribute(type="string"),
            "password": Attribute(type="string", sensitive=True),
            "insecure": Attribute(type="bool"),
            "api_version": Attribute(type="string"),
            "timeout": Attribute(type="number"),
        }

    def configure(
        self,
        raw: typing.Mapping[str, typing.Any],
        environ: typing.Optional[typing.Mapping[str, str]] = None,
    ) -> list[Diagnostic]:
        """Validate the provider block and build the shared client.

        Args:
            raw: Values of the provider block.
            environ: Environment for fallbacks, defaults to os.environ.

        Returns:
            list: Error diagnostics, empty on success.
        """
        try:
            config = ProviderConfig.from_mapping(raw, environ)
        except InvalidProviderConfigError as exc:
            return [
                Diagnostic(
                    severity=Severity.ERROR,
                    summary="Invalid provider configuration",
                    detail=str(exc),
                )
            ]
        self.config = config
        self.client = DataplaneClient(config, self._session)
        self.coordinator = TransactionCoordinator(self.client)
        logger.info("Configured provider for %s (%s)", config.url, config.api_version)
        return []

    def _configured(self) -> tuple[DataplaneClient, TransactionCoordinator]:
        """Get the shared client and coordinator.

        Raises:
            InvalidProviderConfigError: When configure did not succeed yet.

        Returns:
            tuple: The client and the coordinator.
        """
        if self.client is None or self.coordinator is None:
            raise InvalidProviderConfigError("provider is not configured")
        return self.client, self.coordinator

    def resources(self) -> dict[str, Resource]:
        """Build the resource handlers.

        Returns:
            dict: Handlers keyed by resource type name.
        """
        client, coordinator = self._configured()
        handlers: list[Resource] = []
        handlers.extend(NamedResource(kind, client, coordinator) for kind in NAMED_KINDS)
        handlers.extend(ChildResource(kind, client, coordinator) for kind in CHILD_KINDS)
        handlers.extend(
            OrderedCollectionResource(kind, client, coordinator)
            for kind in KINDS.values()
            if kind.indexed
        )
        handlers.append(GlobalResource(client, coordinator))
        handlers.append(StackResource(client, coordinator))
        return {handler.type_name: handler for handler in handlers}

    def data_sources(self) -> dict[str, DataSource]:
        """Build the data source handlers.

        Every entity kind gets a listing; the kinds in LOOKUP_KINDS also get a
        lookup of a single entity by name or index.

        Returns:
            dict: Handlers keyed by data source type name.
        """
        client, _ = self._configured()
        sources: list[DataSource] = [ListDataSource(kind, client) for kind in KINDS.values()]
        sources.extend(GetDataSource(kind, client) for kind in LOOKUP_KINDS)
        return {source.type_name: source for source in sources}

# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""Registry of the Data Plane API entity kinds.

A kind describes everything the generic gateway, reconciler and resource
handlers need to know about one entity type: where it lives in the API,
what it is attached to, how it is identified and which payload model
validates it.
"""

import typing
from dataclasses import dataclass
from enum import StrEnum

from .exceptions import PayloadValidationError
from .state import (
    Acl,
    Backend,
    Bind,
    Frontend,
    Global,
    HttpCheck,
    HttpRequestRule,
    HttpResponseRule,
    IndexedPayloadModel,
    Nameserver,
    PayloadModel,
    PeerEntry,
    Peers,
    Resolver,
    Server,
    StickRule,
    StickTable,
    TcpCheck,
    TcpRequestRule,
    TcpResponseRule,
)

# Collections of the parent sections in v3 nested paths.
PARENT_SECTIONS = {
    "frontend": "frontends",
    "backend": "backends",
    "resolver": "resolvers",
    "peers": "peer_section",
}


class ReconcileStrategy(StrEnum):
    """StrEnum of ordered child reconciliation strategies.

    Attrs:
        REPLACE_ALL: Delete every existing child then create the desired list in bulk.
        DIFF: Delete, create and update only the children whose content key changed.
    """

    REPLACE_ALL = "replace_all"
    DIFF = "diff"


class ParentRef(typing.NamedTuple):
    """Reference to the section owning a child entity.

    Attrs:
        parent_type: frontend, backend, resolver or peers.
        parent_name: Name of the owning section.
    """

    parent_type: str
    parent_name: str

    @property
    def section(self) -> str:
        """Get the v3 API collection of the parent section.

        Returns:
            str: Collection name, e.g. backends or peer_section.
        """
        return PARENT_SECTIONS[self.parent_type]

    def __str__(self) -> str:
        """Format the reference.

        Returns:
            str: parent_type/parent_name.
        """
        return f"{self.parent_type}/{self.parent_name}"


@dataclass(frozen=True)
class ResourceKind:
    """An entity kind of the Data Plane API.

    Attributes:
        name: Singular name, used in resource type names and messages.
        collection: Collection segment of the API path.
        model: Payload model of the entity.
        v3_collection: Collection segment of v3 paths when it differs from collection.
        parent_types: Section types the entity can be attached to, empty for top-level kinds.
        v2_parent_query: Query parameter naming the parent in v2 flat paths,
            "parent" meaning the parent_type/parent_name pair.
        indexed: Whether children are addressed by position instead of name.
        singleton: Whether the kind has exactly one instance and no key.
        key_fields: Fields forming the content key of an indexed child.
        strategy: Default reconcile strategy of an indexed child.
    """

    name: str
    collection: str
    model: type[PayloadModel]
    v3_collection: typing.Optional[str] = None
    parent_types: tuple[str, ...] = ()
    v2_parent_query: str = "parent"
    indexed: bool = False
    singleton: bool = False
    key_fields: tuple[str, ...] = ()
    strategy: typing.Optional[ReconcileStrategy] = None

    @property
    def is_child(self) -> bool:
        """Indicate if the kind lives under a parent section.

        Returns:
            bool: True for child kinds.
        """
        return bool(self.parent_types)

    def check_parent(self, parent: typing.Optional[ParentRef]) -> None:
        """Validate the parent reference given for this kind.

        Args:
            parent: The parent reference, None for top-level kinds.

        Raises:
            PayloadValidationError: When the parent is missing, unexpected or of a wrong type.
        """
        if not self.is_child:
            if parent is not None:
                raise PayloadValidationError(f"{self.name} is not attached to a parent section")
            return
        if parent is None:
            raise PayloadValidationError(f"{self.name} requires a parent section")
        if parent.parent_type not in self.parent_types:
            raise PayloadValidationError(
                f"{self.name} cannot be attached to a {parent.parent_type}, "
                f"expected one of: {', '.join(self.parent_types)}"
            )
        if not parent.parent_name:
            raise PayloadValidationError(f"{self.name} requires a parent name")

    def key_of(self, payload: PayloadModel) -> typing.Union[str, int, None]:
        """Get the identity used in the API path for one entity.

        Args:
            payload: The entity payload.

        Returns:
            The index for indexed kinds, the name for named kinds, None for singletons.
        """
        if self.singleton:
            return None
        if self.indexed:
            return typing.cast(IndexedPayloadModel, payload).index
        return typing.cast(str, getattr(payload, "name"))

    def content_key(self, payload: IndexedPayloadModel) -> tuple:
        """Get the content key of an indexed child.

        The key is built from the fields identifying the child, never from its position.

        Args:
            payload: The child payload.

        Returns:
            tuple: Values of the identifying fields.
        """
        data = payload.content()
        return tuple(data.get(field) for field in self.key_fields)

    def load(self, data: typing.Mapping[str, typing.Any]) -> PayloadModel:
        """Validate a decoded payload of this kind.

        Args:
            data: The decoded JSON object.

        Returns:
            PayloadModel: The validated payload.
        """
        return self.model.load(data)


BACKEND = ResourceKind(name="backend", collection="backends", model=Backend)
FRONTEND = ResourceKind(name="frontend", collection="frontends", model=Frontend)
RESOLVER = ResourceKind(name="resolver", collection="resolvers", model=Resolver)
PEERS = ResourceKind(
    name="peers", collection="peers", v3_collection="peer_section", model=Peers
)
STICK_TABLE = ResourceKind(name="stick_table", collection="stick_tables", model=StickTable)
GLOBAL = ResourceKind(name="global", collection="global", model=Global, singleton=True)

SERVER = ResourceKind(
    name="server", collection="servers", model=Server, parent_types=("backend",)
)
BIND = ResourceKind(name="bind", collection="binds", model=Bind, parent_types=("frontend",))
NAMESERVER = ResourceKind(
    name="nameserver",
    collection="nameservers",
    model=Nameserver,
    parent_types=("resolver",),
    v2_parent_query="resolver",
)
PEER_ENTRY = ResourceKind(
    name="peer_entry",
    collection="peer_entries",
    model=PeerEntry,
    parent_types=("peers",),
    v2_parent_query="peers",
)

ACL = ResourceKind(
    name="acl",
    collection="acls",
    model=Acl,
    parent_types=("frontend", "backend"),
    indexed=True,
    key_fields=("acl_name", "criterion", "value"),
    strategy=ReconcileStrategy.REPLACE_ALL,
)
HTTP_REQUEST_RULE = ResourceKind(
    name="http_request_rule",
    collection="http_request_rules",
    model=HttpRequestRule,
    parent_types=("frontend", "backend"),
    indexed=True,
    key_fields=(
        "type",
        "cond",
        "cond_test",
        "hdr_name",
        "hdr_format",
        "redir_type",
        "redir_value",
    ),
    strategy=ReconcileStrategy.REPLACE_ALL,
)
HTTP_RESPONSE_RULE = ResourceKind(
    name="http_response_rule",
    collection="http_response_rules",
    model=HttpResponseRule,
    parent_types=("frontend", "backend"),
    indexed=True,
    key_fields=("type", "cond", "cond_test", "hdr_name", "hdr_format", "status"),
    strategy=ReconcileStrategy.REPLACE_ALL,
)
HTTP_CHECK = ResourceKind(
    name="http_check",
    collection="http_checks",
    model=HttpCheck,
    parent_types=("backend",),
    indexed=True,
    key_fields=("type", "method", "uri", "match", "pattern", "check_comment"),
    strategy=ReconcileStrategy.REPLACE_ALL,
)
TCP_CHECK = ResourceKind(
    name="tcp_check",
    collection="tcp_checks",
    model=TcpCheck,
    parent_types=("backend",),
    indexed=True,
    key_fields=("action", "addr", "port", "data", "match", "pattern", "check_comment"),
    strategy=ReconcileStrategy.DIFF,
)
TCP_REQUEST_RULE = ResourceKind(
    name="tcp_request_rule",
    collection="tcp_request_rules",
    model=TcpRequestRule,
    parent_types=("frontend", "backend"),
    indexed=True,
    key_fields=(
        "type",
        "action",
        "expr",
        "var_name",
        "var_scope",
        "nice_value",
        "mark_value",
        "track_key",
        "track_table",
        "cond",
        "cond_test",
    ),
    strategy=ReconcileStrategy.DIFF,
)
TCP_RESPONSE_RULE = ResourceKind(
    name="tcp_response_rule",
    collection="tcp_response_rules",
    model=TcpResponseRule,
    parent_types=("backend",),
    indexed=True,
    key_fields=(
        "type",
        "action",
        "expr",
        "var_name",
        "var_scope",
        "nice_value",
        "mark_value",
        "cond",
        "cond_test",
    ),
    strategy=ReconcileStrategy.DIFF,
)
STICK_RULE = ResourceKind(
    name="stick_rule",
    collection="stick_rules",
    model=StickRule,
    parent_types=("backend",),
    v2_parent_query="backend",
    indexed=True,
    key_fields=("type", "pattern", "table", "cond", "cond_test"),
    strategy=ReconcileStrategy.DIFF,
)

KINDS: dict[str, ResourceKind] = {
    kind.name: kind
    for kind in (
        BACKEND,
        FRONTEND,
        RESOLVER,
        PEERS,
        STICK_TABLE,
        GLOBAL,
        SERVER,
        BIND,
        NAMESERVER,
        PEER_ENTRY,
        ACL,
        HTTP_REQUEST_RULE,
        HTTP_RESPONSE_RULE,
        HTTP_CHECK,
        TCP_CHECK,
        TCP_REQUEST_RULE,
        TCP_RESPONSE_RULE,
        STICK_RULE,
    )
}

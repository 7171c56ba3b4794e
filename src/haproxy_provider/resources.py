# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""Resource and data source handlers exposed to the infrastructure-as-code host.

Handlers take the configuration the user declared and return the state to
record, along with diagnostics. Mutations always run through the transaction
coordinator; reads never open a transaction. Errors are turned into
diagnostics here and nowhere else.
"""

import dataclasses
import logging
import types
import typing
from enum import StrEnum

from pydantic import BaseModel, Field, ValidationError
from pydantic.dataclasses import dataclass

from .bundle import BundleAcl, BundleSequencer, BundleServer, ResourceBundle
from .context import OperationContext
from .dataplane import DataplaneClient
from .exceptions import PayloadValidationError, ProviderError, ResourceNotFoundError
from .kinds import (
    ACL,
    BACKEND,
    BIND,
    FRONTEND,
    GLOBAL,
    KINDS,
    SERVER,
    ParentRef,
    ReconcileStrategy,
    ResourceKind,
)
from .reconcile import OrderedChildReconciler
from .state import IndexedPayloadModel, PayloadModel
from .transaction import TransactionCoordinator

logger = logging.getLogger(__name__)

# Attributes of a resource that are not part of the entity payload.
META_FIELDS = frozenset({"id", "parent_type", "parent_name"})
ORDERED_KINDS = tuple(kind for kind in KINDS.values() if kind.indexed)

State = dict[str, typing.Any]


class Severity(StrEnum):
    """StrEnum of diagnostic severities.

    Attrs:
        ERROR: The operation failed.
        WARNING: The operation succeeded with a caveat.
    """

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """A message reported to the user.

    Attrs:
        severity: Error or warning.
        summary: Short description.
        detail: Full message, verbatim from the failing layer.
    """

    severity: Severity
    summary: str
    detail: str = ""


@dataclass
class ResourceResponse:
    """Outcome of a handler call.

    Attrs:
        state: State to record, None when the object does not exist (anymore).
        diagnostics: Messages for the user.
    """

    state: typing.Optional[State] = None
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Indicate if any diagnostic is an error.

        Returns:
            bool: True if the operation failed.
        """
        return any(diag.severity == Severity.ERROR for diag in self.diagnostics)


@dataclass(frozen=True)
class Attribute:
    """Schema of one configuration attribute.

    Attrs:
        type: string, number, bool, list or object.
        required: The user must set it.
        computed: The provider sets it.
        sensitive: The value must not be displayed.
    """

    type: str
    required: bool = False
    computed: bool = False
    sensitive: bool = False


def _attribute_type(annotation: typing.Any) -> str:
    """Map a field annotation to a schema type.

    Args:
        annotation: The annotation of a pydantic field.

    Returns:
        str: The schema type.
    """
    origin = typing.get_origin(annotation)
    if origin in (typing.Union, types.UnionType):
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        return _attribute_type(args[0]) if args else "string"
    if origin in (list, tuple, set):
        return "list"
    if origin is dict or annotation is dict:
        return "object"
    if isinstance(annotation, type):
        if issubclass(annotation, bool):
            return "bool"
        if issubclass(annotation, str):
            return "string"
        if issubclass(annotation, (int, float)):
            return "number"
        if issubclass(annotation, BaseModel):
            return "object"
    return "string"


def model_attributes(model: type[BaseModel]) -> dict[str, Attribute]:
    """Build the attributes of a payload model.

    Args:
        model: The payload model.

    Returns:
        dict: Attributes keyed by field name.
    """
    return {
        name: Attribute(type=_attribute_type(field.annotation), required=field.is_required())
        for name, field in model.model_fields.items()
    }


def to_state(payload: PayloadModel) -> State:
    """Convert a payload to recorded state, keyed by field name.

    Args:
        payload: The payload.

    Returns:
        dict: The state.
    """
    return payload.model_dump(mode="json", exclude_none=True)


def _item_state(child: IndexedPayloadModel) -> State:
    """Convert an ordered child to state; its position in the list is its index.

    Args:
        child: The child.

    Returns:
        dict: The state without the index.
    """
    state = to_state(child)
    state.pop("index", None)
    return state


def _payload_fields(config: typing.Mapping[str, typing.Any]) -> dict[str, typing.Any]:
    """Drop the resource attributes that are not part of the payload.

    Args:
        config: Resource configuration.

    Returns:
        dict: The payload fields.
    """
    return {key: value for key, value in config.items() if key not in META_FIELDS}


def parent_from(kind: ResourceKind, config: typing.Mapping[str, typing.Any]) -> ParentRef:
    """Read the parent section of a child resource.

    parent_type may be omitted when the kind has a single possible parent type.

    Args:
        kind: The child kind.
        config: Resource configuration or state.

    Raises:
        PayloadValidationError: When the parent is missing or invalid.

    Returns:
        ParentRef: The parent.
    """
    parent_type = config.get("parent_type")
    if not parent_type and len(kind.parent_types) == 1:
        parent_type = kind.parent_types[0]
    if not parent_type:
        raise PayloadValidationError(
            f"{kind.name} requires parent_type, one of: {', '.join(kind.parent_types)}"
        )
    parent = ParentRef(parent_type, config.get("parent_name") or "")
    kind.check_parent(parent)
    return parent


class Resource:
    """Base class of resource handlers.

    Attrs:
        type_name: Resource type name, e.g. haproxy_backend.
    """

    type_name: str = ""

    def __init__(self, client: DataplaneClient, coordinator: TransactionCoordinator):
        """Initialize the handler.

        Args:
            client: The Data Plane API client.
            coordinator: The transaction coordinator.
        """
        self.client = client
        self.coordinator = coordinator

    def schema(self) -> dict[str, Attribute]:
        """Describe the configuration attributes.

        Returns:
            dict: Attributes keyed by name.
        """
        raise NotImplementedError

    def create(
        self,
        config: typing.Mapping[str, typing.Any],
        ctx: typing.Optional[OperationContext] = None,
    ) -> ResourceResponse:
        """Create the object.

        Args:
            config: Declared configuration.
            ctx: Cancellation context.

        Returns:
            ResourceResponse: The new state.
        """
        return self._handle("create", lambda: self._create(config, ctx))

    def read(
        self, state: State, ctx: typing.Optional[OperationContext] = None
    ) -> ResourceResponse:
        """Refresh the state from the API.

        Args:
            state: Recorded state.
            ctx: Cancellation context.

        Returns:
            ResourceResponse: The current state, None if the object is gone.
        """
        return self._handle("read", lambda: self._read(state, ctx))

    def update(
        self,
        config: typing.Mapping[str, typing.Any],
        prior: State,
        ctx: typing.Optional[OperationContext] = None,
    ) -> ResourceResponse:
        """Update the object.

        Args:
            config: Declared configuration.
            prior: Recorded state.
            ctx: Cancellation context.

        Returns:
            ResourceResponse: The new state.
        """
        return self._handle("update", lambda: self._update(config, prior, ctx))

    def delete(
        self, state: State, ctx: typing.Optional[OperationContext] = None
    ) -> ResourceResponse:
        """Delete the object.

        Args:
            state: Recorded state.
            ctx: Cancellation context.

        Returns:
            ResourceResponse: An empty state.
        """
        return self._handle("delete", lambda: self._delete(state, ctx))

    def _create(
        self, config: typing.Mapping[str, typing.Any], ctx: typing.Optional[OperationContext]
    ) -> ResourceResponse:
        raise NotImplementedError

    def _read(self, state: State, ctx: typing.Optional[OperationContext]) -> ResourceResponse:
        raise NotImplementedError

    def _update(
        self,
        config: typing.Mapping[str, typing.Any],
        prior: State,
        ctx: typing.Optional[OperationContext],
    ) -> ResourceResponse:
        raise NotImplementedError

    def _delete(self, state: State, ctx: typing.Optional[OperationContext]) -> ResourceResponse:
        raise NotImplementedError

    def _handle(
        self, operation: str, handler: typing.Callable[[], ResourceResponse]
    ) -> ResourceResponse:
        """Run a handler, reporting provider errors as diagnostics.

        Args:
            operation: create, read, update or delete.
            handler: The handler.

        Returns:
            ResourceResponse: The handler response or an error diagnostic.
        """
        try:
            return handler()
        except (ProviderError, ValidationError) as exc:
            logger.error("%s of %s failed: %s", operation, self.type_name, exc)
            return ResourceResponse(
                diagnostics=[
                    Diagnostic(
                        severity=Severity.ERROR,
                        summary=f"Unable to {operation} {self.type_name}",
                        detail=str(exc),
                    )
                ]
            )


class NamedResource(Resource):
    """Top-level section addressed by name: backend, frontend, resolver, peers, stick table."""

    def __init__(
        self, kind: ResourceKind, client: DataplaneClient, coordinator: TransactionCoordinator
    ):
        """Initialize the handler.

        Args:
            kind: The entity kind.
            client: The Data Plane API client.
            coordinator: The transaction coordinator.
        """
        super().__init__(client, coordinator)
        self.kind = kind
        self.type_name = f"haproxy_{kind.name}"

    def schema(self) -> dict[str, Attribute]:
        """Describe the configuration attributes.

        Returns:
            dict: Attributes keyed by name.
        """
        return {"id": Attribute(type="string", computed=True), **model_attributes(self.kind.model)}

    def _state(self, payload: PayloadModel) -> State:
        return {"id": self.kind.key_of(payload), **to_state(payload)}

    def _key(self, state: typing.Mapping[str, typing.Any]) -> typing.Any:
        return state.get("id") or state.get("name")

    def _create(self, config, ctx):
        payload = self.kind.load(_payload_fields(config))
        self.coordinator.run(
            lambda transaction_id: self.client.create(transaction_id, self.kind, payload, ctx=ctx),
            ctx,
        )
        return ResourceResponse(state=self._state(payload))

    def _read(self, state, ctx):
        payload = self.client.get(self.kind, self._key(state), ctx=ctx)
        if payload is None:
            logger.info("%s %s is gone", self.kind.name, self._key(state))
            return ResourceResponse(state=None)
        return ResourceResponse(state=self._state(payload))

    def _update(self, config, prior, ctx):
        payload = self.kind.load(_payload_fields(config))
        key = self._key(prior)
        self.coordinator.run(
            lambda transaction_id: self.client.replace(
                transaction_id, self.kind, payload, key=key, ctx=ctx
            ),
            ctx,
        )
        return ResourceResponse(state=self._state(payload))

    def _delete(self, state, ctx):
        key = self._key(state)
        self.coordinator.run(
            lambda transaction_id: self.client.delete(transaction_id, self.kind, key, ctx=ctx),
            ctx,
        )
        return ResourceResponse(state=None)


class ChildResource(NamedResource):
    """Named line of a section: server, bind, nameserver, peer entry.

    The id is parent_type/parent_name/name.
    """

    def schema(self) -> dict[str, Attribute]:
        """Describe the configuration attributes.

        Returns:
            dict: Attributes keyed by name.
        """
        return {
            "id": Attribute(type="string", computed=True),
            "parent_type": Attribute(type="string", required=len(self.kind.parent_types) > 1),
            "parent_name": Attribute(type="string", required=True),
            **model_attributes(self.kind.model),
        }

    def _state_for(self, parent: ParentRef, payload: PayloadModel) -> State:
        return {
            "id": f"{parent}/{self.kind.key_of(payload)}",
            "parent_type": parent.parent_type,
            "parent_name": parent.parent_name,
            **to_state(payload),
        }

    def _key(self, state: typing.Mapping[str, typing.Any]) -> typing.Any:
        return state.get("name") or str(state.get("id", "")).rsplit("/", 1)[-1]

    def _create(self, config, ctx):
        parent = parent_from(self.kind, config)
        payload = self.kind.load(_payload_fields(config))
        self.coordinator.run(
            lambda transaction_id: self.client.create(
                transaction_id, self.kind, payload, parent, ctx=ctx
            ),
            ctx,
        )
        return ResourceResponse(state=self._state_for(parent, payload))

    def _read(self, state, ctx):
        parent = parent_from(self.kind, state)
        payload = self.client.get(self.kind, self._key(state), parent, ctx=ctx)
        if payload is None:
            logger.info("%s %s of %s is gone", self.kind.name, self._key(state), parent)
            return ResourceResponse(state=None)
        return ResourceResponse(state=self._state_for(parent, payload))

    def _update(self, config, prior, ctx):
        parent = parent_from(self.kind, config)
        payload = self.kind.load(_payload_fields(config))
        key = self._key(prior)
        self.coordinator.run(
            lambda transaction_id: self.client.replace(
                transaction_id, self.kind, payload, parent, key=key, ctx=ctx
            ),
            ctx,
        )
        return ResourceResponse(state=self._state_for(parent, payload))

    def _delete(self, state, ctx):
        parent = parent_from(self.kind, state)
        key = self._key(state)
        self.coordinator.run(
            lambda transaction_id: self.client.delete(
                transaction_id, self.kind, key, parent, ctx=ctx
            ),
            ctx,
        )
        return ResourceResponse(state=None)


class OrderedCollectionResource(Resource):
    """The whole ordered list of one child kind under a parent, e.g. every ACL of a frontend.

    The list is stored under the kind's collection name, in order.
    """

    def __init__(
        self,
        kind: ResourceKind,
        client: DataplaneClient,
        coordinator: TransactionCoordinator,
        strategy: typing.Optional[ReconcileStrategy] = None,
    ):
        """Initialize the handler.

        Args:
            kind: An indexed child kind.
            client: The Data Plane API client.
            coordinator: The transaction coordinator.
            strategy: Reconcile strategy, the kind's default if omitted.
        """
        super().__init__(client, coordinator)
        self.kind = kind
        self.type_name = f"haproxy_{kind.collection}"
        self.reconciler = OrderedChildReconciler(client, kind, strategy)

    def schema(self) -> dict[str, Attribute]:
        """Describe the configuration attributes.

        Returns:
            dict: Attributes keyed by name.
        """
        return {
            "id": Attribute(type="string", computed=True),
            "parent_type": Attribute(type="string", required=len(self.kind.parent_types) > 1),
            "parent_name": Attribute(type="string", required=True),
            self.kind.collection: Attribute(type="list", required=True),
        }

    def _desired(self, config: typing.Mapping[str, typing.Any]) -> list[IndexedPayloadModel]:
        items = config.get(self.kind.collection) or []
        return [
            typing.cast(IndexedPayloadModel, self.kind.load(item)).at(position)
            for position, item in enumerate(items)
        ]

    def _state_for(
        self, parent: ParentRef, children: typing.Sequence[IndexedPayloadModel]
    ) -> State:
        return {
            "id": f"{parent}/{self.kind.collection}",
            "parent_type": parent.parent_type,
            "parent_name": parent.parent_name,
            self.kind.collection: [_item_state(child) for child in children],
        }

    def _create(self, config, ctx):
        parent = parent_from(self.kind, config)
        desired = self._desired(config)
        created = self.coordinator.run(
            lambda transaction_id: self.reconciler.create(transaction_id, parent, desired, ctx),
            ctx,
        )
        return ResourceResponse(state=self._state_for(parent, created))

    def _read(self, state, ctx):
        parent = parent_from(self.kind, state)
        children = typing.cast(
            list[IndexedPayloadModel], self.client.list(self.kind, parent, ctx=ctx)
        )
        return ResourceResponse(state=self._state_for(parent, children))

    def _update(self, config, prior, ctx):
        parent = parent_from(self.kind, config)
        desired = self._desired(config)
        reconciled = self.coordinator.run(
            lambda transaction_id: self.reconciler.reconcile(transaction_id, parent, desired, ctx),
            ctx,
        )
        return ResourceResponse(state=self._state_for(parent, reconciled))

    def _delete(self, state, ctx):
        parent = parent_from(self.kind, state)
        self.coordinator.run(
            lambda transaction_id: self.reconciler.delete_all(transaction_id, parent, ctx), ctx
        )
        return ResourceResponse(state=None)


class GlobalResource(Resource):
    """The global section, which always exists and cannot be removed."""

    type_name = "haproxy_global"

    def schema(self) -> dict[str, Attribute]:
        """Describe the configuration attributes.

        Returns:
            dict: Attributes keyed by name.
        """
        return {"id": Attribute(type="string", computed=True), **model_attributes(GLOBAL.model)}

    def _replace(self, config, ctx):
        payload = GLOBAL.load(_payload_fields(config))
        self.coordinator.run(
            lambda transaction_id: self.client.replace(transaction_id, GLOBAL, payload, ctx=ctx),
            ctx,
        )
        return ResourceResponse(state={"id": GLOBAL.name, **to_state(payload)})

    def _create(self, config, ctx):
        return self._replace(config, ctx)

    def _read(self, state, ctx):
        payload = self.client.get(GLOBAL, ctx=ctx)
        if payload is None:
            return ResourceResponse(state=None)
        return ResourceResponse(state={"id": GLOBAL.name, **to_state(payload)})

    def _update(self, config, prior, ctx):
        return self._replace(config, ctx)

    def _delete(self, state, ctx):
        logger.warning("The global section cannot be deleted, forgetting it")
        return ResourceResponse(
            state=None,
            diagnostics=[
                Diagnostic(
                    severity=Severity.WARNING,
                    summary="Global section left in place",
                    detail="The global section cannot be removed; it was only dropped from state.",
                )
            ],
        )


@dataclasses.dataclass(frozen=True)
class StackSection:
    """A backend or frontend of a stack, with its children.

    Attrs:
        kind: BACKEND or FRONTEND.
        payload: The section itself.
        named: Servers of a backend or binds of a frontend.
        ordered: Ordered children keyed by kind name.
    """

    kind: ResourceKind
    payload: PayloadModel
    named: list[PayloadModel]
    ordered: dict[str, list[IndexedPayloadModel]]

    @property
    def name(self) -> str:
        """Get the section name.

        Returns:
            str: The name.
        """
        return typing.cast(str, getattr(self.payload, "name"))

    @property
    def parent(self) -> ParentRef:
        """Get the reference children use for this section.

        Returns:
            ParentRef: The reference.
        """
        return ParentRef(self.kind.name, self.name)

    @property
    def named_kind(self) -> ResourceKind:
        """Get the kind of the named children.

        Returns:
            ResourceKind: SERVER for backends, BIND for frontends.
        """
        return SERVER if self.kind is BACKEND else BIND

    def to_state(self) -> State:
        """Convert the section to recorded state.

        Returns:
            dict: The section fields plus its children lists.
        """
        state = to_state(self.payload)
        state[self.named_kind.collection] = [to_state(child) for child in self.named]
        for kind in section_children(self.kind):
            children = self.ordered.get(kind.name, [])
            if children:
                state[kind.collection] = [_item_state(child) for child in children]
        return state


def section_children(kind: ResourceKind) -> tuple[ResourceKind, ...]:
    """Get the ordered child kinds a section type supports.

    Args:
        kind: BACKEND or FRONTEND.

    Returns:
        tuple: The child kinds.
    """
    return tuple(child for child in ORDERED_KINDS if kind.name in child.parent_types)


def parse_section(
    kind: ResourceKind, raw: typing.Optional[typing.Mapping[str, typing.Any]]
) -> typing.Optional[StackSection]:
    """Parse the backend or frontend block of a stack.

    Args:
        kind: BACKEND or FRONTEND.
        raw: The block, None when absent.

    Returns:
        The section, None when absent.
    """
    if not raw:
        return None
    fields = dict(raw)
    named_kind = SERVER if kind is BACKEND else BIND
    named = [named_kind.load(item) for item in fields.pop(named_kind.collection, None) or []]
    ordered = {}
    for child_kind in section_children(kind):
        items = fields.pop(child_kind.collection, None) or []
        ordered[child_kind.name] = [
            typing.cast(IndexedPayloadModel, child_kind.load(item)).at(position)
            for position, item in enumerate(items)
        ]
    return StackSection(kind=kind, payload=kind.load(fields), named=named, ordered=ordered)


class StackResource(Resource):
    """A backend, its servers and a frontend with its binds, ACLs and rules, applied together.

    Every operation runs in a single transaction, so a stack is either fully
    applied or not at all.
    """

    type_name = "haproxy_stack"

    def __init__(self, client: DataplaneClient, coordinator: TransactionCoordinator):
        """Initialize the handler.

        Args:
            client: The Data Plane API client.
            coordinator: The transaction coordinator.
        """
        super().__init__(client, coordinator)
        self.sequencer = BundleSequencer(client)

    def schema(self) -> dict[str, Attribute]:
        """Describe the configuration attributes.

        Returns:
            dict: Attributes keyed by name.
        """
        return {
            "id": Attribute(type="string", computed=True),
            "name": Attribute(type="string", required=True),
            "backend": Attribute(type="object"),
            "frontend": Attribute(type="object"),
        }

    @staticmethod
    def _sections(
        config: typing.Mapping[str, typing.Any],
    ) -> tuple[typing.Optional[StackSection], typing.Optional[StackSection]]:
        """Parse the backend and frontend blocks.

        Args:
            config: Stack configuration or state.

        Raises:
            PayloadValidationError: When the stack has no name or neither block.

        Returns:
            tuple: The backend and frontend sections.
        """
        if not config.get("name"):
            raise PayloadValidationError("haproxy_stack requires a name")
        backend = parse_section(BACKEND, config.get("backend"))
        frontend = parse_section(FRONTEND, config.get("frontend"))
        if backend is None and frontend is None:
            raise PayloadValidationError("haproxy_stack requires a backend or a frontend")
        return backend, frontend

    @staticmethod
    def _state(
        name: str,
        backend: typing.Optional[StackSection],
        frontend: typing.Optional[StackSection],
    ) -> State:
        state: State = {"id": name, "name": name}
        if backend is not None:
            state["backend"] = backend.to_state()
        if frontend is not None:
            state["frontend"] = frontend.to_state()
        return state

    @staticmethod
    def _bundle(
        backend: typing.Optional[StackSection], frontend: typing.Optional[StackSection]
    ) -> ResourceBundle:
        """Build the bundle of the sections: backend, servers, frontend and ACLs.

        Args:
            backend: The backend section.
            frontend: The frontend section.

        Returns:
            ResourceBundle: The bundle.
        """
        servers = []
        acls = []
        for section in (backend, frontend):
            if section is None:
                continue
            acls.extend(
                BundleAcl(parent=section.parent, payload=acl)
                for acl in section.ordered.get(ACL.name, [])
            )
        if backend is not None:
            servers = [
                BundleServer(parent=backend.parent, payload=server) for server in backend.named
            ]
        return ResourceBundle(
            backend=backend.payload if backend is not None else None,
            servers=servers,
            frontend=frontend.payload if frontend is not None else None,
            acls=acls,
        )

    def _create_children(
        self,
        transaction_id: str,
        section: StackSection,
        ctx: typing.Optional[OperationContext],
        with_named: bool = True,
        with_acls: bool = True,
    ) -> None:
        """Create the children of a new section: named children, ACLs, then rules and checks.

        Args:
            transaction_id: The transaction ID.
            section: The section.
            ctx: Cancellation context.
            with_named: Create the servers or binds.
            with_acls: Create the ACLs.
        """
        if with_named:
            for child in section.named:
                self.client.create(
                    transaction_id, section.named_kind, child, section.parent, ctx=ctx
                )
        kinds = [kind for kind in section_children(section.kind) if with_acls or kind is not ACL]
        kinds.sort(key=lambda kind: kind is not ACL)
        for kind in kinds:
            children = section.ordered.get(kind.name, [])
            if children:
                OrderedChildReconciler(self.client, kind).create(
                    transaction_id, section.parent, children, ctx
                )

    def _create_section(
        self, transaction_id: str, section: StackSection, ctx: typing.Optional[OperationContext]
    ) -> None:
        """Create a section and all its children.

        Args:
            transaction_id: The transaction ID.
            section: The section.
            ctx: Cancellation context.
        """
        self.client.create(transaction_id, section.kind, section.payload, ctx=ctx)
        self._create_children(transaction_id, section, ctx)

    def _sync_named(
        self, transaction_id: str, section: StackSection, ctx: typing.Optional[OperationContext]
    ) -> None:
        """Bring the servers or binds of a section to the desired ones, matched by name.

        Args:
            transaction_id: The transaction ID.
            section: The section.
            ctx: Cancellation context.
        """
        kind = section.named_kind
        existing = {
            kind.key_of(child)
            for child in self.client.list(
                kind, section.parent, transaction_id=transaction_id, ctx=ctx
            )
        }
        desired = {kind.key_of(child): child for child in section.named}
        for name in sorted(existing - desired.keys(), key=str):
            self.client.delete(transaction_id, kind, name, section.parent, ctx=ctx)
        for name, child in desired.items():
            if name in existing:
                self.client.replace(transaction_id, kind, child, section.parent, ctx=ctx)
            else:
                self.client.create(transaction_id, kind, child, section.parent, ctx=ctx)

    def _update_section(
        self, transaction_id: str, section: StackSection, ctx: typing.Optional[OperationContext]
    ) -> None:
        """Update a section that already exists under the same name.

        Args:
            transaction_id: The transaction ID.
            section: The desired section.
            ctx: Cancellation context.
        """
        self.client.replace(transaction_id, section.kind, section.payload, ctx=ctx)
        self._sync_named(transaction_id, section, ctx)
        for kind in section_children(section.kind):
            OrderedChildReconciler(self.client, kind).reconcile(
                transaction_id, section.parent, section.ordered.get(kind.name, []), ctx
            )

    def _create(self, config, ctx):
        backend, frontend = self._sections(config)
        bundle = self._bundle(backend, frontend)

        def create_stack(transaction_id: str) -> None:
            self.sequencer.apply(transaction_id, bundle, ctx)
            # The bundle covers the sections, the servers and the ACLs.
            for section in (backend, frontend):
                if section is not None:
                    self._create_children(
                        transaction_id,
                        section,
                        ctx,
                        with_named=section.kind is FRONTEND,
                        with_acls=False,
                    )

        self.coordinator.run(create_stack, ctx)
        return ResourceResponse(state=self._state(config["name"], backend, frontend))

    def _read(self, state, ctx):
        sections = []
        for kind in (BACKEND, FRONTEND):
            block = state.get(kind.name) or {}
            sections.append(self._read_section(kind, block.get("name"), ctx))
        backend, frontend = sections
        if backend is None and frontend is None:
            logger.info("Stack %s is gone", state.get("id"))
            return ResourceResponse(state=None)
        name = state.get("name") or state.get("id")
        return ResourceResponse(state=self._state(name, backend, frontend))

    def _read_section(
        self,
        kind: ResourceKind,
        name: typing.Optional[str],
        ctx: typing.Optional[OperationContext],
    ) -> typing.Optional[StackSection]:
        """Read a section and its children from the running configuration.

        Args:
            kind: BACKEND or FRONTEND.
            name: Section name, None when the stack has no such section.
            ctx: Cancellation context.

        Returns:
            The section, None when it does not exist.
        """
        if not name:
            return None
        payload = self.client.get(kind, name, ctx=ctx)
        if payload is None:
            return None
        parent = ParentRef(kind.name, name)
        named_kind = SERVER if kind is BACKEND else BIND
        return StackSection(
            kind=kind,
            payload=payload,
            named=self.client.list(named_kind, parent, ctx=ctx),
            ordered={
                child.name: typing.cast(
                    list[IndexedPayloadModel], self.client.list(child, parent, ctx=ctx)
                )
                for child in section_children(kind)
            },
        )

    def _update(self, config, prior, ctx):
        backend, frontend = self._sections(config)
        prior_backend = parse_section(BACKEND, prior.get("backend"))
        prior_frontend = parse_section(FRONTEND, prior.get("frontend"))

        def replaced(
            old: typing.Optional[StackSection], new: typing.Optional[StackSection]
        ) -> bool:
            return old is not None and (new is None or new.name != old.name)

        def update_stack(transaction_id: str) -> None:
            # The frontend may point at the backend: drop it before touching the backend.
            if replaced(prior_frontend, frontend):
                self.sequencer.delete(transaction_id, self._bundle(None, prior_frontend), ctx)
            if backend is not None:
                if prior_backend is None or replaced(prior_backend, backend):
                    self._create_section(transaction_id, backend, ctx)
                else:
                    self._update_section(transaction_id, backend, ctx)
            if frontend is not None:
                if prior_frontend is None or replaced(prior_frontend, frontend):
                    self._create_section(transaction_id, frontend, ctx)
                else:
                    self._update_section(transaction_id, frontend, ctx)
            if replaced(prior_backend, backend):
                self.sequencer.delete(transaction_id, self._bundle(prior_backend, None), ctx)

        self.coordinator.run(update_stack, ctx)
        return ResourceResponse(state=self._state(config["name"], backend, frontend))

    def _delete(self, state, ctx):
        backend = parse_section(BACKEND, state.get("backend"))
        frontend = parse_section(FRONTEND, state.get("frontend"))
        bundle = self._bundle(backend, frontend)
        self.coordinator.run(
            lambda transaction_id: self.sequencer.delete(transaction_id, bundle, ctx), ctx
        )
        return ResourceResponse(state=None)


class DataSource:
    """Base class of read-only data sources over one entity kind.

    Attrs:
        type_name: Data source type name, e.g. haproxy_backends.
    """

    type_name: str = ""

    def __init__(self, kind: ResourceKind, client: DataplaneClient):
        """Initialize the data source.

        Args:
            kind: The entity kind.
            client: The Data Plane API client.
        """
        self.kind = kind
        self.client = client

    def schema(self) -> dict[str, Attribute]:
        """Describe the configuration attributes.

        Returns:
            dict: Attributes keyed by name.
        """
        raise NotImplementedError

    def _parent_attributes(self) -> dict[str, Attribute]:
        if not self.kind.is_child:
            return {}
        return {
            "parent_type": Attribute(type="string", required=len(self.kind.parent_types) > 1),
            "parent_name": Attribute(type="string", required=True),
        }

    def read(
        self,
        config: typing.Mapping[str, typing.Any],
        ctx: typing.Optional[OperationContext] = None,
    ) -> ResourceResponse:
        """Read the data source.

        Args:
            config: Data source configuration.
            ctx: Cancellation context.

        Returns:
            ResourceResponse: The state read, or an error diagnostic.
        """
        try:
            state = self._read(config, ctx)
        except (ProviderError, ValidationError) as exc:
            logger.error("read of %s failed: %s", self.type_name, exc)
            return ResourceResponse(
                diagnostics=[
                    Diagnostic(
                        severity=Severity.ERROR,
                        summary=f"Unable to read {self.type_name}",
                        detail=str(exc),
                    )
                ]
            )
        for field in ("parent_type", "parent_name"):
            if config.get(field):
                state[field] = config[field]
        return ResourceResponse(state=state)

    def _read(
        self, config: typing.Mapping[str, typing.Any], ctx: typing.Optional[OperationContext]
    ) -> State:
        raise NotImplementedError


class ListDataSource(DataSource):
    """Listing of one entity kind, optionally under a parent."""

    def __init__(self, kind: ResourceKind, client: DataplaneClient):
        """Initialize the data source.

        Args:
            kind: The entity kind.
            client: The Data Plane API client.
        """
        super().__init__(kind, client)
        self.type_name = f"haproxy_{kind.collection}"

    def schema(self) -> dict[str, Attribute]:
        """Describe the configuration attributes.

        Returns:
            dict: Attributes keyed by name.
        """
        return {
            "id": Attribute(type="string", computed=True),
            **self._parent_attributes(),
            self.kind.collection: Attribute(type="list", computed=True),
        }

    def _read(self, config, ctx):
        if self.kind.singleton:
            payload = self.client.get(self.kind, ctx=ctx)
            items = [payload] if payload is not None else []
            identity = self.kind.name
        else:
            parent = parent_from(self.kind, config) if self.kind.is_child else None
            items = self.client.list(self.kind, parent, ctx=ctx)
            identity = f"{parent}/{self.kind.collection}" if parent else self.kind.collection
        return {"id": identity, self.kind.collection: [to_state(item) for item in items]}


class GetDataSource(DataSource):
    """Lookup of one entity by name, or by index under its parent for ordered children."""

    def __init__(self, kind: ResourceKind, client: DataplaneClient):
        """Initialize the data source.

        Args:
            kind: A named or indexed entity kind.
            client: The Data Plane API client.

        Raises:
            ValueError: When the kind is a singleton.
        """
        if kind.singleton:
            raise ValueError(f"{kind.name} has no key to look up")
        super().__init__(kind, client)
        self.type_name = f"haproxy_{kind.name}"

    @property
    def key_field(self) -> str:
        """Get the attribute holding the key of the entity.

        Returns:
            str: index for ordered children, name otherwise.
        """
        return "index" if self.kind.indexed else "name"

    def schema(self) -> dict[str, Attribute]:
        """Describe the configuration attributes.

        Returns:
            dict: Attributes keyed by name.
        """
        attributes = {
            name: dataclasses.replace(attribute, required=False, computed=True)
            for name, attribute in model_attributes(self.kind.model).items()
        }
        attributes[self.key_field] = Attribute(
            type="number" if self.kind.indexed else "string", required=True
        )
        return {
            "id": Attribute(type="string", computed=True),
            **self._parent_attributes(),
            **attributes,
        }

    def _read(self, config, ctx):
        key = config.get(self.key_field)
        if key is None or key == "":
            raise PayloadValidationError(f"{self.type_name} requires {self.key_field}")
        if self.kind.indexed:
            try:
                key = int(key)
            except (TypeError, ValueError) as exc:
                raise PayloadValidationError(f"index must be a number, got {key!r}") from exc
        parent = parent_from(self.kind, config) if self.kind.is_child else None
        payload = self.client.get(self.kind, key, parent, ctx=ctx)
        if payload is None:
            where = f" of {parent}" if parent else ""
            raise ResourceNotFoundError(f"{self.kind.name} {key}{where} does not exist")
        identity = f"{parent}/{key}" if parent else str(key)
        return {"id": identity, **to_state(payload)}

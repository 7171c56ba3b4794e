# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""In-memory Data Plane API used by the unit tests."""

import copy
import itertools
import typing

from haproxy_provider.context import OperationContext
from haproxy_provider.exceptions import DataplaneAPIError, DataplaneVersionConflictError
from haproxy_provider.kinds import ParentRef, ResourceKind
from haproxy_provider.state import IndexedPayloadModel, PayloadModel

StoreKey = tuple[str, typing.Optional[ParentRef]]


class RecordingContext(OperationContext):
    """Context recording the retry delays instead of waiting."""

    def __init__(self, deadline: typing.Optional[float] = None):
        """Initialize the context.

        Args:
            deadline: Monotonic deadline.
        """
        super().__init__(deadline)
        self.sleeps: list[float] = []

    def sleep(self, seconds: float) -> None:
        """Record the delay.

        Args:
            seconds: Delay requested.
        """
        self.raise_if_cancelled()
        self.sleeps.append(seconds)


class FakeDataplane:
    """Transactional in-memory stand-in for DataplaneClient.

    Named entities are stored by name, indexed children as ordered lists of
    their content, the global section as a single payload. Mutations only
    touch the transaction's copy of the store; commit publishes it if the
    configuration version did not move in between.

    Attrs:
        version: Current configuration version.
        calls: Every call received, as tuples.
        bulk: Whether replace_all sends one bulk call.
    """

    def __init__(self, bulk: bool = True):
        """Initialize an empty configuration.

        Args:
            bulk: Whether replace_all sends one bulk call.
        """
        self.version = 1
        self.bulk = bulk
        self.store: dict[StoreKey, typing.Any] = {}
        self.transactions: dict[str, tuple[int, dict[StoreKey, typing.Any]]] = {}
        self.calls: list[tuple] = []
        self.failures: dict[str, list[BaseException]] = {}
        self._ids = itertools.count(1)

    def fail(self, operation: str, error: BaseException, times: int = 1) -> None:
        """Make the next calls of an operation raise.

        Args:
            operation: Method name, e.g. commit_transaction or create.
            error: The error to raise.
            times: Number of calls failing.
        """
        self.failures.setdefault(operation, []).extend([error] * times)

    def seed(self, kind: ResourceKind, payload: PayloadModel, parent: ParentRef = None) -> None:
        """Add an entity to the running configuration without a transaction.

        Args:
            kind: The entity kind.
            payload: The entity.
            parent: Owning section for child kinds.
        """
        self._insert(self.store, kind, payload, parent)

    def operations(self, *names: str) -> list[tuple]:
        """Get the recorded calls of some operations.

        Args:
            names: Operation names.

        Returns:
            list: The calls, in order.
        """
        return [call for call in self.calls if call[0] in names]

    def _enter(self, operation: str, *details: typing.Any, ctx=None) -> None:
        self.calls.append((operation, *details))
        if ctx is not None:
            ctx.raise_if_cancelled()
        pending = self.failures.get(operation)
        if pending:
            raise pending.pop(0)

    def _txn_store(self, transaction_id: str) -> dict[StoreKey, typing.Any]:
        if transaction_id not in self.transactions:
            raise DataplaneAPIError(404, f"transaction {transaction_id} does not exist")
        return self.transactions[transaction_id][1]

    def get_configuration_version(self, ctx=None) -> int:
        """Get the configuration version."""
        return self.version

    def begin_transaction(self, ctx=None) -> str:
        """Open a transaction."""
        transaction_id = f"txn-{next(self._ids)}"
        self._enter("begin_transaction", transaction_id, ctx=ctx)
        self.transactions[transaction_id] = (self.version, copy.deepcopy(self.store))
        return transaction_id

    def commit_transaction(self, transaction_id: str, ctx=None) -> None:
        """Publish a transaction."""
        self._enter("commit_transaction", transaction_id, ctx=ctx)
        version, store = self.transactions.pop(transaction_id)
        if version != self.version:
            raise DataplaneVersionConflictError(409, "version mismatch")
        self.store = store
        self.version += 1

    def rollback_transaction(self, transaction_id: str, ctx=None) -> None:
        """Discard a transaction."""
        self._enter("rollback_transaction", transaction_id, ctx=ctx)
        self.transactions.pop(transaction_id, None)

    def supports_bulk_replace(self, kind: ResourceKind) -> bool:
        """Tell whether replace_all is one call."""
        return self.bulk and kind.indexed

    def list(self, kind, parent=None, *, transaction_id=None, ctx=None) -> list[PayloadModel]:
        """List entities."""
        self._enter("list", kind.name, parent, ctx=ctx)
        store = self._txn_store(transaction_id) if transaction_id else self.store
        entries = store.get((kind.name, parent))
        if not entries:
            return []
        if kind.indexed:
            return [
                typing.cast(IndexedPayloadModel, kind.load(content)).at(index)
                for index, content in enumerate(entries)
            ]
        return [kind.load(content) for content in entries.values()]

    def get(self, kind, key=None, parent=None, *, transaction_id=None, ctx=None):
        """Get one entity."""
        self._enter("get", kind.name, parent, key, ctx=ctx)
        store = self._txn_store(transaction_id) if transaction_id else self.store
        entries = store.get((kind.name, parent))
        if entries is None:
            return None
        if kind.singleton:
            return kind.load(entries)
        if kind.indexed:
            if not 0 <= key < len(entries):
                return None
            return typing.cast(IndexedPayloadModel, kind.load(entries[key])).at(key)
        return kind.load(entries[key]) if key in entries else None

    def create(self, transaction_id, kind, payload, parent=None, *, ctx=None) -> None:
        """Create an entity."""
        self._enter("create", kind.name, parent, kind.key_of(payload), ctx=ctx)
        self._insert(self._txn_store(transaction_id), kind, payload, parent)

    def replace(self, transaction_id, kind, payload, parent=None, key=None, *, ctx=None) -> None:
        """Replace an entity."""
        if key is None and not kind.singleton:
            key = kind.key_of(payload)
        self._enter("replace", kind.name, parent, key, ctx=ctx)
        store = self._txn_store(transaction_id)
        if kind.singleton:
            store[(kind.name, None)] = payload.dump()
            return
        entries = store.get((kind.name, parent))
        if kind.indexed:
            if entries is None or not 0 <= key < len(entries):
                raise DataplaneAPIError(404, f"{kind.name} {key} does not exist")
            entries[key] = typing.cast(IndexedPayloadModel, payload).content()
            return
        if entries is None or key not in entries:
            raise DataplaneAPIError(404, f"{kind.name} {key} does not exist")
        del entries[key]
        entries[kind.key_of(payload)] = payload.dump()

    def delete(self, transaction_id, kind, key, parent=None, *, ctx=None) -> None:
        """Delete an entity, and its children for sections."""
        self._enter("delete", kind.name, parent, key, ctx=ctx)
        store = self._txn_store(transaction_id)
        entries = store.get((kind.name, parent))
        if kind.indexed:
            if entries is None or not 0 <= key < len(entries):
                raise DataplaneAPIError(404, f"{kind.name} {key} does not exist")
            del entries[key]
            return
        if entries is None or key not in entries:
            raise DataplaneAPIError(404, f"{kind.name} {key} does not exist")
        del entries[key]
        section = ParentRef(kind.name, key)
        for store_key in [store_key for store_key in store if store_key[1] == section]:
            del store[store_key]

    def replace_all(self, transaction_id, kind, items, parent, *, ctx=None) -> None:
        """Submit a whole ordered collection."""
        if not self.bulk:
            for index, item in enumerate(items):
                self.create(transaction_id, kind, item.at(index), parent, ctx=ctx)
            return
        self._enter("replace_all", kind.name, parent, len(items), ctx=ctx)
        store = self._txn_store(transaction_id)
        self._check_parent(store, parent)
        store[(kind.name, parent)] = [item.content() for item in items]

    def children(self, kind: ResourceKind, parent: ParentRef) -> typing.List[dict]:
        """Get the committed content of an ordered collection.

        Args:
            kind: An indexed kind.
            parent: Owning section.

        Returns:
            list: The children content, in order.
        """
        return list(self.store.get((kind.name, parent), []))

    def names(self, kind: ResourceKind, parent: ParentRef = None) -> typing.List[str]:
        """Get the committed names of a named kind.

        Args:
            kind: A named kind.
            parent: Owning section for child kinds.

        Returns:
            list: The names, in creation order.
        """
        return list(self.store.get((kind.name, parent), {}))

    @staticmethod
    def _check_parent(store, parent: typing.Optional[ParentRef]) -> None:
        if parent is None:
            return
        sections = store.get((parent.parent_type, None), {})
        if parent.parent_name not in sections:
            raise DataplaneAPIError(404, f"missing object: {parent} does not exist")

    def _insert(self, store, kind, payload, parent) -> None:
        self._check_parent(store, parent)
        if kind.singleton:
            store[(kind.name, None)] = payload.dump()
            return
        if kind.indexed:
            entries = store.setdefault((kind.name, parent), [])
            index = payload.index if payload.index is not None else len(entries)
            if index > len(entries):
                raise DataplaneAPIError(400, f"{kind.name} index {index} out of range")
            entries.insert(index, payload.content())
            return
        entries = store.setdefault((kind.name, parent), {})
        name = kind.key_of(payload)
        if name in entries:
            raise DataplaneAPIError(409, f"{kind.name} {name} already exists")
        entries[name] = payload.dump()


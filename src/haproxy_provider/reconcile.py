# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""Reconcile ordered child collections (ACLs, rules, checks).

The API addresses these children by their position under the parent, so the
position is both their order and their identity. Two strategies bring the
remote list to the desired one:

* replace-all deletes every existing child, highest index first, then submits
  the desired list in one bulk call;
* diff matches children by a content key built from their identifying
  fields, and only deletes, creates and updates what changed.
"""

import logging
import typing

from pydantic import Field
from pydantic.dataclasses import dataclass

from .context import OperationContext
from .dataplane import DataplaneClient
from .exceptions import ReconcileError, ReconcileKeyCollisionError
from .kinds import ParentRef, ReconcileStrategy, ResourceKind
from .state import IndexedPayloadModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiffPlan:
    """Calls turning an existing ordered list into the desired one.

    The calls must run in this order: deletes, creates, updates.

    Attrs:
        deletes: Indexes to delete, highest first.
        creates: Children to insert, in ascending index order.
        updates: Children to write over the slot at their index.
    """

    deletes: list[int] = Field(default_factory=list)
    creates: list[IndexedPayloadModel] = Field(default_factory=list)
    updates: list[IndexedPayloadModel] = Field(default_factory=list)

    @property
    def empty(self) -> bool:
        """Indicate if the lists already match.

        Returns:
            bool: True when no call is needed.
        """
        return not (self.deletes or self.creates or self.updates)


def _keys_by_position(
    kind: ResourceKind, children: typing.Sequence[IndexedPayloadModel], side: str
) -> list[tuple]:
    """Compute the content key of every child, rejecting duplicates.

    Args:
        kind: The child kind.
        children: The children.
        side: existing or desired, for the error message.

    Raises:
        ReconcileKeyCollisionError: When two children share a content key.

    Returns:
        list: The content keys, in list order.
    """
    keys = [kind.content_key(child) for child in children]
    seen: set[tuple] = set()
    for key in keys:
        if key in seen:
            raise ReconcileKeyCollisionError(
                f"two {side} {kind.collection} share the identity {key!r}, "
                f"fields: {', '.join(kind.key_fields)}"
            )
        seen.add(key)
    return keys


def plan_diff(
    kind: ResourceKind,
    existing: typing.Sequence[IndexedPayloadModel],
    desired: typing.Sequence[IndexedPayloadModel],
) -> DiffPlan:
    """Plan the calls turning the existing list into the desired one.

    Children are matched by content key, never by position. A matched child
    that moved or changed is updated in place, never deleted and recreated.

    Args:
        kind: The child kind.
        existing: The remote list, ordered by index.
        desired: The desired list; list order is the target order.

    Returns:
        DiffPlan: The calls to issue.
    """
    existing = sorted(existing, key=lambda child: typing.cast(int, child.index))
    existing_keys = _keys_by_position(kind, existing, "existing")
    desired_keys = _keys_by_position(kind, desired, "desired")
    wanted = set(desired_keys)
    present = set(existing_keys)

    deletes = sorted(
        (
            typing.cast(int, child.index)
            for child, key in zip(existing, existing_keys)
            if key not in wanted
        ),
        reverse=True,
    )

    # Replay the calls on a local copy to find the slots still holding the wrong child.
    working = [child.content() for child, key in zip(existing, existing_keys) if key in wanted]
    creates = []
    for position, (child, key) in enumerate(zip(desired, desired_keys)):
        if key not in present:
            created = child.at(position)
            creates.append(created)
            working.insert(position, created.content())

    updates = [
        child.at(position)
        for position, child in enumerate(desired)
        if working[position] != child.content()
    ]
    return DiffPlan(deletes=deletes, creates=creates, updates=updates)


class OrderedChildReconciler:
    """Reconcile the ordered children of one kind under a parent section.

    Attrs:
        client: The Data Plane API client.
        kind: The child kind.
        strategy: The reconcile strategy.
    """

    def __init__(
        self,
        client: DataplaneClient,
        kind: ResourceKind,
        strategy: typing.Optional[ReconcileStrategy] = None,
    ):
        """Initialize the reconciler.

        Args:
            client: The Data Plane API client.
            kind: An indexed child kind.
            strategy: Reconcile strategy, the kind's default if omitted.

        Raises:
            ReconcileError: When the kind is not an indexed child kind.
        """
        if not kind.indexed:
            raise ReconcileError(f"{kind.name} children are not ordered")
        self.client = client
        self.kind = kind
        self.strategy = strategy or kind.strategy or ReconcileStrategy.REPLACE_ALL

    def create(
        self,
        transaction_id: str,
        parent: ParentRef,
        desired: typing.Sequence[IndexedPayloadModel],
        ctx: typing.Optional[OperationContext] = None,
    ) -> list[IndexedPayloadModel]:
        """Create the desired list under a parent without children.

        Args:
            transaction_id: The transaction ID.
            parent: The owning section.
            desired: The children in their target order.
            ctx: Cancellation context.

        Returns:
            list: The children with their index set.
        """
        ordered = [child.at(position) for position, child in enumerate(desired)]
        if ordered:
            self.client.replace_all(transaction_id, self.kind, ordered, parent, ctx=ctx)
        return ordered

    def reconcile(
        self,
        transaction_id: str,
        parent: ParentRef,
        desired: typing.Sequence[IndexedPayloadModel],
        ctx: typing.Optional[OperationContext] = None,
    ) -> list[IndexedPayloadModel]:
        """Bring the remote list under a parent to the desired list.

        Args:
            transaction_id: The transaction ID.
            parent: The owning section.
            desired: The children in their target order, possibly empty.
            ctx: Cancellation context.

        Returns:
            list: The children with their index set.
        """
        existing = typing.cast(
            list[IndexedPayloadModel],
            self.client.list(self.kind, parent, transaction_id=transaction_id, ctx=ctx),
        )
        if self.strategy == ReconcileStrategy.DIFF:
            return self._reconcile_diff(transaction_id, parent, existing, desired, ctx)
        self._delete(transaction_id, parent, existing, ctx)
        return self.create(transaction_id, parent, desired, ctx)

    def delete_all(
        self,
        transaction_id: str,
        parent: ParentRef,
        ctx: typing.Optional[OperationContext] = None,
    ) -> None:
        """Delete every child under a parent.

        Args:
            transaction_id: The transaction ID.
            parent: The owning section.
            ctx: Cancellation context.
        """
        existing = typing.cast(
            list[IndexedPayloadModel],
            self.client.list(self.kind, parent, transaction_id=transaction_id, ctx=ctx),
        )
        self._delete(transaction_id, parent, existing, ctx)

    def _delete(
        self,
        transaction_id: str,
        parent: ParentRef,
        existing: typing.Sequence[IndexedPayloadModel],
        ctx: typing.Optional[OperationContext],
    ) -> None:
        """Delete children highest index first.

        Args:
            transaction_id: The transaction ID.
            parent: The owning section.
            existing: The children to delete.
            ctx: Cancellation context.
        """
        indexes = sorted((typing.cast(int, child.index) for child in existing), reverse=True)
        for index in indexes:
            self.client.delete(transaction_id, self.kind, index, parent, ctx=ctx)
        if indexes:
            logger.debug("Deleted %d %s under %s", len(indexes), self.kind.collection, parent)

    def _reconcile_diff(
        self,
        transaction_id: str,
        parent: ParentRef,
        existing: typing.Sequence[IndexedPayloadModel],
        desired: typing.Sequence[IndexedPayloadModel],
        ctx: typing.Optional[OperationContext],
    ) -> list[IndexedPayloadModel]:
        """Apply the minimal set of calls.

        Args:
            transaction_id: The transaction ID.
            parent: The owning section.
            existing: The remote list.
            desired: The children in their target order.
            ctx: Cancellation context.

        Returns:
            list: The children with their index set.
        """
        plan = plan_diff(self.kind, existing, desired)
        logger.debug(
            "%s under %s: %d deletes, %d creates, %d updates",
            self.kind.collection,
            parent,
            len(plan.deletes),
            len(plan.creates),
            len(plan.updates),
        )
        for index in plan.deletes:
            self.client.delete(transaction_id, self.kind, index, parent, ctx=ctx)
        for child in plan.creates:
            self.client.create(transaction_id, self.kind, child, parent, ctx=ctx)
        for child in plan.updates:
            self.client.replace(transaction_id, self.kind, child, parent, ctx=ctx)
        return [child.at(position) for position, child in enumerate(desired)]

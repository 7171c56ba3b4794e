# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""Apply a backend, its servers and a frontend together in one transaction."""

import contextlib
import logging
import typing

from pydantic import Field
from pydantic.dataclasses import dataclass

from .context import OperationContext
from .dataplane import DataplaneClient
from .exceptions import BundleError, DataplaneAPIError, OperationCancelledError, ProviderError
from .kinds import ACL, BACKEND, FRONTEND, SERVER, ParentRef
from .state import Acl, Backend, Frontend, Server
from .transaction import TransactionCoordinator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BundleServer:
    """A server of a bundle with the section it belongs to.

    Attrs:
        parent: The owning backend.
        payload: The server.
    """

    parent: ParentRef
    payload: Server


@dataclass(frozen=True)
class BundleAcl:
    """An ACL of a bundle with the section it belongs to.

    Attrs:
        parent: The owning frontend or backend.
        payload: The ACL, its index is its position under the parent.
    """

    parent: ParentRef
    payload: Acl


@dataclass(frozen=True)
class ResourceBundle:
    """Entities applied together because they reference each other.

    Attrs:
        backend: The backend, if any.
        servers: Servers in application order.
        frontend: The frontend, if any.
        acls: ACLs in application order.
    """

    backend: typing.Optional[Backend] = None
    servers: list[BundleServer] = Field(default_factory=list)
    frontend: typing.Optional[Frontend] = None
    acls: list[BundleAcl] = Field(default_factory=list)


class BundleSequencer:
    """Issue the calls of a bundle in dependency order inside one transaction.

    Creation goes backend, servers, frontend, ACLs; deletion goes the other
    way round. The first failing step aborts the sequence.
    """

    def __init__(self, client: DataplaneClient):
        """Initialize the sequencer.

        Args:
            client: The Data Plane API client.
        """
        self.client = client

    def apply(
        self,
        transaction_id: str,
        bundle: ResourceBundle,
        ctx: typing.Optional[OperationContext] = None,
    ) -> None:
        """Create every entity of the bundle.

        Args:
            transaction_id: The transaction ID.
            bundle: The entities to create.
            ctx: Cancellation context.
        """
        if bundle.backend is not None:
            backend = bundle.backend
            with _step("backend creation"):
                self.client.create(transaction_id, BACKEND, backend, ctx=ctx)
        for position, server in enumerate(bundle.servers, start=1):
            with _step(f"server {position} creation"):
                self.client.create(transaction_id, SERVER, server.payload, server.parent, ctx=ctx)
        if bundle.frontend is not None:
            frontend = bundle.frontend
            with _step("frontend creation"):
                self.client.create(transaction_id, FRONTEND, frontend, ctx=ctx)
        for position, acl in enumerate(bundle.acls, start=1):
            with _step(f"ACL {position} creation"):
                self.client.create(transaction_id, ACL, acl.payload, acl.parent, ctx=ctx)
        logger.info("Bundle created in transaction %s", transaction_id)

    def update(
        self,
        transaction_id: str,
        bundle: ResourceBundle,
        ctx: typing.Optional[OperationContext] = None,
    ) -> None:
        """Replace every entity of the bundle, ACLs by index.

        Args:
            transaction_id: The transaction ID.
            bundle: The new content of the entities.
            ctx: Cancellation context.
        """
        if bundle.backend is not None:
            backend = bundle.backend
            with _step("backend update"):
                self.client.replace(transaction_id, BACKEND, backend, ctx=ctx)
        for position, server in enumerate(bundle.servers, start=1):
            with _step(f"server {position} update"):
                self.client.replace(transaction_id, SERVER, server.payload, server.parent, ctx=ctx)
        if bundle.frontend is not None:
            frontend = bundle.frontend
            with _step("frontend update"):
                self.client.replace(transaction_id, FRONTEND, frontend, ctx=ctx)
        for position, acl in enumerate(bundle.acls, start=1):
            with _step(f"ACL {position} update"):
                self.client.replace(transaction_id, ACL, acl.payload, acl.parent, ctx=ctx)
        logger.info("Bundle updated in transaction %s", transaction_id)

    def delete(
        self,
        transaction_id: str,
        bundle: ResourceBundle,
        ctx: typing.Optional[OperationContext] = None,
    ) -> None:
        """Delete every entity of the bundle in reverse dependency order.

        ACLs are deleted highest index first so the remaining indexes stay valid.
        An ACL that is already gone is skipped.

        Args:
            transaction_id: The transaction ID.
            bundle: The entities to delete.
            ctx: Cancellation context.
        """
        acls = sorted(bundle.acls, key=lambda acl: acl.payload.index or 0, reverse=True)
        for acl in acls:
            index = acl.payload.index if acl.payload.index is not None else 0
            try:
                with _step(f"ACL {index} deletion"):
                    self.client.delete(transaction_id, ACL, index, acl.parent, ctx=ctx)
            except BundleError as exc:
                if not _is_not_found(exc):
                    raise
                logger.warning("ACL %d of %s not found, skipping: %s", index, acl.parent, exc)
        if bundle.frontend is not None:
            frontend_name = bundle.frontend.name
            with _step("frontend deletion"):
                self.client.delete(transaction_id, FRONTEND, frontend_name, ctx=ctx)
        for position, server in enumerate(bundle.servers, start=1):
            with _step(f"server {position} deletion"):
                self.client.delete(
                    transaction_id, SERVER, server.payload.name, server.parent, ctx=ctx
                )
        if bundle.backend is not None:
            backend_name = bundle.backend.name
            with _step("backend deletion"):
                self.client.delete(transaction_id, BACKEND, backend_name, ctx=ctx)
        logger.info("Bundle deleted in transaction %s", transaction_id)


@contextlib.contextmanager
def _step(name: str) -> typing.Iterator[None]:
    """Name the bundle step provider errors come from.

    Args:
        name: Description of the step.

    Yields:
        Nothing, the step runs in the with block.

    Raises:
        BundleError: When the step raised a provider error.
    """
    logger.debug("Bundle step: %s", name)
    try:
        yield
    except (BundleError, OperationCancelledError):
        raise
    except ProviderError as exc:
        logger.error("Bundle step %s failed: %s", name, exc)
        raise BundleError(name, exc) from exc


def _is_not_found(error: BundleError) -> bool:
    """Tell whether a bundle step failed because its target is missing.

    Args:
        error: The step error.

    Returns:
        bool: True for a 404 from the API.
    """
    cause = error.__cause__
    return isinstance(cause, DataplaneAPIError) and cause.status_code == 404


def create_bundle(
    coordinator: TransactionCoordinator,
    bundle: ResourceBundle,
    ctx: typing.Optional[OperationContext] = None,
) -> None:
    """Create a bundle in its own transaction, retrying on conflicts.

    Args:
        coordinator: The transaction coordinator.
        bundle: The entities to create.
        ctx: Cancellation context.
    """
    sequencer = BundleSequencer(coordinator.client)
    coordinator.run(lambda transaction_id: sequencer.apply(transaction_id, bundle, ctx), ctx)


def update_bundle(
    coordinator: TransactionCoordinator,
    bundle: ResourceBundle,
    ctx: typing.Optional[OperationContext] = None,
) -> None:
    """Update a bundle in its own transaction, retrying on conflicts.

    Args:
        coordinator: The transaction coordinator.
        bundle: The new content of the entities.
        ctx: Cancellation context.
    """
    sequencer = BundleSequencer(coordinator.client)
    coordinator.run(lambda transaction_id: sequencer.update(transaction_id, bundle, ctx), ctx)


def delete_bundle(
    coordinator: TransactionCoordinator,
    bundle: ResourceBundle,
    ctx: typing.Optional[OperationContext] = None,
) -> None:
    """Delete a bundle in its own transaction, retrying on conflicts.

    Args:
        coordinator: The transaction coordinator.
        bundle: The entities to delete.
        ctx: Cancellation context.
    """
    sequencer = BundleSequencer(coordinator.client)
    coordinator.run(lambda transaction_id: sequencer.delete(transaction_id, bundle, ctx), ctx)

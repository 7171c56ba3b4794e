# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""REST gateway to the HAProxy Data Plane API."""

import logging
import re
import threading
import typing
from concurrent.futures import ThreadPoolExecutor
from urllib.parse import quote

import requests

from .config import ApiVersion, ProviderConfig
from .context import OperationContext
from .exceptions import (
    DataplaneAPIError,
    DataplaneTransportError,
    DataplaneVersionConflictError,
    OperationCancelledError,
    PayloadValidationError,
)
from .kinds import ParentRef, ResourceKind
from .state import IndexedPayloadModel, PayloadModel

logger = logging.getLogger(__name__)

CONFIGURATION_PATH = "/services/haproxy/configuration"
TRANSACTIONS_PATH = "/services/haproxy/transactions"
SENSITIVE_FIELDS = ("password", "token", "secret", "key", "auth")
_SENSITIVE_FIELD_RE = re.compile(r'"(%s)":\s*"[^"]*"' % "|".join(SENSITIVE_FIELDS))
_INVALID_PASSWORD_RE = re.compile(r'invalid password:\s*[^\s"]*')
# Requests abandoned on cancellation keep a worker until their socket times out.
MAX_IN_FLIGHT = 4

Key = typing.Union[str, int]


def sanitize_body(body: str) -> str:
    """Mask credentials in a response body before it gets logged.

    Args:
        body: Raw response body.

    Returns:
        str: The body with sensitive values replaced by ***.
    """
    body = _SENSITIVE_FIELD_RE.sub(lambda match: f'"{match.group(1)}": "***"', body)
    return _INVALID_PASSWORD_RE.sub("invalid password: ***", body)


def _unwrap(data: typing.Any) -> typing.Any:
    """Strip the v2 {"_version", "data"} envelope.

    Args:
        data: Decoded response body.

    Returns:
        The payload inside the envelope, or data unchanged.
    """
    if isinstance(data, dict) and "_version" in data and "data" in data:
        return data["data"]
    return data


class DataplaneClient:
    """Client of the HAProxy Data Plane API, v2 and v3.

    Every entity kind goes through the same handful of operations; where the
    entity lives in the API is derived from its ResourceKind.
    """

    def __init__(self, config: ProviderConfig, session: typing.Optional[requests.Session] = None):
        """Initialize the client.

        Args:
            config: The provider configuration.
            session: Session to use, a new one is created if omitted.
        """
        self.config = config
        self._base = config.base_url
        self._session = session if session is not None else requests.Session()
        self._session.auth = (config.username, config.password)
        self._session.headers["Content-Type"] = "application/json"
        self._session.verify = not config.insecure
        self._executor = ThreadPoolExecutor(
            max_workers=MAX_IN_FLIGHT, thread_name_prefix="dataplane"
        )

    @property
    def api_version(self) -> ApiVersion:
        """Get the API version this client talks.

        Returns:
            ApiVersion: v2 or v3.
        """
        return self.config.api_version

    def get_configuration_version(self, ctx: typing.Optional[OperationContext] = None) -> int:
        """Get the current configuration version.

        Args:
            ctx: Cancellation context.

        Returns:
            int: The version the next transaction must be opened against.
        """
        data = self._request("GET", f"{CONFIGURATION_PATH}/version", ctx=ctx)
        if isinstance(data, dict):
            data = data.get("version", data.get("data"))
        return int(data)

    def create_transaction(
        self, version: int, ctx: typing.Optional[OperationContext] = None
    ) -> str:
        """Open a transaction against a configuration version.

        Args:
            version: Configuration version.
            ctx: Cancellation context.

        Returns:
            str: The transaction ID.
        """
        data = self._request("POST", TRANSACTIONS_PATH, params={"version": version}, ctx=ctx)
        return data["id"]

    def begin_transaction(self, ctx: typing.Optional[OperationContext] = None) -> str:
        """Open a transaction against the current configuration version.

        Args:
            ctx: Cancellation context.

        Returns:
            str: The transaction ID.
        """
        version = self.get_configuration_version(ctx=ctx)
        transaction_id = self.create_transaction(version, ctx=ctx)
        logger.info("Opened transaction %s at version %d", transaction_id, version)
        return transaction_id

    def commit_transaction(
        self, transaction_id: str, ctx: typing.Optional[OperationContext] = None
    ) -> None:
        """Commit a transaction.

        Args:
            transaction_id: The transaction ID.
            ctx: Cancellation context.
        """
        self._request("PUT", f"{TRANSACTIONS_PATH}/{transaction_id}", ctx=ctx)
        logger.info("Committed transaction %s", transaction_id)

    def rollback_transaction(
        self, transaction_id: str, ctx: typing.Optional[OperationContext] = None
    ) -> None:
        """Discard a transaction.

        Args:
            transaction_id: The transaction ID.
            ctx: Cancellation context.
        """
        self._request("DELETE", f"{TRANSACTIONS_PATH}/{transaction_id}", ctx=ctx)
        logger.info("Rolled back transaction %s", transaction_id)

    def list(
        self,
        kind: ResourceKind,
        parent: typing.Optional[ParentRef] = None,
        *,
        transaction_id: typing.Optional[str] = None,
        ctx: typing.Optional[OperationContext] = None,
    ) -> list[PayloadModel]:
        """List the entities of a kind.

        Args:
            kind: The entity kind.
            parent: Owning section for child kinds.
            transaction_id: Read through this transaction instead of the running configuration.
            ctx: Cancellation context.

        Returns:
            list: The entities, ordered by index for indexed kinds. Empty when the API answers 404.
        """
        path, params = self._collection_path(kind, parent)
        params = self._with_txn(params, transaction_id)
        try:
            data = self._request("GET", path, params=params, ctx=ctx)
        except DataplaneAPIError as exc:
            if exc.status_code == 404:
                return []
            raise
        if not data:
            return []
        items = [kind.load(item) for item in data]
        if kind.indexed:
            indexed = typing.cast(list[IndexedPayloadModel], items)
            positioned = [
                item if item.index is not None else item.at(position)
                for position, item in enumerate(indexed)
            ]
            items = sorted(positioned, key=lambda item: typing.cast(int, item.index))
        return items

    def get(
        self,
        kind: ResourceKind,
        key: typing.Optional[Key] = None,
        parent: typing.Optional[ParentRef] = None,
        *,
        transaction_id: typing.Optional[str] = None,
        ctx: typing.Optional[OperationContext] = None,
    ) -> typing.Optional[PayloadModel]:
        """Get one entity.

        Args:
            kind: The entity kind.
            key: Name or index of the entity, None for singletons.
            parent: Owning section for child kinds.
            transaction_id: Read through this transaction instead of the running configuration.
            ctx: Cancellation context.

        Returns:
            The entity, or None when it does not exist.
        """
        path, params = self._item_path(kind, parent, key)
        params = self._with_txn(params, transaction_id)
        try:
            data = self._request("GET", path, params=params, ctx=ctx)
        except DataplaneAPIError as exc:
            if exc.status_code == 404:
                return None
            raise
        if data is None:
            return None
        payload = kind.load(data)
        if kind.indexed and isinstance(payload, IndexedPayloadModel) and payload.index is None:
            payload = payload.at(int(typing.cast(int, key)))
        return payload

    def create(
        self,
        transaction_id: str,
        kind: ResourceKind,
        payload: PayloadModel,
        parent: typing.Optional[ParentRef] = None,
        *,
        ctx: typing.Optional[OperationContext] = None,
    ) -> None:
        """Create an entity inside a transaction.

        Indexed children are inserted at their index.

        Args:
            transaction_id: The transaction ID.
            kind: The entity kind.
            payload: The entity.
            parent: Owning section for child kinds.
            ctx: Cancellation context.

        Raises:
            PayloadValidationError: When the kind is a singleton or an indexed child has no index.
        """
        if kind.singleton:
            raise PayloadValidationError(f"{kind.name} cannot be created, only replaced")
        if kind.indexed and self.api_version == ApiVersion.V3:
            path, params = self._item_path(kind, parent, self._require_index(kind, payload))
        else:
            path, params = self._collection_path(kind, parent)
        self._request(
            "POST",
            path,
            params=self._with_txn(params, transaction_id),
            json=self._body(kind, payload),
            ctx=ctx,
        )

    def replace(
        self,
        transaction_id: str,
        kind: ResourceKind,
        payload: PayloadModel,
        parent: typing.Optional[ParentRef] = None,
        key: typing.Optional[Key] = None,
        *,
        ctx: typing.Optional[OperationContext] = None,
    ) -> None:
        """Replace an entity inside a transaction.

        Args:
            transaction_id: The transaction ID.
            kind: The entity kind.
            payload: The new content.
            parent: Owning section for child kinds.
            key: Name or index to replace, taken from the payload if omitted.
            ctx: Cancellation context.
        """
        if key is None and not kind.singleton:
            key = (
                self._require_index(kind, payload) if kind.indexed else kind.key_of(payload)
            )
        path, params = self._item_path(kind, parent, key)
        self._request(
            "PUT",
            path,
            params=self._with_txn(params, transaction_id),
            json=self._body(kind, payload),
            ctx=ctx,
        )

    def delete(
        self,
        transaction_id: str,
        kind: ResourceKind,
        key: Key,
        parent: typing.Optional[ParentRef] = None,
        *,
        ctx: typing.Optional[OperationContext] = None,
    ) -> None:
        """Delete an entity inside a transaction.

        Args:
            transaction_id: The transaction ID.
            kind: The entity kind.
            key: Name or index of the entity.
            parent: Owning section for child kinds.
            ctx: Cancellation context.

        Raises:
            PayloadValidationError: When the kind is a singleton.
        """
        if kind.singleton:
            raise PayloadValidationError(f"{kind.name} cannot be deleted")
        path, params = self._item_path(kind, parent, key)
        self._request("DELETE", path, params=self._with_txn(params, transaction_id), ctx=ctx)

    def supports_bulk_replace(self, kind: ResourceKind) -> bool:
        """Indicate if the whole collection of a kind can be replaced in one call.

        Args:
            kind: The entity kind.

        Returns:
            bool: True on v3 for indexed kinds.
        """
        return kind.indexed and self.api_version == ApiVersion.V3

    def replace_all(
        self,
        transaction_id: str,
        kind: ResourceKind,
        items: typing.Sequence[IndexedPayloadModel],
        parent: ParentRef,
        *,
        ctx: typing.Optional[OperationContext] = None,
    ) -> None:
        """Submit a complete ordered collection.

        On v3 the list is sent in one PUT on the collection. On v2, which has
        no bulk endpoint, every item is posted at its position in ascending
        order, so the collection must be empty beforehand.

        Args:
            transaction_id: The transaction ID.
            kind: An indexed kind.
            items: The collection in its final order.
            parent: Owning section.
            ctx: Cancellation context.
        """
        ordered = [item.at(position) for position, item in enumerate(items)]
        if self.supports_bulk_replace(kind):
            path, params = self._collection_path(kind, parent)
            logger.debug("Replacing %d %s under %s", len(ordered), kind.collection, parent)
            self._request(
                "PUT",
                path,
                params=self._with_txn(params, transaction_id),
                json=[item.content() for item in ordered],
                ctx=ctx,
            )
            return
        for item in ordered:
            self.create(transaction_id, kind, item, parent, ctx=ctx)

    def _collection_path(
        self, kind: ResourceKind, parent: typing.Optional[ParentRef]
    ) -> tuple[str, dict[str, typing.Any]]:
        """Build the path and query of a kind's collection.

        Args:
            kind: The entity kind.
            parent: Owning section for child kinds.

        Returns:
            tuple: The path and the query parameters.
        """
        kind.check_parent(parent)
        if parent is None:
            collection = kind.collection
            if self.api_version == ApiVersion.V3 and kind.v3_collection:
                collection = kind.v3_collection
            return f"{CONFIGURATION_PATH}/{collection}", {}
        if self.api_version == ApiVersion.V3:
            section = f"{parent.section}/{quote(parent.parent_name, safe='')}"
            return f"{CONFIGURATION_PATH}/{section}/{kind.collection}", {}
        if kind.v2_parent_query == "parent":
            params = {"parent_type": parent.parent_type, "parent_name": parent.parent_name}
        else:
            params = {kind.v2_parent_query: parent.parent_name}
        return f"{CONFIGURATION_PATH}/{kind.collection}", params

    def _item_path(
        self, kind: ResourceKind, parent: typing.Optional[ParentRef], key: typing.Optional[Key]
    ) -> tuple[str, dict[str, typing.Any]]:
        """Build the path and query of one entity.

        Args:
            kind: The entity kind.
            parent: Owning section for child kinds.
            key: Name or index of the entity, None for singletons.

        Raises:
            PayloadValidationError: When a non singleton kind has no key.

        Returns:
            tuple: The path and the query parameters.
        """
        path, params = self._collection_path(kind, parent)
        if kind.singleton:
            return path, params
        if key is None or key == "":
            raise PayloadValidationError(f"{kind.name} requires a name or index")
        return f"{path}/{quote(str(key), safe='')}", params

    def _body(self, kind: ResourceKind, payload: PayloadModel) -> dict[str, typing.Any]:
        """Serialize a payload for the wire.

        The index travels in the path on v3 and in the body on v2.

        Args:
            kind: The entity kind.
            payload: The entity.

        Returns:
            dict: The JSON body.
        """
        if kind.indexed and self.api_version == ApiVersion.V3:
            return typing.cast(IndexedPayloadModel, payload).content()
        return payload.dump()

    @staticmethod
    def _require_index(kind: ResourceKind, payload: PayloadModel) -> int:
        """Get the index of an indexed child.

        Args:
            kind: The entity kind.
            payload: The child.

        Raises:
            PayloadValidationError: When the index is missing.

        Returns:
            int: The index.
        """
        index = kind.key_of(payload)
        if index is None:
            raise PayloadValidationError(f"{kind.name} requires an index")
        return int(index)

    @staticmethod
    def _with_txn(
        params: dict[str, typing.Any], transaction_id: typing.Optional[str]
    ) -> dict[str, typing.Any]:
        """Add the transaction to query parameters.

        Args:
            params: Query parameters.
            transaction_id: The transaction ID, if any.

        Returns:
            dict: The query parameters.
        """
        if transaction_id:
            return {**params, "transaction_id": transaction_id}
        return params

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: typing.Optional[dict[str, typing.Any]] = None,
        json: typing.Any = None,
        ctx: typing.Optional[OperationContext] = None,
    ) -> typing.Any:
        """Send a request and decode its response.

        Args:
            method: HTTP method.
            path: Path below the versioned base URL.
            params: Query parameters.
            json: JSON body.
            ctx: Cancellation context.

        Raises:
            OperationCancelledError: When the context is cancelled or its deadline is reached.
            DataplaneTransportError: When the request could not be completed.
            DataplaneVersionConflictError: When the API answers 409.
            DataplaneAPIError: When the API answers with any other error status.

        Returns:
            The decoded and unwrapped JSON body, None for empty bodies.
        """
        timeout = self.config.timeout
        if ctx is not None:
            ctx.raise_if_cancelled()
            remaining = ctx.remaining()
            if remaining is not None:
                timeout = min(timeout, remaining)

        logger.debug("%s %s params=%s", method, path, params)
        try:
            response = self._send(
                method, path, params=params, json=json, timeout=timeout, ctx=ctx
            )
        except requests.RequestException as exc:
            if ctx is not None and ctx.cancelled:
                raise OperationCancelledError(f"{method} {path} interrupted: {exc}") from exc
            raise DataplaneTransportError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            raise self._api_error(method, path, response)

        if not response.content:
            return None
        try:
            return _unwrap(response.json())
        except ValueError as exc:
            raise DataplaneAPIError(
                response.status_code, f"invalid JSON in response to {method} {path}"
            ) from exc

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: typing.Optional[dict[str, typing.Any]],
        json: typing.Any,
        timeout: float,
        ctx: typing.Optional[OperationContext],
    ) -> requests.Response:
        """Send a request, giving up on it as soon as the context gets cancelled.

        With a context the request runs on a worker thread while the caller
        waits for either its completion or the cancellation. An abandoned
        request has its connections closed and its response discarded.

        Args:
            method: HTTP method.
            path: Path below the versioned base URL.
            params: Query parameters.
            json: JSON body.
            timeout: Request timeout in seconds.
            ctx: Cancellation context.

        Raises:
            OperationCancelledError: When the context is cancelled before the response arrives.

        Returns:
            requests.Response: The response.
        """
        url = f"{self._base}{path}"
        if ctx is None:
            return self._session.request(method, url, params=params, json=json, timeout=timeout)
        future = self._executor.submit(
            self._session.request, method, url, params=params, json=json, timeout=timeout
        )
        finished = threading.Event()
        future.add_done_callback(lambda _: finished.set())
        unregister = ctx.on_cancel(finished.set)
        try:
            finished.wait(ctx.remaining())
        finally:
            unregister()
        if not future.done():
            logger.warning("%s %s cancelled while in flight", method, path)
            self._session.close()
            raise OperationCancelledError(f"{method} {path} cancelled while in flight")
        return future.result()

    @staticmethod
    def _api_error(method: str, path: str, response: requests.Response) -> DataplaneAPIError:
        """Build the error matching an error response.

        Args:
            method: HTTP method of the request.
            path: Path of the request.
            response: The error response.

        Returns:
            DataplaneAPIError: The error to raise.
        """
        body = response.text
        logger.debug(
            "%s %s answered %d: %s", method, path, response.status_code, sanitize_body(body)
        )
        message = body or "Unknown error"
        code = None
        try:
            decoded = response.json()
        except ValueError:
            decoded = None
        if isinstance(decoded, dict) and decoded.get("message"):
            message = str(decoded["message"])
            code = decoded.get("code")
        # 409 also answers the creation of an object that already exists.
        if response.status_code == 409 and "already exists" not in message:
            return DataplaneVersionConflictError(response.status_code, message, code)
        return DataplaneAPIError(response.status_code, message, code)

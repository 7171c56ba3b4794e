# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""Base payload model shared by every Data Plane API entity."""

import logging
import typing

from pydantic import BaseModel, ConfigDict, ValidationError
from typing_extensions import Self

from ..exceptions import PayloadValidationError

logger = logging.getLogger(__name__)


class PayloadModel(BaseModel):
    """Base payload model."""

    model_config = ConfigDict(
        # keep fields this provider does not model so they survive a round trip
        extra="allow",
        # Allow instantiating this class by field name (instead of forcing alias).
        populate_by_name=True,
    )

    @classmethod
    def load(cls, data: typing.Mapping[str, typing.Any]) -> Self:
        """Load this model from a decoded API payload.

        Args:
            data: The decoded JSON object.

        Raises:
            PayloadValidationError: When the payload does not match the model.

        Returns:
            The validated model.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            msg = f"failed to validate {cls.__name__}: {e}"
            logger.debug(msg, exc_info=True)
            raise PayloadValidationError(msg) from e

    def dump(self) -> dict[str, typing.Any]:
        """Dump the model as the JSON object sent to the API.

        Returns:
            dict: Wire payload without unset values.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class IndexedPayloadModel(PayloadModel):
    """Payload of a child addressed by its 0-based position in an ordered list.

    Attrs:
        index: Position of the child; also its identity for update and delete.
    """

    index: typing.Optional[int] = None

    def content(self) -> dict[str, typing.Any]:
        """Get the wire payload without its position.

        Returns:
            dict: The payload minus the index.
        """
        data = self.dump()
        data.pop("index", None)
        return data

    def at(self, index: int) -> Self:
        """Copy this child to another position.

        Args:
            index: The new position.

        Returns:
            A copy with the index set.
        """
        return self.model_copy(update={"index": index})

# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""haproxy-provider configuration."""

import itertools
import logging
import os
import typing
from enum import StrEnum

from pydantic import Field, ValidationError, field_validator
from pydantic.dataclasses import dataclass

from .exceptions import InvalidProviderConfigError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
ENV_PREFIX = "HAPROXY_"
TRUE_VALUES = {"1", "true", "yes", "on"}


class ApiVersion(StrEnum):
    """StrEnum of supported Data Plane API versions.

    Attrs:
        V2: Data Plane API v2, flat collections with parent query parameters.
        V3: Data Plane API v3, children nested under their parent.
    """

    V2 = "v2"
    V3 = "v3"


@dataclass(frozen=True)
class ProviderConfig:
    """Configuration of the provider.

    Attributes:
        url: Base URL of the Data Plane API, without the version segment.
        username: Basic auth user.
        password: Basic auth password.
        insecure: Skip TLS certificate verification.
        api_version: Data Plane API version to talk.
        timeout: Per-request timeout in seconds.
    """

    url: str = Field(min_length=1)
    username: str = Field(min_length=1)
    password: str = Field(min_length=1, repr=False)
    insecure: bool = False
    api_version: ApiVersion = ApiVersion.V3
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)

    @field_validator("url")
    @classmethod
    def validate_url(cls, url: str) -> str:
        """Validate the URL scheme and strip trailing slashes.

        Args:
            url: The configured URL.

        Raises:
            ValueError: When the URL is not http(s).

        Returns:
            str: The normalized URL.
        """
        if not url.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return url.rstrip("/")

    @property
    def base_url(self) -> str:
        """Get the versioned base URL.

        Returns:
            str: URL all API paths are appended to.
        """
        return f"{self.url}/{self.api_version}"

    @classmethod
    def from_mapping(
        cls,
        raw: typing.Mapping[str, typing.Any],
        environ: typing.Optional[typing.Mapping[str, str]] = None,
    ) -> "ProviderConfig":
        """Create a ProviderConfig from the provider block, falling back to the environment.

        Args:
            raw: Values set in the provider configuration block.
            environ: Environment to read fallbacks from, defaults to os.environ.

        Raises:
            InvalidProviderConfigError: When the configuration is invalid.

        Returns:
            ProviderConfig: Instance of the provider configuration.
        """
        environ = os.environ if environ is None else environ
        values: dict[str, typing.Any] = {}
        for field in ("url", "username", "password", "insecure", "api_version", "timeout"):
            value = raw.get(field)
            if value is None:
                value = environ.get(f"{ENV_PREFIX}{field.upper()}")
                if value is not None and field == "insecure":
                    value = value.strip().lower() in TRUE_VALUES
            if value is not None:
                values[field] = value

        try:
            return cls(**values)
        except ValidationError as exc:
            error_field_str = ",".join(
                sorted(f"{field}" for field in get_invalid_config_fields(exc))
            )
            logger.error("Invalid provider configuration: %s", error_field_str)
            raise InvalidProviderConfigError(
                f"invalid configuration: {error_field_str}"
            ) from exc


def get_invalid_config_fields(exc: ValidationError) -> typing.Set[int | str]:
    """Return a list on invalid config from pydantic validation error.

    Args:
        exc: The validation error exception.

    Returns:
        str: list of fields that failed validation.
    """
    error_fields = set(itertools.chain.from_iterable(error["loc"] for error in exc.errors()))
    return error_fields

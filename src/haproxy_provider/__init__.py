# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""HAProxy Data Plane API infrastructure provider."""

from .provider import HAProxyProvider

__all__ = ["HAProxyProvider"]

"""In-memory credential store, for tests and embedding applications."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping

from pystepflow.credentials.base import CredentialStore


class InMemoryCredentialStore(CredentialStore):
    """Secrets held in a dict keyed by integration reference.

    Attributes:
        lookups: Number of get() calls, per reference
    """

    def __init__(self, integrations: Mapping[str | None, Mapping[str, str]] | None = None):
        self._integrations: dict[str | None, dict[str, str]] = {
            ref: dict(secrets) for ref, secrets in (integrations or {}).items()
        }
        self._lock = asyncio.Lock()
        self.lookups: dict[str | None, int] = {}

    async def get(self, reference: str | None) -> Mapping[str, str] | None:
        async with self._lock:
            self.lookups[reference] = self.lookups.get(reference, 0) + 1
            secrets = self._integrations.get(reference)
            return dict(secrets) if secrets is not None else None

    async def put(self, reference: str | None, secrets: Mapping[str, str]) -> None:
        async with self._lock:
            self._integrations[reference] = dict(secrets)

    async def remove(self, reference: str | None) -> None:
        """Delete an integration, e.g. to simulate revocation."""
        async with self._lock:
            self._integrations.pop(reference, None)

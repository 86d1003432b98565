"""Abstract credential store.

A store maps an opaque integration reference to a flat mapping of secret
names to values. The reference `None` asks for the process defaults.
Stores return None for an unknown reference; that is not an error here,
the resolver turns it into MissingCredential.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping


class CredentialStore(ABC):
    @abstractmethod
    async def get(self, reference: str | None) -> Mapping[str, str] | None:
        """Secrets for `reference`, or None when it does not exist."""

    async def close(self) -> None:
        """Release resources; no-op unless the store holds connections."""

"""Credentials from environment variables.

This is the default source for nodes without an integration reference,
matching how exported programs read their secrets.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping

from pystepflow.credentials.base import CredentialStore


class EnvironmentCredentialStore(CredentialStore):
    """Reads the given keys from the environment, whatever the reference.

    Args:
        keys: Variable names to expose; None exposes the whole environment
        environ: Mapping to read instead of os.environ
    """

    def __init__(self, keys: Iterable[str] | None = None, environ: Mapping[str, str] | None = None):
        self._keys = tuple(keys) if keys is not None else None
        self._environ = environ

    async def get(self, reference: str | None) -> Mapping[str, str] | None:
        environ = os.environ if self._environ is None else self._environ
        if self._keys is None:
            return {k: v for k, v in environ.items() if v}
        return {key: environ[key] for key in self._keys if environ.get(key)}

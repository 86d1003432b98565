"""
Credential resolution with a per-run cache.

Each integration reference is fetched at most once per run: the result is
cached in the run's ExecutionContext and reused by every node that names
the same reference. A reference that was not found stays missing for the
rest of the run. Nothing is cached across runs, so a secret rotated
between runs is picked up by the next one.

Secret values are never logged; only key names are.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pystepflow.actions.base import ActionDescriptor
from pystepflow.core.context import ExecutionContext, get_current_context
from pystepflow.core.errors import MissingCredential
from pystepflow.credentials.base import CredentialStore

logger = logging.getLogger(__name__)


class CredentialResolver:
    """Fetches secrets for integration references.

    Args:
        store: Store addressed by integration reference
        defaults: Store consulted for nodes without a reference (process
            defaults); None means such nodes get no secrets
    """

    def __init__(self, store: CredentialStore | None = None, defaults: CredentialStore | None = None):
        self.store = store
        self.defaults = defaults

    async def fetch(
        self, reference: str | None, ctx: ExecutionContext | None = None
    ) -> dict[str, str]:
        """All secrets for `reference`, cached in the run context.

        Raises:
            MissingCredential: The reference does not exist in the store
        """
        ctx = ctx or get_current_context()
        if ctx is not None and reference in ctx.credential_cache:
            cached = ctx.credential_cache[reference]
            if cached is None:
                raise MissingCredential(reference)
            return cached

        source = self.store if reference is not None else self.defaults
        if source is None:
            if reference is not None:
                raise MissingCredential(reference)
            secrets: Mapping[str, str] | None = {}
        else:
            secrets = await source.get(reference)
        if secrets is None:
            if ctx is not None:
                ctx.credential_cache[reference] = None
            raise MissingCredential(reference)

        resolved = {str(k): str(v) for k, v in secrets.items() if v is not None}
        logger.debug(
            f"Resolved credentials for {reference or '<defaults>'}: keys={sorted(resolved)}"
        )
        if ctx is not None:
            ctx.credential_cache[reference] = resolved
        return resolved

    async def secrets_for(
        self,
        action: ActionDescriptor,
        reference: str | None,
        ctx: ExecutionContext | None = None,
    ) -> dict[str, str]:
        """Secrets handed to `action`, checked against its required keys.

        Without a reference only the action's declared keys are passed on;
        with one the whole integration mapping is passed, which is what
        native/http-request needs to pick its auth header.

        Raises:
            MissingCredential: Reference unknown, or a required key absent
        """
        if reference is None and not action.credential_keys:
            return {}
        secrets = await self.fetch(reference, ctx)
        for key in action.required_credentials:
            if not secrets.get(key):
                raise MissingCredential(reference, key)
        if reference is None:
            return {key: secrets[key] for key in action.credential_keys if key in secrets}
        return dict(secrets)

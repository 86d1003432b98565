"""
Engine configuration.

Feature toggles and timeouts are passed explicitly to the registry and the
executor; nothing reads ambient process state after construction. The
environment is only consulted by `EngineConfig.from_env`, which callers
invoke deliberately.

Examples:
    config = EngineConfig.DEFAULT

    config = EngineConfig(http_timeout=10.0, enable_ai_actions=False)

    # STEPFLOW_HTTP_TIMEOUT=5 STEPFLOW_ENABLE_AI_ACTIONS=false
    config = EngineConfig.from_env()
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any, cast

ENV_PREFIX = "STEPFLOW_"

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class EngineConfig:
    """Explicit configuration for the registry, actions and executor."""

    http_timeout: float = 30.0
    """Per-request timeout in seconds for every HTTP-backed action."""

    enable_ai_actions: bool = True
    """Register the ai-gateway actions. Disabled graphs using them fail
    validation with UnknownActionId."""

    ai_gateway_base_url: str = "https://ai-gateway.vercel.sh/v1"
    """OpenAI-compatible endpoint used by ai-gateway/generate-text."""

    checkpoint_path: str | None = None
    """SQLite file for durable checkpoints; None keeps them in memory."""

    default_credentials_from_env: bool = True
    """Resolve nodes without an integration reference from environment variables."""

    status_history: int = 1000
    """Finished runs whose status the executor remembers; older ones are forgotten."""

    if TYPE_CHECKING:
        DEFAULT: EngineConfig
    else:
        DEFAULT = cast("EngineConfig", None)

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, prefix: str = ENV_PREFIX
    ) -> EngineConfig:
        """Build a config from `<prefix><FIELD>` variables, defaults elsewhere.

        Raises:
            ValueError: If a variable cannot be converted to the field type
        """
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = environ.get(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            values[f.name] = _convert(f.name, raw, getattr(cls.DEFAULT, f.name))
        return cls(**values)


def _convert(name: str, raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        lowered = raw.strip().lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
        raise ValueError(f"Invalid boolean for {name}: {raw!r}")
    if isinstance(default, (int, float)):
        try:
            return type(default)(raw)
        except ValueError:
            raise ValueError(f"Invalid number for {name}: {raw!r}") from None
    return raw or None if default is None else raw


EngineConfig.DEFAULT = EngineConfig()

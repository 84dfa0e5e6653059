"""Generator configuration schema and loader.

Settings come from environment variables (optionally loaded from a ``.env``
file at the project root by ``startup.ensure_initialized``). Command-line
options override them through ``GeneratorSettings.with_overrides``.

Environment variables:
    PLAN_FIXTURES_OPA            opa executable (default: opa)
    PLAN_FIXTURES_DEFAULT_SRC    source tree used when only DST is given
    PLAN_FIXTURES_PRUNE_UNUSED   prune code unreachable from entry points
    PLAN_FIXTURES_V0_COMPATIBLE  parse Rego with v0 syntax rules
    PLAN_FIXTURES_TIMEOUT        per-command engine timeout in seconds
"""

import logging
import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_SRC_PATH = "opa/test/cases/testdata"

ENV_PREFIX = "PLAN_FIXTURES_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got '{value}'")


class GeneratorSettings(BaseModel):
    """Effective configuration for one generator run.

    Attributes:
        opa_binary: Executable used to reach the policy engine.
        default_src: Source tree used when the CLI gets only a destination.
        prune_unused: Ask the plan compiler to drop unreachable code.
        v0_compatible: Parse and compile modules with Rego v0 syntax rules.
        timeout_seconds: Per-command engine timeout; None waits forever.
    """

    opa_binary: str = Field(
        default="opa",
        description="opa executable name or path",
        min_length=1,
    )
    default_src: str = Field(
        default=DEFAULT_SRC_PATH,
        description="Source tree used when only DST is given",
        min_length=1,
    )
    prune_unused: bool = Field(
        default=True,
        description="Prune code not reachable from the entry points",
    )
    v0_compatible: bool = Field(
        default=False,
        description="Treat modules as Rego v0",
    )
    timeout_seconds: Optional[float] = Field(
        default=None,
        description="Per-command engine timeout in seconds",
    )

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        """Timeouts must be positive when set."""
        if v is not None and v <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return v

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GeneratorSettings":
        """Build settings from ``PLAN_FIXTURES_*`` environment variables."""
        env = os.environ if environ is None else environ
        values = {}

        if env.get(f"{ENV_PREFIX}OPA"):
            values["opa_binary"] = env[f"{ENV_PREFIX}OPA"]
        if env.get(f"{ENV_PREFIX}DEFAULT_SRC"):
            values["default_src"] = env[f"{ENV_PREFIX}DEFAULT_SRC"]
        for key, field_name in (
            ("PRUNE_UNUSED", "prune_unused"),
            ("V0_COMPATIBLE", "v0_compatible"),
        ):
            name = f"{ENV_PREFIX}{key}"
            if name in env:
                values[field_name] = _parse_bool(name, env[name])
        if env.get(f"{ENV_PREFIX}TIMEOUT"):
            values["timeout_seconds"] = float(env[f"{ENV_PREFIX}TIMEOUT"])

        settings = cls(**values)
        logger.debug(f"Loaded settings from environment: {settings.model_dump()}")
        return settings

    def with_overrides(self, **overrides) -> "GeneratorSettings":
        """Return a copy with every non-None override applied and validated."""
        updates = {k: v for k, v in overrides.items() if v is not None}
        if not updates:
            return self
        return GeneratorSettings(**{**self.model_dump(), **updates})

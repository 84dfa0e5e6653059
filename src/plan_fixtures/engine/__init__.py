"""Adapters for the external policy engine."""

from plan_fixtures.engine.base import (
    EngineError,
    EngineUnavailableError,
    EvalRequest,
    EvaluationError,
    PlanCompileError,
    PolicyEngine,
    PolicyParseError,
)
from plan_fixtures.engine.builtins import (
    CustomBuiltin,
    register_builtin,
    register_default_builtins,
    registered_builtins,
)
from plan_fixtures.engine.opa_cli import OpaCliEngine

__all__ = [
    "CustomBuiltin",
    "EngineError",
    "EngineUnavailableError",
    "EvalRequest",
    "EvaluationError",
    "OpaCliEngine",
    "PlanCompileError",
    "PolicyEngine",
    "PolicyParseError",
    "register_builtin",
    "register_default_builtins",
    "registered_builtins",
]

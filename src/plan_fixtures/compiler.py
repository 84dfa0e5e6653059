"""Compiler driver: compile a test case's modules into one execution plan."""

import logging
from typing import Dict, List

from plan_fixtures.engine.base import PolicyEngine
from plan_fixtures.modules import ModuleFile

logger = logging.getLogger(__name__)


class PlanCountError(Exception):
    """Raised when a compiled bundle does not hold exactly one plan."""
    pass


def plan_modules(module_files: List[ModuleFile]) -> Dict[str, str]:
    """Sources submitted to the plan compiler; rule-less modules are left out."""
    return {m.key: m.source for m in module_files if m.rule_count > 0}


def compile_plan(
    engine: PolicyEngine,
    module_files: List[ModuleFile],
    entrypoints: List[str],
    prune_unused: bool = False,
) -> bytes:
    """Build a plan bundle restricted to ``entrypoints`` and return its plan.

    Raises:
        PlanCompileError: If the engine rejects the bundle
        PlanCountError: If the bundle holds zero or several plans
    """
    plans = engine.build_plan(
        plan_modules(module_files),
        entrypoints,
        prune_unused=prune_unused,
    )
    if len(plans) != 1:
        raise PlanCountError(f"Unexpected plan count: {len(plans)}")

    logger.debug(f"Compiled plan for {entrypoints} ({len(plans[0])} bytes)")
    return plans[0]

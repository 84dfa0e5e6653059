"""Module files and entry point derivation for a test case."""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List

from plan_fixtures.engine.base import PolicyEngine
from plan_fixtures.schemas.test_case import TestCase

logger = logging.getLogger(__name__)

DATA_PREFIX = "data/"

_VAR_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def ref_to_string(terms: List[Dict[str, Any]]) -> str:
    """Render a reference (list of JSON AST terms) as dotted Rego text.

    ``[var data, "example", "allow"]`` -> ``data.example.allow``. Segments
    that are not valid identifiers use bracket notation.
    """
    parts: List[str] = []
    for index, term in enumerate(terms):
        value = term.get("value")
        if index == 0:
            parts.append(str(value))
        elif term.get("type") == "string" and isinstance(value, str) and _VAR_RE.match(value):
            parts.append(f".{value}")
        else:
            parts.append(f"[{json.dumps(value)}]")
    return "".join(parts)


@dataclass
class ModuleFile:
    """A parsed policy module paired with its synthetic key."""

    key: str
    source: str
    parsed: Dict[str, Any]

    @property
    def package_path(self) -> str:
        return ref_to_string(self.parsed.get("package", {}).get("path", []))

    @property
    def rule_count(self) -> int:
        return len(self.parsed.get("rules") or [])


def module_sources(case: TestCase) -> Dict[str, str]:
    """Key a case's modules as ``mod_0``, ``mod_1``, ..."""
    return {f"mod_{i}": source for i, source in enumerate(case.modules)}


def get_module_files(engine: PolicyEngine, sources: Dict[str, str]) -> List[ModuleFile]:
    """Parse modules in lexical key order.

    Raises:
        PolicyParseError: If any module is not valid Rego. A malformed
            module means a broken fixture, so callers let this abort.
    """
    return [
        ModuleFile(key=key, source=sources[key], parsed=engine.parse_module(key, sources[key]))
        for key in sorted(sources)
    ]


def entrypoint_for(package_path: str) -> str:
    """``data.example.allow`` -> ``example/allow``."""
    path = package_path.replace(".", "/")
    if path.startswith(DATA_PREFIX):
        path = path[len(DATA_PREFIX):]
    return path


def derive_entrypoints(module_files: List[ModuleFile]) -> List[str]:
    """One entry point per module that declares at least one rule.

    Order follows ``module_files``; repeated packages yield one entry point.
    """
    entrypoints: List[str] = []
    for module in module_files:
        if module.rule_count == 0:
            logger.info(f"Skipping module {module.key} ({module.package_path}): no rules")
            continue
        entrypoint = entrypoint_for(module.package_path)
        # A package split over several modules is one document, so one entry point.
        if entrypoint not in entrypoints:
            entrypoints.append(entrypoint)
    return entrypoints

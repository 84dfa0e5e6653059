"""
Pytest fixtures and configuration for plan_fixtures tests.
Provides a fake policy engine and helpers to build definition trees.
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import yaml

from plan_fixtures import startup
from plan_fixtures.engine import builtins
from plan_fixtures.engine.base import (
    EvalRequest,
    EvaluationError,
    PlanCompileError,
    PolicyEngine,
    PolicyParseError,
)

_PACKAGE_RE = re.compile(r"^\s*package\s+([\w.]+)\s*$", re.MULTILINE)
_RULE_RE = re.compile(r"^\s*(?!package\b|import\b|#)\w[\w\[\]\"]*.*(:=|=|\{|\bif\b|\bcontains\b)")


class FakeEngine(PolicyEngine):
    """In-process stand-in for the opa executable.

    - Modules parse when they declare ``package a.b``; every line that looks
      like a rule counts as one rule.
    - A module containing ``UNDEFINED`` fails plan compilation.
    - A module containing ``EVAL_ERROR`` fails evaluation.
    - Evaluation binds every query variable to ``results_value`` unless
      ``results`` overrides the whole result set.
    """

    def __init__(
        self,
        *,
        plans: Optional[List[bytes]] = None,
        results: Optional[List[Dict[str, Any]]] = None,
        results_value: Any = True,
    ):
        self.plans = plans
        self.results = results
        self.results_value = results_value
        self.parse_calls: List[str] = []
        self.build_calls: List[Dict[str, Any]] = []
        self.eval_calls: List[EvalRequest] = []

    def parse_module(self, name: str, source: str) -> Dict[str, Any]:
        self.parse_calls.append(name)
        match = _PACKAGE_RE.search(source)
        if match is None:
            raise PolicyParseError(f"{name}: 1 error occurred: package expected")

        path = [{"type": "var", "value": "data"}] + [
            {"type": "string", "value": part} for part in match.group(1).split(".")
        ]
        rules = [{"line": line} for line in source.splitlines() if _RULE_RE.match(line)]
        return {"package": {"path": path}, "rules": rules}

    def build_plan(self, modules, entrypoints, prune_unused=False):
        self.build_calls.append({
            "modules": dict(modules),
            "entrypoints": list(entrypoints),
            "prune_unused": prune_unused,
        })
        if any("UNDEFINED" in source for source in modules.values()):
            raise PlanCompileError("rego_unsafe_var_error: var UNDEFINED is unsafe")
        if self.plans is not None:
            return list(self.plans)
        plan = {
            "static": {"strings": [], "files": sorted(modules)},
            "plans": {"plans": [{"name": ep, "blocks": []} for ep in entrypoints]},
            "funcs": {"funcs": []},
        }
        return [json.dumps(plan).encode("utf-8")]

    def evaluate(self, request: EvalRequest):
        self.eval_calls.append(request)
        if any("EVAL_ERROR" in source for source in request.modules.values()):
            raise EvaluationError("eval_conflict_error: complete rules must not produce multiple outputs")
        if self.results is not None:
            return [dict(r) for r in self.results]
        variables = [expr.split(" = ", 1)[0] for expr in request.query]
        return [{var: self.results_value for var in variables}]

    def version(self) -> str:
        return "Version: fake"


@pytest.fixture
def fake_engine():
    """A fresh FakeEngine."""
    return FakeEngine()


@pytest.fixture(autouse=True)
def clean_global_state():
    """Isolate the builtin registry and startup cache between tests."""
    builtins.clear_builtins()
    startup.reset()
    yield
    builtins.clear_builtins()
    startup.reset()


def write_definitions(path: Path, cases: List[Dict[str, Any]]) -> Path:
    """Write a YAML definition file holding ``cases``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump({"cases": cases}, sort_keys=False), encoding="utf-8")
    return path


@pytest.fixture
def source_tree(tmp_path):
    """Definition tree with two groups, one file each.

    ``allow/test-allow.yaml`` holds a plain case and one expecting an error;
    ``broken/test-broken.yaml`` holds one uncompilable and one valid case.
    """
    root = tmp_path / "testdata"
    write_definitions(root / "allow" / "test-allow.yaml", [
        {
            "note": "allow/unconditional",
            "query": "data.example.allow = x",
            "modules": ["package example\n\nallow := true\n"],
            "want_result": [{"x": True}],
        },
        {
            "note": "allow/conflict",
            "query": "data.example.p = x",
            "modules": ["package example\n\np := 1\np := 2\n"],
            "want_error_code": "eval_conflict_error",
            "want_error": "complete rules must not produce multiple outputs",
        },
    ])
    write_definitions(root / "broken" / "test-broken.yaml", [
        {
            "note": "broken/undefined",
            "query": "data.broken.p = x",
            "modules": ["package broken\n\np := UNDEFINED\n"],
        },
        {
            "note": "broken/sibling",
            "query": "data.sibling.q = x",
            "modules": ["package sibling\n\nq := input.x\n"],
            "input": {"x": 7},
        },
    ])
    return root


@pytest.fixture
def write_cases():
    """Helper writing a YAML definition file: ``write_cases(path, cases)``."""
    return write_definitions


@pytest.fixture
def engine_factory():
    """The FakeEngine class, for tests that need custom plans or results."""
    return FakeEngine

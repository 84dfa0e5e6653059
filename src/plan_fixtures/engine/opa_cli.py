"""Policy engine backed by the ``opa`` command-line tool.

Every operation writes its inputs into a private temporary directory, runs
one ``opa`` subcommand and decodes its JSON output:

- ``opa parse --format json``  -> module syntax tree
- ``opa build --target plan``  -> bundle tarball holding ``plan.json``
- ``opa eval --format json``   -> result sets with variable bindings
"""

from __future__ import annotations

import json
import logging
import subprocess
import tarfile
import tempfile
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Sequence, Type

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
    extend_capabilities,
    registered_builtins,
)
from plan_fixtures.schemas.test_case import ResultMap

logger = logging.getLogger(__name__)

PLAN_FILENAME = "plan.json"


def read_plan_documents(bundle_path: Path) -> List[bytes]:
    """Return the raw bytes of every plan document in a bundle tarball."""
    plans = []
    with tarfile.open(bundle_path, "r:gz") as tar:
        for member in tar.getmembers():
            if not member.isfile():
                continue
            if PurePosixPath(member.name).name != PLAN_FILENAME:
                continue
            fh = tar.extractfile(member)
            if fh is not None:
                plans.append(fh.read())
    return plans


def format_engine_errors(stdout: str, stderr: str) -> str:
    """Best-effort single message from an ``opa`` failure."""
    try:
        payload = json.loads(stdout)
    except (json.JSONDecodeError, TypeError):
        payload = None

    if isinstance(payload, dict) and payload.get("errors"):
        messages = []
        for err in payload["errors"]:
            code = err.get("code")
            message = err.get("message", "")
            messages.append(f"{code}: {message}" if code else message)
        return "; ".join(messages)

    return (stderr or stdout or "").strip() or "unknown engine error"


class OpaCliEngine(PolicyEngine):
    """PolicyEngine implementation driving the ``opa`` executable.

    Attributes:
        binary: Executable name or path
        v0_compatible: Parse and compile with Rego v0 syntax rules
        timeout: Optional per-command timeout in seconds
    """

    def __init__(
        self,
        binary: str = "opa",
        *,
        v0_compatible: bool = False,
        timeout: Optional[float] = None,
    ):
        self.binary = binary
        self.v0_compatible = v0_compatible
        self.timeout = timeout
        self._base_capabilities: Optional[Dict[str, Any]] = None

    # ------------------------------------------------------------------
    # Process plumbing
    # ------------------------------------------------------------------

    def _run(
        self,
        args: Sequence[str],
        error_cls: Type[EngineError] = EngineError,
    ) -> subprocess.CompletedProcess:
        cmd = [self.binary, *args]
        logger.debug("Running: %s", " ".join(cmd))
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise EngineUnavailableError(
                f"opa executable not found: {self.binary}"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise error_cls(f"opa {args[0]} timed out after {self.timeout}s") from e

    def _compat_args(self) -> List[str]:
        return ["--v0-compatible"] if self.v0_compatible else []

    def _capabilities_args(self, workdir: Path) -> List[str]:
        """Write an extended capabilities file when custom builtins exist."""
        builtins = registered_builtins()
        if not builtins:
            return []

        capabilities = extend_capabilities(self._current_capabilities(), builtins)
        path = workdir / "capabilities.json"
        path.write_text(json.dumps(capabilities), encoding="utf-8")
        return ["--capabilities", str(path)]

    def _current_capabilities(self) -> Dict[str, Any]:
        if self._base_capabilities is None:
            result = self._run(["capabilities", "--current"])
            if result.returncode != 0:
                raise EngineError(
                    "Failed to read engine capabilities: "
                    + format_engine_errors(result.stdout, result.stderr)
                )
            self._base_capabilities = json.loads(result.stdout)
        return self._base_capabilities

    @staticmethod
    def _write_modules(directory: Path, modules: Dict[str, str]) -> None:
        directory.mkdir(parents=True, exist_ok=True)
        for name, source in modules.items():
            filename = name if name.endswith(".rego") else f"{name}.rego"
            (directory / filename).write_text(source, encoding="utf-8")

    # ------------------------------------------------------------------
    # PolicyEngine
    # ------------------------------------------------------------------

    def parse_module(self, name: str, source: str) -> Dict[str, Any]:
        with tempfile.TemporaryDirectory(prefix="plan-fixtures-") as tmp:
            workdir = Path(tmp)
            self._write_modules(workdir, {name: source})
            path = workdir / (name if name.endswith(".rego") else f"{name}.rego")

            result = self._run(
                ["parse", "--format", "json", *self._compat_args(), str(path)],
                PolicyParseError,
            )

        if result.returncode != 0:
            raise PolicyParseError(
                f"{name}: {format_engine_errors(result.stdout, result.stderr)}"
            )

        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise PolicyParseError(f"{name}: unreadable syntax tree: {e}") from e

    def build_plan(
        self,
        modules: Dict[str, str],
        entrypoints: List[str],
        prune_unused: bool = False,
    ) -> List[bytes]:
        with tempfile.TemporaryDirectory(prefix="plan-fixtures-") as tmp:
            workdir = Path(tmp)
            src_dir = workdir / "src"
            self._write_modules(src_dir, modules)
            bundle_path = workdir / "bundle.tar.gz"

            args = ["build", "--target", "plan", "--output", str(bundle_path)]
            for entrypoint in entrypoints:
                args.extend(["--entrypoint", entrypoint])
            if prune_unused:
                args.append("--prune-unused")
            args.extend(self._compat_args())
            args.extend(self._capabilities_args(workdir))
            args.append(str(src_dir))

            result = self._run(args, PlanCompileError)
            if result.returncode != 0:
                raise PlanCompileError(format_engine_errors(result.stdout, result.stderr))

            try:
                return read_plan_documents(bundle_path)
            except (OSError, tarfile.TarError) as e:
                raise PlanCompileError(f"Unreadable plan bundle: {e}") from e

    def evaluate(self, request: EvalRequest) -> List[ResultMap]:
        builtins = registered_builtins()

        with tempfile.TemporaryDirectory(prefix="plan-fixtures-") as tmp:
            workdir = Path(tmp)
            policy_dir = workdir / "policy"
            self._write_modules(policy_dir, request.modules)

            # data.json at the directory root seeds the store's root document.
            if request.data is not None:
                (policy_dir / "data.json").write_text(
                    json.dumps(request.data), encoding="utf-8"
                )

            args = ["eval", "--format", "json", "--data", str(policy_dir)]

            if request.input_term is None and request.input is not None:
                input_path = workdir / "input.json"
                input_path.write_text(json.dumps(request.input), encoding="utf-8")
                args.extend(["--input", str(input_path)])

            if request.strict_builtin_errors:
                args.append("--strict-builtin-errors")

            args.extend(self._compat_args())
            args.extend(self._capabilities_args(workdir))
            args.append(build_query_text(request.query, request.input_term, builtins))

            result = self._run(args, EvaluationError)

        if result.returncode != 0:
            raise EvaluationError(format_engine_errors(result.stdout, result.stderr))

        try:
            payload = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise EvaluationError(f"Unreadable evaluation output: {e}") from e

        if payload.get("errors"):
            raise EvaluationError(format_engine_errors(result.stdout, result.stderr))

        return [dict(entry.get("bindings") or {}) for entry in payload.get("result", [])]

    def version(self) -> str:
        result = self._run(["version"])
        if result.returncode != 0:
            raise EngineError(format_engine_errors(result.stdout, result.stderr))
        return result.stdout.strip()


def build_query_text(
    expressions: List[str],
    input_term: Optional[str] = None,
    builtins: Optional[List[CustomBuiltin]] = None,
) -> str:
    """Join query expressions, attaching input and builtin ``with`` modifiers.

    A pre-serialized input term cannot be passed as an input file, so it is
    bound with ``with input as <term>`` on every expression.
    """
    modifiers = []
    if input_term is not None:
        modifiers.append(f"with input as {input_term}")
    for builtin in builtins or []:
        modifiers.append(builtin.mock_modifier())

    suffix = (" " + " ".join(modifiers)) if modifiers else ""
    return "; ".join(f"{expr}{suffix}" for expr in expressions)

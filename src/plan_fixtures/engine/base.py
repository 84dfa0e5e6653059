"""
Policy engine abstraction.

Responsibility: Define the contract the generator needs from the external
policy engine (parser, plan compiler, query evaluator).

High-level modules (loader, drivers, CLI) do not depend on how the engine is
reached. They depend on the PolicyEngine abstraction, so the command-line
adapter can be swapped for a library binding or a remote service without
touching the pipeline.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from plan_fixtures.schemas.test_case import ResultMap


class EngineError(Exception):
    """Base class for errors reported by the policy engine."""
    pass


class EngineUnavailableError(EngineError):
    """Raised when the engine cannot be started at all."""
    pass


class PolicyParseError(EngineError):
    """Raised when a policy module cannot be parsed."""
    pass


class PlanCompileError(EngineError):
    """Raised when the engine fails to compile a plan bundle."""
    pass


class EvaluationError(EngineError):
    """Raised when query compilation or evaluation fails."""
    pass


@dataclass
class EvalRequest:
    """Everything needed to evaluate one query.

    The engine seeds a fresh in-memory store from ``data`` (empty when None),
    opens a single transaction and runs ``query`` to completion. When both
    are supplied, ``input_term`` wins over ``input``.
    """

    query: List[str]
    modules: Dict[str, str]
    data: Optional[Dict[str, Any]] = None
    input: Optional[Any] = None
    input_term: Optional[str] = None
    strict_builtin_errors: bool = False


class PolicyEngine(ABC):
    """
    Abstract interface for the external policy engine.

    Stateless from the caller's point of view: every call receives all the
    sources it needs and leaves nothing behind.
    """

    @abstractmethod
    def parse_module(self, name: str, source: str) -> Dict[str, Any]:
        """
        Parse one policy module.

        Args:
            name: Synthetic module key (used in error locations)
            source: Rego source text

        Returns:
            The module syntax tree as a JSON document. The tree exposes
            ``package.path`` (list of terms) and ``rules``.

        Raises:
            PolicyParseError: If the source is not valid Rego
        """
        pass

    @abstractmethod
    def build_plan(
        self,
        modules: Dict[str, str],
        entrypoints: List[str],
        prune_unused: bool = False,
    ) -> List[bytes]:
        """
        Compile modules into a plan bundle restricted to the entry points.

        Args:
            modules: Module key -> Rego source
            entrypoints: Slash-separated entry point paths
            prune_unused: Drop code not reachable from the entry points

        Returns:
            Raw bytes of every plan document found in the bundle

        Raises:
            PlanCompileError: If compilation fails
        """
        pass

    @abstractmethod
    def evaluate(self, request: EvalRequest) -> List[ResultMap]:
        """
        Evaluate a query and return its result sets.

        Returns:
            Zero or more variable bindings, one map per result

        Raises:
            EvaluationError: If the query cannot be compiled or evaluated
        """
        pass

    @abstractmethod
    def version(self) -> str:
        """Return the engine version report."""
        pass

"""Evaluator driver: compute the expected result of a test case's plan.

The query binds one variable per entry point to the entry point's document,
e.g. ``example_allow = data.example.allow``, and is evaluated against the
case's modules, base data and input.
"""

import logging
import re
from typing import Dict, List

from plan_fixtures.engine.base import EvalRequest, EvaluationError, PolicyEngine
from plan_fixtures.schemas.test_case import ResultMap, TestCase

logger = logging.getLogger(__name__)

_NON_WORD_RE = re.compile(r"\W")


class ResultCountError(Exception):
    """Raised when a query yields more than one result set, or one that
    does not bind exactly the query variables."""
    pass


def query_variable(entrypoint: str) -> str:
    """``example/allow`` -> ``example_allow``."""
    return _NON_WORD_RE.sub("_", entrypoint)


def query_variables(entrypoints: List[str]) -> List[str]:
    """Distinct query variable per entry point.

    ``a/b_c`` and ``a_b/c`` both flatten to ``a_b_c``; later collisions get
    the entry point's index appended (``a_b_c_1``).
    """
    variables: List[str] = []
    for index, entrypoint in enumerate(entrypoints):
        name = query_variable(entrypoint)
        candidate = name
        suffix = index
        while candidate in variables:
            candidate = f"{name}_{suffix}"
            suffix += 1
        variables.append(candidate)
    return variables


def query_reference(entrypoint: str) -> str:
    """``example/allow`` -> ``data.example.allow``."""
    return "data." + entrypoint.replace("/", ".")


def create_query(entrypoints: List[str]) -> List[str]:
    """One ``<var> = data.<path>`` expression per entry point."""
    return [
        f"{var} = {query_reference(ep)}"
        for var, ep in zip(query_variables(entrypoints), entrypoints)
    ]


def evaluation_modules(case: TestCase) -> Dict[str, str]:
    return {f"test-{i}.rego": source for i, source in enumerate(case.modules)}


def evaluate_expected(
    engine: PolicyEngine,
    case: TestCase,
    entrypoints: List[str],
) -> List[ResultMap]:
    """Evaluate the entry point query for one case.

    Engine errors are swallowed (yielding no result sets) when the case
    declares an expected error; callers normally skip such cases entirely.

    Raises:
        EvaluationError: If evaluation fails for a case expected to succeed
        ResultCountError: If more than one result set is produced, or the
            result does not bind every query variable
    """
    request = EvalRequest(
        query=create_query(entrypoints),
        modules=evaluation_modules(case),
        data=case.data,
        input=case.input,
        input_term=case.input_term,
        strict_builtin_errors=case.strict_error,
    )

    try:
        results = engine.evaluate(request)
    except EvaluationError as e:
        if not case.expects_error():
            raise
        logger.debug(f"Ignoring expected evaluation error in '{case.note}': {e}")
        return []

    if len(results) > 1:
        raise ResultCountError("ResultSet contains more than one entry")

    if results:
        expected = set(query_variables(entrypoints))
        bound = set(results[0])
        if bound != expected:
            raise ResultCountError(
                f"Result binds {sorted(bound)}, expected {sorted(expected)}"
            )

    return results

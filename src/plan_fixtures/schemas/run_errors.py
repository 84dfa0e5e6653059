"""Failure taxonomy for fixture generation runs.

Provides stable reason codes for classifying per-case and per-file failures.
These codes are used in the run summary and in log lines for consistent
categorization.
"""

from enum import Enum


class FailureReason(str, Enum):
    """Stable reason codes for non-fatal generation failures."""

    # Plan compilation issues
    COMPILE_FAILED = "COMPILE_FAILED"  # Engine rejected the bundle
    PLAN_COUNT = "PLAN_COUNT"  # Bundle did not contain exactly one plan

    # Expected-result evaluation issues
    EVAL_FAILED = "EVAL_FAILED"  # Engine error while evaluating the query
    RESULT_COUNT = "RESULT_COUNT"  # Result set did not contain exactly one entry

    # Output issues
    PLAN_DECODE = "PLAN_DECODE"  # Plan bytes were not a JSON document
    MARSHAL_FAILED = "MARSHAL_FAILED"  # Fixture could not be serialized
    WRITE_FAILED = "WRITE_FAILED"  # Failed to write fixture file

"""Pydantic schemas for test case definitions and run results."""

from plan_fixtures.schemas.run_errors import FailureReason
from plan_fixtures.schemas.run_summary import RunSummary
from plan_fixtures.schemas.test_case import (
    ExtendedTestCase,
    JsonValue,
    ResultMap,
    TestCase,
    TestFile,
)

__all__ = [
    "ExtendedTestCase",
    "FailureReason",
    "JsonValue",
    "ResultMap",
    "RunSummary",
    "TestCase",
    "TestFile",
]

"""
Plan Fixtures - compliance fixture generator for policy execution plans.

This package reads Rego test case definitions, compiles each case into an
execution plan with the Open Policy Agent toolchain, evaluates the same
modules to capture the expected result, and writes both into JSON fixtures
for plan-executor compliance suites.
"""

__version__ = "0.1.0"

from plan_fixtures.generator import FixtureGenerator, generate
from plan_fixtures.loader import load_tests

__all__ = [
    "FixtureGenerator",
    "generate",
    "load_tests",
]

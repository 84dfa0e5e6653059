"""Fixture writer: decode plans and write per-file JSON fixtures."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

from plan_fixtures.schemas.test_case import ExtendedTestCase, JsonValue, TestFile

logger = logging.getLogger(__name__)

FIXTURE_SUFFIX = ".json"

# Case fields dropped from the output when empty or false.
_OMIT_EMPTY = {"modules", "env", "sort_bindings", "strict_error"}

# Generated fields, always written last and always present.
_GENERATED_FIELDS = ("entrypoints", "plan", "want_plan_result")


class PlanDecodeError(Exception):
    """Raised when compiled plan bytes are not a usable JSON document."""
    pass


class FixtureMarshalError(Exception):
    """Raised when a fixture document cannot be serialized."""
    pass


class FixtureWriteError(Exception):
    """Raised when a serialized fixture cannot be written."""
    pass


def decode_plan(raw: bytes) -> JsonValue:
    """Decode raw plan bytes into a generic JSON tree.

    Raises:
        PlanDecodeError: If the bytes are not JSON or decode to nothing
    """
    try:
        plan = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise PlanDecodeError(f"Failed to unmarshal plan: {e}") from e

    if plan is None or plan == {} or plan == []:
        raise PlanDecodeError("Failed to unmarshal plan: empty document")

    return plan


def sort_tree(value: Any) -> Any:
    """Copy of a JSON tree with every mapping's keys in sorted order."""
    if isinstance(value, dict):
        return {key: sort_tree(value[key]) for key in sorted(value)}
    if isinstance(value, list):
        return [sort_tree(item) for item in value]
    return value


def destination_for(source: Union[str, Path], dst_root: Union[str, Path]) -> Path:
    """Mirror ``<group>/<name>.yaml`` as ``<dst_root>/<group>/<name>.json``."""
    source = Path(source)
    return Path(dst_root) / source.parent.name / source.with_suffix(FIXTURE_SUFFIX).name


def fixture_case(case: ExtendedTestCase) -> Dict[str, Any]:
    """Output record for one case: declared fields, extras, generated fields."""
    record: Dict[str, Any] = {}
    for key, value in case.model_dump(exclude=set(_GENERATED_FIELDS)).items():
        if value is None:
            continue
        if key in _OMIT_EMPTY and not value:
            continue
        record[key] = sort_tree(value)

    record["entrypoints"] = case.entrypoints
    record["plan"] = sort_tree(case.plan)
    record["want_plan_result"] = sort_tree(case.want_plan_result)
    return record


class FixtureWriter:
    """Serialize test files and write them under a destination root."""

    def __init__(self, dst_root: Union[str, Path]):
        self.dst_root = Path(dst_root)

    def marshal(self, test_file: TestFile) -> str:
        """Tab-indented JSON for a whole test file.

        Raises:
            FixtureMarshalError: If a value is not JSON-serializable
        """
        document = {"cases": [fixture_case(case) for case in test_file.cases]}
        try:
            return json.dumps(document, indent="\t", ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise FixtureMarshalError(f"Failed to marshal {test_file.filename}: {e}") from e

    def write(self, test_file: TestFile) -> Path:
        """Marshal and write one test file; returns the fixture path.

        Directory creation errors propagate (fatal for the run).

        Raises:
            FixtureMarshalError: If the file cannot be serialized
            FixtureWriteError: If the fixture cannot be written
        """
        payload = self.marshal(test_file)
        destination = destination_for(test_file.filename or "", self.dst_root)

        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            destination.write_text(payload, encoding="utf-8")
        except OSError as e:
            raise FixtureWriteError(f"Failed to write {destination}: {e}") from e

        logger.debug(f"Wrote {len(test_file.cases)} cases to {destination}")
        return destination

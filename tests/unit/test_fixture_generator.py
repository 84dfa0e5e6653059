"""Tests for the run driver: counting, skipping and writing."""

import json
from unittest.mock import patch

import pytest

from plan_fixtures.config import GeneratorSettings
from plan_fixtures.engine import builtins
from plan_fixtures.engine.base import EngineUnavailableError, PolicyParseError
from plan_fixtures.generator import FixtureGenerator, generate
from plan_fixtures.schemas.run_errors import FailureReason
from plan_fixtures.writer import FixtureWriteError


def _read_cases(path):
    return json.loads(path.read_text(encoding="utf-8"))["cases"]


class TestGenerate:
    """End-to-end runs over the shared source tree."""

    def test_summary_counts(self, fake_engine, source_tree, tmp_path):
        summary = FixtureGenerator(fake_engine, tmp_path / "out").generate(source_tree)

        assert summary.successes == 3
        assert summary.failures == 1
        assert summary.total == 4
        assert summary.files_written == 2
        assert summary.failures_by_reason == {FailureReason.COMPILE_FAILED: 1}
        assert summary.tally_line() == "Tests generated: 4; successes: 3; failures: 1"

    def test_successful_case_has_plan_and_result(self, fake_engine, source_tree, tmp_path):
        dst = tmp_path / "out"
        FixtureGenerator(fake_engine, dst).generate(source_tree)

        case = _read_cases(dst / "allow" / "test-allow.json")[0]

        assert case["note"] == "allow/unconditional"
        assert case["entrypoints"] == ["example"]
        assert case["plan"]["plans"]["plans"] == [{"blocks": [], "name": "example"}]
        assert case["want_plan_result"] == {"example": True}
        assert case["want_result"] == [{"x": True}]

    def test_error_case_gets_plan_but_no_result(self, fake_engine, source_tree, tmp_path):
        dst = tmp_path / "out"
        FixtureGenerator(fake_engine, dst).generate(source_tree)

        case = _read_cases(dst / "allow" / "test-allow.json")[1]

        assert case["want_error_code"] == "eval_conflict_error"
        assert case["plan"] is not None
        assert case["want_plan_result"] is None
        notes = [req.modules["test-0.rego"] for req in fake_engine.eval_calls]
        assert "package example\n\np := 1\np := 2\n" not in notes

    def test_compile_failure_does_not_stop_siblings(self, fake_engine, source_tree, tmp_path):
        dst = tmp_path / "out"
        FixtureGenerator(fake_engine, dst).generate(source_tree)

        failed, sibling = _read_cases(dst / "broken" / "test-broken.json")

        assert failed["note"] == "broken/undefined"
        assert failed["plan"] is None
        assert failed["want_plan_result"] is None
        assert sibling["plan"] is not None
        assert sibling["want_plan_result"] == {"sibling": True}

    def test_input_and_data_reach_the_engine(self, fake_engine, source_tree, tmp_path):
        FixtureGenerator(fake_engine, tmp_path / "out").generate(source_tree)

        sibling = fake_engine.eval_calls[-1]
        assert sibling.input == {"x": 7}
        assert sibling.data is None

    def test_rerun_is_byte_identical(self, fake_engine, source_tree, tmp_path):
        dst = tmp_path / "out"
        generator = FixtureGenerator(fake_engine, dst)

        generator.generate(source_tree)
        first = (dst / "allow" / "test-allow.json").read_bytes()
        generator.generate(source_tree)
        second = (dst / "allow" / "test-allow.json").read_bytes()

        assert first == second

    def test_prune_flag_is_forwarded(self, fake_engine, source_tree, tmp_path):
        FixtureGenerator(fake_engine, tmp_path / "out", prune_unused=False).generate(source_tree)

        assert all(call["prune_unused"] is False for call in fake_engine.build_calls)


class TestCaseFailures:
    """Non-fatal per-case failure paths."""

    def _generate(self, engine, write_cases, tmp_path, cases):
        write_cases(tmp_path / "src" / "g" / "cases.yaml", cases)
        dst = tmp_path / "out"
        summary = FixtureGenerator(engine, dst).generate(tmp_path / "src")
        return summary, _read_cases(dst / "g" / "cases.json")

    def test_unexpected_result_count(self, engine_factory, write_cases, tmp_path):
        summary, cases = self._generate(
            engine_factory(results=[]), write_cases, tmp_path,
            [{"note": "g/undefined", "modules": ["package a\n\np := 1\n"]}],
        )

        assert summary.failures_by_reason == {FailureReason.RESULT_COUNT: 1}
        assert cases[0]["plan"] is None

    def test_multiple_result_sets(self, engine_factory, write_cases, tmp_path):
        summary, _ = self._generate(
            engine_factory(results=[{"a": 1}, {"a": 2}]), write_cases, tmp_path,
            [{"note": "g/many", "modules": ["package a\n\np := 1\n"]}],
        )

        assert summary.failures_by_reason == {FailureReason.RESULT_COUNT: 1}

    def test_result_missing_query_binding(self, engine_factory, write_cases, tmp_path):
        summary, cases = self._generate(
            engine_factory(results=[{"unrelated": 1}]), write_cases, tmp_path,
            [{"note": "g/unbound", "modules": ["package example.allow\n\nx := true\n"]}],
        )

        assert summary.successes == 0
        assert summary.failures_by_reason == {FailureReason.RESULT_COUNT: 1}
        assert cases[0]["want_plan_result"] is None

    def test_evaluation_error(self, fake_engine, write_cases, tmp_path):
        summary, cases = self._generate(
            fake_engine, write_cases, tmp_path,
            [{"note": "g/conflict", "modules": ["package a\n\np := EVAL_ERROR\n"]}],
        )

        assert summary.failures_by_reason == {FailureReason.EVAL_FAILED: 1}
        assert cases[0]["entrypoints"] == ["a"]

    def test_plan_count(self, engine_factory, write_cases, tmp_path):
        summary, _ = self._generate(
            engine_factory(plans=[]), write_cases, tmp_path,
            [{"note": "g/noplan", "modules": ["package a\n\np := 1\n"]}],
        )

        assert summary.failures_by_reason == {FailureReason.PLAN_COUNT: 1}

    def test_undecodable_plan(self, engine_factory, write_cases, tmp_path):
        summary, cases = self._generate(
            engine_factory(plans=[b"null"]), write_cases, tmp_path,
            [{"note": "g/null", "modules": ["package a\n\np := 1\n"]}],
        )

        assert summary.failures_by_reason == {FailureReason.PLAN_DECODE: 1}
        assert cases[0]["want_plan_result"] is None

    def test_marshal_failure_counts_once_per_file(self, fake_engine, write_cases, tmp_path):
        fake_engine.results_value = float("nan")
        write_cases(tmp_path / "src" / "g" / "cases.yaml", [
            {"note": "g/nan", "modules": ["package a\n\np := 1\n"]},
        ])

        summary = FixtureGenerator(fake_engine, tmp_path / "out").generate(tmp_path / "src")

        assert summary.successes == 1
        assert summary.failures_by_reason == {FailureReason.MARSHAL_FAILED: 1}
        assert summary.files_written == 0
        assert not (tmp_path / "out" / "g" / "cases.json").exists()

    def test_write_failure_is_counted(self, fake_engine, source_tree, tmp_path):
        generator = FixtureGenerator(fake_engine, tmp_path / "out")

        with patch.object(generator.writer, "write", side_effect=FixtureWriteError("disk full")):
            summary = generator.generate(source_tree)

        assert summary.failures_by_reason[FailureReason.WRITE_FAILED] == 2
        assert summary.files_written == 0


class TestFatalErrors:

    def test_parse_error_aborts(self, fake_engine, write_cases, tmp_path):
        write_cases(tmp_path / "src" / "g" / "cases.yaml", [
            {"note": "g/garbage", "modules": ["not rego at all"]},
        ])

        with pytest.raises(PolicyParseError):
            FixtureGenerator(fake_engine, tmp_path / "out").generate(tmp_path / "src")

    def test_missing_engine_aborts(self, source_tree, tmp_path):
        settings = GeneratorSettings(opa_binary="definitely-not-opa")

        with patch("plan_fixtures.engine.opa_cli.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(EngineUnavailableError):
                generate(source_tree, tmp_path / "out", settings=settings)


def test_generate_registers_builtins_before_running(fake_engine, source_tree, tmp_path):
    summary = generate(
        source_tree,
        tmp_path / "out",
        settings=GeneratorSettings(prune_unused=False),
        engine=fake_engine,
    )

    assert summary.successes == 3
    assert [b.name for b in builtins.registered_builtins()] == ["test.sleep"]
    assert all(call["prune_unused"] is False for call in fake_engine.build_calls)

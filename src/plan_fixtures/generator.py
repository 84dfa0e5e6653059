"""Run driver: turn a tree of test definitions into plan fixtures.

For every file, each case is compiled to a plan and, unless it expects an
error, evaluated for its expected result. The file is then written with all
of its cases, successful or not. Failures of one case or one file are
counted and logged; processing always moves on to the next unit of work.
Malformed definitions, unparsable modules, a missing engine and directory
creation errors abort the run.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from plan_fixtures.compiler import PlanCountError, compile_plan
from plan_fixtures.config import GeneratorSettings
from plan_fixtures.engine.base import EvaluationError, PlanCompileError, PolicyEngine
from plan_fixtures.engine.builtins import register_default_builtins
from plan_fixtures.engine.opa_cli import OpaCliEngine
from plan_fixtures.evaluator import ResultCountError, evaluate_expected
from plan_fixtures.loader import load_tests
from plan_fixtures.modules import derive_entrypoints, get_module_files, module_sources
from plan_fixtures.schemas.run_errors import FailureReason
from plan_fixtures.schemas.run_summary import RunSummary
from plan_fixtures.schemas.test_case import ExtendedTestCase, TestFile
from plan_fixtures.startup import ensure_initialized
from plan_fixtures.writer import (
    FixtureMarshalError,
    FixtureWriteError,
    FixtureWriter,
    PlanDecodeError,
    decode_plan,
)

logger = logging.getLogger(__name__)


class FixtureGenerator:
    """Sequential fixture generation over one source tree.

    Attributes:
        engine: Policy engine used for parsing, compiling and evaluating
        writer: Destination for per-file fixtures
        prune_unused: Forwarded to the plan compiler
    """

    def __init__(
        self,
        engine: PolicyEngine,
        dst_root: Union[str, Path],
        *,
        prune_unused: bool = True,
        writer: Optional[FixtureWriter] = None,
    ):
        self.engine = engine
        self.writer = writer or FixtureWriter(dst_root)
        self.prune_unused = prune_unused

    def generate(self, src_root: Union[str, Path]) -> RunSummary:
        """Process every definition file under ``src_root``.

        Raises:
            FixtureLoadError: If any definition file is malformed
            PolicyParseError: If any module fails to parse
            EngineUnavailableError: If the engine cannot be started
            OSError: If a destination directory cannot be created
        """
        logger.info("Generating compliance tests")
        summary = RunSummary()

        for test_file in load_tests(src_root):
            self.process_file(test_file, summary)

        logger.info(summary.tally_line())
        return summary

    def process_file(self, test_file: TestFile, summary: RunSummary) -> None:
        """Process all cases of one file, then write its fixture."""
        for case in test_file.cases:
            reason = self.process_case(case)
            if reason is None:
                summary.record_success()
            else:
                summary.record_failure(reason)

        try:
            self.writer.write(test_file)
        except FixtureMarshalError as e:
            logger.warning(str(e))
            summary.record_failure(FailureReason.MARSHAL_FAILED)
            return
        except FixtureWriteError as e:
            logger.warning(str(e))
            summary.record_failure(FailureReason.WRITE_FAILED)
            return

        summary.files_written += 1

    def process_case(self, case: ExtendedTestCase) -> Optional[FailureReason]:
        """Fill in entry points, plan and expected result for one case.

        Returns:
            None on success, otherwise the reason the case was skipped. A
            skipped case keeps its entry points but gets no plan or result.
        """
        module_files = get_module_files(self.engine, module_sources(case))
        entrypoints = derive_entrypoints(module_files)
        case.entrypoints = entrypoints

        try:
            raw_plan = compile_plan(
                self.engine,
                module_files,
                entrypoints,
                prune_unused=self.prune_unused,
            )
        except PlanCompileError as e:
            logger.warning(f"Skipping {case.note}: {e}")
            return FailureReason.COMPILE_FAILED
        except PlanCountError as e:
            logger.warning(f"Skipping {case.note}: {e}")
            return FailureReason.PLAN_COUNT

        want_plan_result = None
        if not case.expects_error():
            try:
                result_set = evaluate_expected(self.engine, case, entrypoints)
            except EvaluationError as e:
                logger.warning(f"Skipping {case.note}: {e}")
                return FailureReason.EVAL_FAILED
            except ResultCountError as e:
                logger.warning(f"Skipping {case.note}: {e}")
                return FailureReason.RESULT_COUNT

            if len(result_set) != 1:
                logger.warning(
                    f"Skipping {case.note}: Unexpected result count: {len(result_set)}"
                )
                return FailureReason.RESULT_COUNT
            want_plan_result = result_set[0]

        try:
            plan = decode_plan(raw_plan)
        except PlanDecodeError as e:
            logger.warning(f"Skipping {case.note}: {e}")
            return FailureReason.PLAN_DECODE

        case.plan = plan
        case.want_plan_result = want_plan_result
        return None


def create_engine(settings: GeneratorSettings) -> OpaCliEngine:
    """Engine configured from settings."""
    return OpaCliEngine(
        settings.opa_binary,
        v0_compatible=settings.v0_compatible,
        timeout=settings.timeout_seconds,
    )


def generate(
    src_root: Union[str, Path],
    dst_root: Union[str, Path],
    *,
    settings: Optional[GeneratorSettings] = None,
    engine: Optional[PolicyEngine] = None,
) -> RunSummary:
    """Generate fixtures from ``src_root`` into ``dst_root``.

    Initializes the application when no settings are given; custom builtins
    are registered either way before any case is evaluated.
    """
    if settings is None:
        settings = ensure_initialized()
    else:
        register_default_builtins()

    if engine is None:
        engine = create_engine(settings)

    generator = FixtureGenerator(engine, dst_root, prune_unused=settings.prune_unused)
    return generator.generate(src_root)

"""Aggregate counters for a fixture generation run."""

from typing import Dict

from pydantic import BaseModel, Field

from plan_fixtures.schemas.run_errors import FailureReason


class RunSummary(BaseModel):
    """Success and failure tally for one run.

    Failures are counted per case for compile/evaluate/decode problems and
    per file for marshal/write problems, so ``total`` can exceed the number
    of cases when a file fails to be written.
    """

    successes: int = 0
    failures: int = 0
    files_written: int = 0
    failures_by_reason: Dict[FailureReason, int] = Field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.successes + self.failures

    def record_success(self) -> None:
        self.successes += 1

    def record_failure(self, reason: FailureReason) -> None:
        self.failures += 1
        self.failures_by_reason[reason] = self.failures_by_reason.get(reason, 0) + 1

    def tally_line(self) -> str:
        """Human-readable one-line summary."""
        return (
            f"Tests generated: {self.total}; "
            f"successes: {self.successes}; failures: {self.failures}"
        )

    def to_report(self) -> dict:
        """JSON-friendly summary used by ``--json`` output."""
        return {
            "total": self.total,
            "successes": self.successes,
            "failures": self.failures,
            "files_written": self.files_written,
            "failures_by_reason": {
                reason.value: count for reason, count in sorted(
                    self.failures_by_reason.items(), key=lambda item: item[0].value
                )
            },
        }

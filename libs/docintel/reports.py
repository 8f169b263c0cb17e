"""Structured check results and report files.

Validation and environment-test stages record one ``CheckResult`` per named
check. A ``Report`` aggregates them, prints a ✓/✗ line per check plus totals,
and is written as JSON under ``{report_dir}/{environment}/`` for the pipeline
to publish.
"""

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from .errors import ValidationFailure

logger = structlog.get_logger("reports")


class CheckStatus(Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class CheckResult:
    """Outcome of one named check."""
    name: str
    status: CheckStatus
    detail: str = ""
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "detail": self.detail,
            "durationMs": round(self.duration_ms, 2),
        }


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class Report:
    """Aggregate of check results for one model in one environment."""
    environment: str
    suite: str
    model_name: str
    results: List[CheckResult] = field(default_factory=list)
    started_at: str = field(default_factory=_utc_now)
    finished_at: Optional[str] = None

    def add(self, name: str, status: CheckStatus, detail: str = "", duration_ms: float = 0.0) -> CheckResult:
        result = CheckResult(name=name, status=status, detail=detail, duration_ms=duration_ms)
        self.results.append(result)
        log = logger.bind(check=name, status=status.value, detail=detail)
        if status is CheckStatus.FAILED:
            log.warning("Check failed")
        else:
            log.info("Check completed")
        return result

    def record(self, name: str, passed: bool, detail: str = "", started: Optional[float] = None) -> CheckResult:
        duration_ms = (time.time() - started) * 1000 if started is not None else 0.0
        status = CheckStatus.PASSED if passed else CheckStatus.FAILED
        return self.add(name, status, detail, duration_ms)

    def finish(self) -> "Report":
        self.finished_at = _utc_now()
        return self

    @property
    def failed_checks(self) -> List[str]:
        return [r.name for r in self.results if r.status is CheckStatus.FAILED]

    @property
    def success(self) -> bool:
        return not self.failed_checks

    def summary(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in CheckStatus}
        for result in self.results:
            counts[result.status.value] += 1
        return {"total": len(self.results), **counts}

    def raise_for_failures(self) -> None:
        if not self.success:
            raise ValidationFailure(self.failed_checks)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "environment": self.environment,
            "suite": self.suite,
            "modelName": self.model_name,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
            "success": self.success,
            "summary": self.summary(),
            "results": [r.to_dict() for r in self.results],
        }

    def write(self, report_dir: str) -> Path:
        """Write ``{report_dir}/{environment}/{suite}-results.json``."""
        target_dir = Path(report_dir) / self.environment
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"{self.suite}-results.json"
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info("Report written", path=str(path), suite=self.suite)
        return path

    def render(self) -> str:
        """Human-readable outcome per check followed by totals."""
        icons = {CheckStatus.PASSED: "✓", CheckStatus.FAILED: "✗", CheckStatus.SKIPPED: "-"}
        lines = [f"{self.suite} results for {self.model_name} ({self.environment})"]
        for result in self.results:
            detail = f": {result.detail}" if result.detail else ""
            lines.append(f"  {icons[result.status]} {result.name}{detail}")
        counts = self.summary()
        lines.append(
            f"Total: {counts['total']}, Passed: {counts['passed']}, "
            f"Failed: {counts['failed']}, Skipped: {counts['skipped']}"
        )
        return "\n".join(lines)

"""Bounded, injected execution-history store."""

from __future__ import annotations

import time
from collections import Counter, deque
from collections.abc import Callable
from dataclasses import dataclass

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class ExecutionRecord:
    execution_id: str
    finished_at: float
    duration_ms: float
    success: bool
    error_code: str | None = None


class MetricsSnapshot(BaseModel):
    """Aggregate view of the retained execution history."""

    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    average_duration_ms: float = 0.0
    min_duration_ms: float | None = None
    max_duration_ms: float | None = None
    error_rate_percent: float = 0.0
    requests_last_minute: int = 0
    uptime_seconds: float = 0.0
    last_execution_at: float | None = None
    error_codes: dict[str, int] = Field(default_factory=dict)


class ExecutionMetrics:
    """Keep the most recent executions and summarize them.

    The history is bounded twice: at most ``history_size`` records, and only
    records that finished within ``retention_seconds`` count towards a
    snapshot. The clock is injectable so tests can drive time.
    """

    def __init__(
        self,
        history_size: int = 1000,
        retention_seconds: float = 86400.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if history_size < 1:
            raise ValueError("history_size must be at least 1")
        self._history: deque[ExecutionRecord] = deque(maxlen=history_size)
        self._retention_seconds = retention_seconds
        self._clock = clock
        self._started_at = clock()

    def record(
        self,
        execution_id: str,
        duration_ms: float,
        success: bool,
        error_code: str | None = None,
    ) -> None:
        self._history.append(
            ExecutionRecord(
                execution_id=execution_id,
                finished_at=self._clock(),
                duration_ms=duration_ms,
                success=success,
                error_code=None if success else error_code,
            )
        )

    def _retained(self, now: float) -> list[ExecutionRecord]:
        cutoff = now - self._retention_seconds
        return [record for record in self._history if record.finished_at >= cutoff]

    def snapshot(self) -> MetricsSnapshot:
        now = self._clock()
        records = self._retained(now)
        uptime = max(now - self._started_at, 0.0)
        if not records:
            return MetricsSnapshot(uptime_seconds=uptime)

        durations = [record.duration_ms for record in records]
        failures = [record for record in records if not record.success]
        error_codes = Counter(record.error_code or "UNKNOWN" for record in failures)
        return MetricsSnapshot(
            total_executions=len(records),
            successful_executions=len(records) - len(failures),
            failed_executions=len(failures),
            average_duration_ms=sum(durations) / len(durations),
            min_duration_ms=min(durations),
            max_duration_ms=max(durations),
            error_rate_percent=100.0 * len(failures) / len(records),
            requests_last_minute=sum(1 for record in records if record.finished_at >= now - 60),
            uptime_seconds=uptime,
            last_execution_at=records[-1].finished_at,
            error_codes=dict(error_codes),
        )

    def reset(self) -> None:
        self._history.clear()

"""Pydantic models for batch jobs and their artifacts."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .lookup import LookupResult


class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RejectionReason(str, Enum):
    SESSION_NOT_READY = "session not ready"
    JOB_RUNNING = "job already running"
    NO_INPUT = "no input provided"
    INVALID_INPUT = "invalid input file"


class JobStatus(BaseModel):
    """Progress counters for the current (or last) run.

    Counters only move through record(), which keeps
    processed == success + failed.
    """

    total: int = 0
    processed: int = 0
    success: int = 0
    failed: int = 0
    state: JobState = JobState.IDLE
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    @classmethod
    def start(cls, total: int) -> JobStatus:
        return cls(
            total=total,
            state=JobState.RUNNING,
            started_at=datetime.now().isoformat(timespec="seconds"),
        )

    def record(self, result: LookupResult) -> JobStatus:
        if self.processed >= self.total:
            raise ValueError("All items of this job are already processed.")
        success = self.success + (1 if result.counts_as_success else 0)
        failed = self.failed + (0 if result.counts_as_success else 1)
        return self.model_copy(
            update={"processed": self.processed + 1, "success": success, "failed": failed}
        )

    def finish(self, state: JobState) -> JobStatus:
        return self.model_copy(
            update={"state": state, "finished_at": datetime.now().isoformat(timespec="seconds")}
        )

    @property
    def percent(self) -> int:
        if not self.total:
            return 0
        return round(self.processed / self.total * 100)

    def counters(self) -> dict[str, int]:
        return self.model_dump(include={"total", "processed", "success", "failed"})


class Artifact(BaseModel):
    """Exported result file of one completed run."""

    filename: str
    path: str
    created_at: str = Field(default_factory=lambda: datetime.now().isoformat(timespec="seconds"))
    row_count: int = 0

"""Single-flight batch job engine.

A submitted batch runs in a background task, strictly in input order,
one lookup at a time with a fixed pause between lookups. Only one job can
run at a time; a second submit() is rejected, never queued. Progress is
observed by polling `status`.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Iterable, Optional

from ..config import LOOKUP_DELAY_SECONDS
from ..errors import SubmissionRejected
from ..models.job import Artifact, JobState, JobStatus, RejectionReason
from ..models.lookup import LookupResult
from .exporter import ResultExporter
from .lookup import LookupClient
from .session import SessionManager

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def sanitize_numbers(numbers: Iterable[object]) -> list[str]:
    """Trim entries and drop the ones left blank, keeping order."""
    cleaned = []
    for number in numbers:
        if number is None:
            continue
        text = str(number).strip()
        if text:
            cleaned.append(text)
    return cleaned


class BatchJobEngine:
    """Runs one batch of lookups at a time and exports the results."""

    def __init__(
        self,
        session: SessionManager,
        lookup_client: LookupClient,
        exporter: ResultExporter,
        item_delay: float = LOOKUP_DELAY_SECONDS,
    ):
        self._session = session
        self._lookup = lookup_client
        self._exporter = exporter
        self._item_delay = item_delay
        self._status = JobStatus()
        self._records: list[LookupResult] = []
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._last_artifact: Optional[Artifact] = None
        self._last_error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def status(self) -> JobStatus:
        return self._status.model_copy()

    @property
    def records(self) -> tuple[LookupResult, ...]:
        return tuple(self._records)

    @property
    def last_artifact(self) -> Optional[Artifact]:
        return self._last_artifact

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def submit(self, numbers: Iterable[object]) -> asyncio.Task:
        """Start a job in the background.

        Raises SubmissionRejected (nothing is mutated) when the session is
        not ready, a job is already running, or no number survives
        sanitation. Returns the job task; callers normally just poll.
        """
        if not self._session.is_ready:
            raise SubmissionRejected(RejectionReason.SESSION_NOT_READY.value)
        if self._running:
            raise SubmissionRejected(RejectionReason.JOB_RUNNING.value)

        phone_numbers = sanitize_numbers(numbers)
        if not phone_numbers:
            raise SubmissionRejected(RejectionReason.NO_INPUT.value)

        self._records = []
        self._status = JobStatus.start(total=len(phone_numbers))
        self._last_error = None
        self._running = True
        logger.info(f"Found {len(phone_numbers)} phone numbers to process")

        self._task = asyncio.create_task(self._run(phone_numbers))
        self._task.add_done_callback(self._on_done)
        return self._task

    async def wait(self) -> Optional[Artifact]:
        """Wait for the current job, if any. Re-raises an engine fault."""
        if self._task is None:
            return self._last_artifact
        return await asyncio.shield(self._task)

    async def close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def _run(self, phone_numbers: list[str]) -> Artifact:
        try:
            total = len(phone_numbers)
            for index, phone_number in enumerate(phone_numbers):
                if index:
                    await asyncio.sleep(self._item_delay)

                logger.info(f"Processing phone number {index + 1}/{total}: {phone_number}")
                result = await self._lookup.lookup(phone_number)

                self._records.append(result)
                self._status = self._status.record(result)
                status = self._status
                logger.info(
                    f"Progress: {status.percent}% ({status.processed}/{status.total}) - "
                    f"Success: {status.success}, Failed: {status.failed}"
                )

            artifact = await asyncio.to_thread(self._exporter.write, list(self._records))
        except asyncio.CancelledError:
            logger.warning("Batch job cancelled before completion")
            self._records = []
            self._last_error = "Job cancelled"
            self._status = self._status.finish(JobState.FAILED)
            raise
        except Exception as e:
            logger.error(f"Error processing batch: {e}", exc_info=True)
            self._records = []
            self._last_error = str(e) or e.__class__.__name__
            self._status = self._status.finish(JobState.FAILED)
            raise
        finally:
            self._running = False

        self._last_artifact = artifact
        self._status = self._status.finish(JobState.COMPLETED)
        logger.info(f"Processing completed successfully! Results: {artifact.filename}")
        return artifact

    def _on_done(self, task: asyncio.Task) -> None:
        # Retrieve the outcome so a failed run is not reported again at GC
        if task.cancelled():
            logger.info("Batch job cancelled")
            return
        if task.exception() is not None:
            logger.error(f"File processing failed: {task.exception()}")

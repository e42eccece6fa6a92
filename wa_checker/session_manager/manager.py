"""Checker HTTP service.

Runs as a lightweight local web server in front of the session manager
and the batch job engine. Every endpoint answers immediately; long work
(connecting, checking numbers) runs in the background and is observed by
polling /status.

Endpoints:
    POST /connect        - Start a connect attempt (no-op if ready)
    POST /stop           - Abort the pending connect attempt
    POST /disconnect     - Tear down the session
    GET  /status         - Session and job state, current QR code
    POST /submit         - Upload a spreadsheet of numbers and start a job
    GET  /job            - Job status with the records collected so far
    GET  /result/latest  - Locate the most recent result file
    GET  /results/...    - Result files
    GET  /profile_pics/... - Downloaded profile pictures
"""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from aiohttp import web

from ..config import (
    CHECKER_HOST,
    CHECKER_PORT,
    PROFILE_PICS_DIR,
    RESULTS_DIR,
    UPLOADS_DIR,
    ensure_dirs,
)
from ..errors import SubmissionRejected
from ..models.job import RejectionReason
from .engine import BatchJobEngine
from .exporter import ResultExporter
from .lookup import LookupClient
from .reader import read_phone_numbers
from .session import SessionManager, TransportFactory
from .transport import Transport

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

UPLOAD_FIELDS = ("file", "excelFile")


def _default_transport_factory() -> Transport:
    from .browser import WhatsAppWebTransport

    return WhatsAppWebTransport()


class CheckerService:
    """Wires the session manager, lookup client, exporter and job engine together."""

    def __init__(
        self,
        transport_factory: Optional[TransportFactory] = None,
        results_dir: Path = RESULTS_DIR,
        pictures_dir: Path = PROFILE_PICS_DIR,
        uploads_dir: Path = UPLOADS_DIR,
        session: Optional[SessionManager] = None,
        lookup_client: Optional[LookupClient] = None,
        item_delay: Optional[float] = None,
    ):
        self.results_dir = results_dir
        self.pictures_dir = pictures_dir
        self.uploads_dir = uploads_dir
        self.session = session or SessionManager(transport_factory or _default_transport_factory)
        self.lookup = lookup_client or LookupClient(self.session, pictures_dir=pictures_dir)
        self.exporter = ResultExporter(results_dir)
        engine_kwargs = {} if item_delay is None else {"item_delay": item_delay}
        self.engine = BatchJobEngine(self.session, self.lookup, self.exporter, **engine_kwargs)

    async def setup(self):
        for directory in (self.results_dir, self.pictures_dir, self.uploads_dir):
            directory.mkdir(parents=True, exist_ok=True)

    async def cleanup(self):
        """Clean up resources."""
        await self.engine.close()
        await self.session.close()
        await self.lookup.aclose()

    def status(self) -> dict:
        session = self.session.status()
        return {
            "sessionReady": session.is_ready,
            "jobRunning": self.engine.is_running,
            "job": self.engine.status.counters(),
            # challenge_code is already None while stopping
            "challengeCode": session.challenge_code,
            "isStopping": session.is_stopping,
            "sessionState": session.state.value,
            "lastError": session.last_error,
        }

    async def save_upload(self, field) -> Path:
        filename = Path(field.filename or "upload.xlsx").name
        path = self.uploads_dir / f"{int(time.time() * 1000)}-{filename}"
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as fh:
            while True:
                chunk = await field.read_chunk()
                if not chunk:
                    break
                fh.write(chunk)
        return path


# ── HTTP Handlers ────────────────────────────────────────────────────────────


async def handle_connect(request: web.Request) -> web.Response:
    svc: CheckerService = request.app["service"]

    if svc.session.is_ready:
        return web.json_response({
            "success": True,
            "ready": True,
            "message": "Client is already initialized and ready",
        })

    try:
        await svc.session.connect()
    except Exception as e:
        logger.error(f"Client initialization failed to start: {e}", exc_info=True)
        return web.json_response({"success": False, "error": str(e)}, status=500)

    return web.json_response({
        "success": True,
        "ready": False,
        "message": "Client initialization started. Please wait for QR code...",
    })


async def handle_stop(request: web.Request) -> web.Response:
    svc: CheckerService = request.app["service"]
    try:
        await svc.session.stop()
    except Exception as e:
        logger.error(f"Stop failed: {e}", exc_info=True)
        return web.json_response({"success": False, "error": str(e)}, status=500)
    return web.json_response({
        "success": True,
        "message": "Client initialization stopped successfully",
    })


async def handle_disconnect(request: web.Request) -> web.Response:
    svc: CheckerService = request.app["service"]
    try:
        await svc.session.disconnect()
    except Exception as e:
        logger.error(f"Disconnect failed: {e}", exc_info=True)
        return web.json_response({"success": False, "error": str(e)}, status=500)
    return web.json_response({"success": True, "message": "Client disconnected"})


async def handle_status(request: web.Request) -> web.Response:
    svc: CheckerService = request.app["service"]
    return web.json_response(svc.status())


def _rejected(reason: str) -> web.Response:
    return web.json_response({"accepted": False, "reason": reason}, status=400)


async def handle_submit(request: web.Request) -> web.Response:
    svc: CheckerService = request.app["service"]

    field = None
    if request.content_type.startswith("multipart/"):
        reader = await request.multipart()
        async for part in reader:
            if part.name in UPLOAD_FIELDS and part.filename:
                field = part
                break

    if field is None:
        return _rejected(RejectionReason.NO_INPUT.value)
    if not svc.session.is_ready:
        return _rejected(RejectionReason.SESSION_NOT_READY.value)
    if svc.engine.is_running:
        return _rejected(RejectionReason.JOB_RUNNING.value)

    try:
        path = await svc.save_upload(field)
        numbers = await asyncio.to_thread(read_phone_numbers, path)
    except Exception as e:
        logger.warning(f"Could not read uploaded file: {e}")
        return _rejected(RejectionReason.INVALID_INPUT.value)

    try:
        svc.engine.submit(numbers)
    except SubmissionRejected as e:
        return _rejected(e.reason)
    except Exception as e:
        logger.error(f"Submit failed: {e}", exc_info=True)
        return web.json_response({"accepted": False, "error": str(e)}, status=500)

    return web.json_response({
        "accepted": True,
        "total": svc.engine.status.total,
        "message": "File processing started. Check the progress below.",
    })


async def handle_job(request: web.Request) -> web.Response:
    svc: CheckerService = request.app["service"]
    artifact = svc.engine.last_artifact
    return web.json_response({
        "jobRunning": svc.engine.is_running,
        "job": svc.engine.status.model_dump(mode="json"),
        "records": [r.model_dump(mode="json") for r in svc.engine.records],
        "lastError": svc.engine.last_error,
        "artifact": artifact.model_dump(mode="json") if artifact else None,
    })


async def handle_latest_result(request: web.Request) -> web.Response:
    svc: CheckerService = request.app["service"]

    if svc.engine.is_running:
        return web.json_response({"status": "running"})

    latest = svc.exporter.latest()
    if latest is None:
        return web.json_response({"status": "none"})

    return web.json_response({
        "status": "available",
        "filename": latest.name,
        "url": f"/results/{latest.name}",
    })


# ── App Factory ──────────────────────────────────────────────────────────────


def create_app(service: Optional[CheckerService] = None) -> web.Application:
    app = web.Application()

    async def on_startup(app: web.Application):
        svc = service
        if svc is None:
            ensure_dirs()
            svc = CheckerService()
        await svc.setup()
        app["service"] = svc
        logger.info(f"Checker service started on {CHECKER_HOST}:{CHECKER_PORT}")

    async def on_cleanup(app: web.Application):
        svc: CheckerService = app["service"]
        await svc.cleanup()
        logger.info("Checker service stopped.")

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)

    app.router.add_post("/connect", handle_connect)
    app.router.add_post("/stop", handle_stop)
    app.router.add_post("/disconnect", handle_disconnect)
    app.router.add_get("/status", handle_status)
    app.router.add_post("/submit", handle_submit)
    app.router.add_get("/job", handle_job)
    app.router.add_get("/result/latest", handle_latest_result)

    results_dir = service.results_dir if service else RESULTS_DIR
    pictures_dir = service.pictures_dir if service else PROFILE_PICS_DIR
    results_dir.mkdir(parents=True, exist_ok=True)
    pictures_dir.mkdir(parents=True, exist_ok=True)
    app.router.add_static("/results", results_dir)
    app.router.add_static("/profile_pics", pictures_dir)

    return app


def main():
    """Run the checker as a standalone HTTP service."""
    app = create_app()
    web.run_app(app, host=CHECKER_HOST, port=CHECKER_PORT)


if __name__ == "__main__":
    main()

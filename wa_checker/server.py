"""MCP Server entry point for the WhatsApp number checker.

Exposes 6 tools via the Model Context Protocol:
- Session: connect, session_status, stop, disconnect
- Jobs: check_numbers, latest_result

The checker HTTP service (aiohttp on localhost:3000) is auto-started
as part of the MCP server lifecycle, so no separate process is needed.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

import httpx
from aiohttp.web import AppRunner, TCPSite
from mcp.server.fastmcp import FastMCP

from .config import CHECKER_HOST, CHECKER_PORT, CHECKER_URL, ensure_dirs
from .tools.check_tools import check_numbers, latest_result
from .tools.session_tools import connect, disconnect, session_status, stop

# Configure logging to stderr (stdout is reserved for MCP JSON-RPC)
logging.basicConfig(
    stream=sys.stderr,
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("wa-checker")

# Ensure data directories exist
ensure_dirs()


# ── Lifespan: auto-start checker service ─────────────────────────────────────


async def _service_running() -> bool:
    """True if a checker service already answers at CHECKER_URL."""
    try:
        async with httpx.AsyncClient(timeout=2.0) as client:
            response = await client.get(f"{CHECKER_URL}/status")
    except httpx.HTTPError:
        return False
    return response.status_code == 200


@asynccontextmanager
async def lifespan(server: FastMCP):
    """Serve the checker HTTP API for as long as the MCP server runs.

    A service started separately (wa-checker-service) is reused as is.
    """
    if await _service_running():
        logger.info(f"Using checker service already running at {CHECKER_URL}")
        yield {}
        return

    from .session_manager.manager import create_app

    runner = AppRunner(create_app())
    await runner.setup()
    try:
        await TCPSite(runner, CHECKER_HOST, CHECKER_PORT).start()
    except OSError as e:
        await runner.cleanup()
        raise RuntimeError(f"Cannot serve the checker API on {CHECKER_URL}: {e}") from e
    logger.info(f"Checker service listening at {CHECKER_URL}")

    try:
        yield {}
    finally:
        await runner.cleanup()
        logger.info("Checker service stopped.")


# ── MCP Server ───────────────────────────────────────────────────────────────

mcp = FastMCP(
    "wa-checker",
    lifespan=lifespan,
    instructions=(
        "WhatsApp Number Checker - check whether phone numbers have WhatsApp accounts. "
        "The checker service starts automatically with this server. "
        "Call connect, then session_status until a QR code appears and ask the user to scan it. "
        "Once sessionReady is true, call check_numbers with a spreadsheet path. "
        "Poll session_status for progress and call latest_result when the job finishes. "
        "Only one job runs at a time."
    ),
)


# ── Session Tools ────────────────────────────────────────────────────────────


@mcp.tool()
async def tool_connect() -> str:
    """Start linking WhatsApp Web (no-op if already linked)."""
    return await connect()


@mcp.tool()
async def tool_session_status() -> str:
    """Session readiness, job progress and the QR code to scan, as JSON."""
    return await session_status()


@mcp.tool()
async def tool_stop() -> str:
    """Abort a pending connect attempt. The QR code is withdrawn."""
    return await stop()


@mcp.tool()
async def tool_disconnect() -> str:
    """Log out the linked WhatsApp session."""
    return await disconnect()


# ── Job Tools ────────────────────────────────────────────────────────────────


@mcp.tool()
async def tool_check_numbers(file_path: str) -> str:
    """Check every phone number in a spreadsheet.

    Numbers are read from the first column below the header row.
    Rejected if the session is not ready or a job is already running.

    Args:
        file_path: Path to a .xlsx or .csv file.
    """
    return await check_numbers(file_path)


@mcp.tool()
async def tool_latest_result() -> str:
    """Locate the most recent result spreadsheet."""
    return await latest_result()


# ── Entry Point ──────────────────────────────────────────────────────────────


def main():
    """Run the MCP server on STDIO transport."""
    logger.info("Starting WhatsApp Checker MCP server...")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()

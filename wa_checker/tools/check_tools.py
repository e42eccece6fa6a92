"""MCP tools for submitting number lists and fetching results."""

from __future__ import annotations

from pathlib import Path

from ..config import CHECKER_URL
from .session_tools import _call_service


async def check_numbers(file_path: str) -> str:
    """Upload a spreadsheet of phone numbers and start a check job.

    Args:
        file_path: Local .xlsx or .csv file; numbers in the first column,
            first row is a header.

    Returns:
        Acceptance message, or the rejection reason.
    """
    path = Path(file_path).expanduser()
    if not path.is_file():
        return f"Error: file not found: {path}"

    with path.open("rb") as fh:
        result = await _call_service("POST", "/submit", files={"file": (path.name, fh.read())})

    if "error" in result:
        return f"Error: {result['error']}"
    if not result.get("accepted"):
        return f"Rejected: {result.get('reason', 'unknown reason')}"
    return (
        f"Job started for {result.get('total', 0)} numbers. "
        "Use session_status to follow progress and latest_result when it finishes."
    )


async def latest_result() -> str:
    """Locate the most recent result spreadsheet."""
    result = await _call_service("GET", "/result/latest")
    if "error" in result:
        return f"Error: {result['error']}"

    status = result.get("status")
    if status == "running":
        return "A job is still running. Try again when it finishes."
    if status == "available":
        return f"Latest results: {result['filename']}\nDownload: {CHECKER_URL}{result['url']}"
    return "No results yet."

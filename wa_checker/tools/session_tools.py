"""MCP tools for managing the WhatsApp session."""

from __future__ import annotations

import json
from typing import Optional

import httpx

from ..config import CHECKER_URL


async def _call_service(
    method: str,
    path: str,
    json_body: Optional[dict] = None,
    files: Optional[dict] = None,
) -> dict:
    """Make a request to the checker HTTP service."""
    url = f"{CHECKER_URL}{path}"
    try:
        async with httpx.AsyncClient(timeout=120.0) as client:
            if method == "GET":
                resp = await client.get(url)
            elif files is not None:
                resp = await client.post(url, files=files)
            else:
                resp = await client.post(url, json=json_body or {})

            data = resp.json()
            if resp.status_code >= 400 and "reason" not in data:
                return {"error": data.get("error", f"HTTP {resp.status_code}")}
            return data

    except httpx.ConnectError:
        return {
            "error": "Checker service is not reachable at "
            f"{CHECKER_URL}. It should auto-start with the MCP server. "
            "If running standalone: python -m wa_checker.session_manager"
        }
    except httpx.TimeoutException:
        return {"error": "Checker service timed out."}
    except Exception as e:
        return {"error": f"Failed to connect to checker service: {e}"}


async def connect() -> str:
    """Start linking WhatsApp Web.

    Returns:
        Whether the session is ready or a QR code is on its way.
    """
    result = await _call_service("POST", "/connect")
    if "error" in result:
        return f"Error: {result['error']}"

    if result.get("ready"):
        return f"Session is ready. {result.get('message', '')}"
    return (
        f"{result.get('message', '')}\n\n"
        "Call session_status to get the QR code, then scan it from WhatsApp on your phone "
        "(Settings > Linked devices > Link a device)."
    )


async def session_status() -> str:
    """Return session readiness, job progress and the current QR code as JSON."""
    result = await _call_service("GET", "/status")
    if "error" in result:
        return f"Error: {result['error']}"
    return json.dumps(result, indent=2)


async def stop() -> str:
    """Abort a pending connect attempt."""
    result = await _call_service("POST", "/stop")
    if "error" in result:
        return f"Error: {result['error']}"
    return result.get("message", "Stopped.")


async def disconnect() -> str:
    """Tear down the WhatsApp session."""
    result = await _call_service("POST", "/disconnect")
    if "error" in result:
        return f"Error: {result['error']}"
    return result.get("message", "Disconnected.")

import asyncio

from wa_checker.tools import check_tools, session_tools


def test_check_numbers_reports_rejection(tmp_path, monkeypatch):
    path = tmp_path / "numbers.csv"
    path.write_text("phone\n1\n", encoding="utf-8")
    calls = []

    async def fake_call(method, path_, json_body=None, files=None):
        calls.append((method, path_, sorted(files)))
        return {"accepted": False, "reason": "session not ready"}

    monkeypatch.setattr(check_tools, "_call_service", fake_call)

    result = asyncio.run(check_tools.check_numbers(str(path)))

    assert result == "Rejected: session not ready"
    assert calls == [("POST", "/submit", ["file"])]


def test_check_numbers_missing_file(tmp_path):
    result = asyncio.run(check_tools.check_numbers(str(tmp_path / "nope.xlsx")))
    assert result.startswith("Error: file not found")


def test_latest_result_messages(monkeypatch):
    responses = iter([
        {"status": "running"},
        {"status": "available", "filename": "r.xlsx", "url": "/results/r.xlsx"},
        {"status": "none"},
    ])

    async def fake_call(method, path, json_body=None, files=None):
        return next(responses)

    monkeypatch.setattr(check_tools, "_call_service", fake_call)

    assert "still running" in asyncio.run(check_tools.latest_result())
    assert "/results/r.xlsx" in asyncio.run(check_tools.latest_result())
    assert asyncio.run(check_tools.latest_result()) == "No results yet."


def test_connect_surfaces_service_errors(monkeypatch):
    async def fake_call(method, path, json_body=None, files=None):
        return {"error": "Checker service timed out."}

    monkeypatch.setattr(session_tools, "_call_service", fake_call)
    assert asyncio.run(session_tools.connect()) == "Error: Checker service timed out."


def test_lifespan_reuses_a_running_service(monkeypatch):
    from wa_checker import server

    async def already_running():
        return True

    def no_runner(app):
        raise AssertionError("a second service must not be started")

    monkeypatch.setattr(server, "_service_running", already_running)
    monkeypatch.setattr(server, "AppRunner", no_runner)

    async def scenario():
        async with server.lifespan(server.mcp) as state:
            assert state == {}

    asyncio.run(scenario())

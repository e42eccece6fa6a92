import asyncio

from aiohttp import FormData, test_utils

from conftest import FakeTransport, picture_client, settle
from wa_checker.session_manager.lookup import LookupClient
from wa_checker.session_manager.manager import CheckerService, create_app
from wa_checker.session_manager.session import SessionManager
from wa_checker.session_manager.transport import Contact, TransportEventKind

CSV_BODY = b"phone\n15550001\n\n15550002\n"


def build_service(tmp_path, transport):
    session = SessionManager(lambda: transport, echo_qr=False)
    lookup = LookupClient(session, pictures_dir=tmp_path / "pics", http_client=picture_client())
    return CheckerService(
        results_dir=tmp_path / "results",
        pictures_dir=tmp_path / "pics",
        uploads_dir=tmp_path / "uploads",
        session=session,
        lookup_client=lookup,
        item_delay=0,
    )


def csv_form(field="file", filename="numbers.csv", body=CSV_BODY):
    form = FormData()
    form.add_field(field, body, filename=filename, content_type="text/csv")
    return form


async def connect_ready(client, transport):
    resp = await client.post("/connect")
    assert (await resp.json())["success"]
    transport.emit(TransportEventKind.READY)
    await settle()


def test_status_before_anything_happens(tmp_path):
    async def scenario():
        svc = build_service(tmp_path, FakeTransport())
        async with test_utils.TestClient(test_utils.TestServer(create_app(svc))) as client:
            resp = await client.get("/status")
            data = await resp.json()
            assert data == {
                "sessionReady": False,
                "jobRunning": False,
                "job": {"total": 0, "processed": 0, "success": 0, "failed": 0},
                "challengeCode": None,
                "isStopping": False,
                "sessionState": "uninitialized",
                "lastError": None,
            }

    asyncio.run(scenario())


def test_challenge_is_hidden_once_stopping(tmp_path):
    async def scenario():
        transport = FakeTransport()
        svc = build_service(tmp_path, transport)
        async with test_utils.TestClient(test_utils.TestServer(create_app(svc))) as client:
            resp = await client.post("/connect")
            assert (await resp.json())["ready"] is False

            transport.emit(TransportEventKind.QR, "2@code")
            await settle()
            data = await (await client.get("/status")).json()
            assert data["challengeCode"] == "2@code"

            resp = await client.post("/stop")
            assert (await resp.json())["success"]
            data = await (await client.get("/status")).json()
            assert data["isStopping"] is True
            assert data["challengeCode"] is None
            assert data["sessionReady"] is False

            # idempotent
            resp = await client.post("/stop")
            assert resp.status == 200

    asyncio.run(scenario())


def test_submit_rejections(tmp_path):
    async def scenario():
        transport = FakeTransport()
        svc = build_service(tmp_path, transport)
        async with test_utils.TestClient(test_utils.TestServer(create_app(svc))) as client:
            resp = await client.post("/submit")
            assert resp.status == 400
            assert (await resp.json()) == {"accepted": False, "reason": "no input provided"}

            resp = await client.post("/submit", data=csv_form())
            assert (await resp.json())["reason"] == "session not ready"

            await connect_ready(client, transport)
            transport.gate = asyncio.Event()
            resp = await client.post("/submit", data=csv_form())
            assert (await resp.json())["accepted"] is True

            resp = await client.post("/submit", data=csv_form())
            assert resp.status == 400
            assert (await resp.json())["reason"] == "job already running"

            data = await (await client.get("/result/latest")).json()
            assert data == {"status": "running"}

            transport.gate.set()
            await svc.engine.wait()

            resp = await client.post("/submit", data=csv_form(filename="numbers.pdf", body=b"%PDF"))
            assert (await resp.json())["reason"] == "invalid input file"

    asyncio.run(scenario())


def test_full_run_through_http(tmp_path):
    async def scenario():
        transport = FakeTransport(
            contacts={"15550001@c.us": Contact(id="15550001@c.us", pushname="Alice")},
        )
        svc = build_service(tmp_path, transport)
        async with test_utils.TestClient(test_utils.TestServer(create_app(svc))) as client:
            data = await (await client.get("/result/latest")).json()
            assert data == {"status": "none"}

            await connect_ready(client, transport)
            resp = await client.post("/connect")
            assert (await resp.json())["ready"] is True

            resp = await client.post("/submit", data=csv_form(field="excelFile"))
            body = await resp.json()
            assert body["accepted"] is True
            assert body["total"] == 2
            await svc.engine.wait()

            status = await (await client.get("/status")).json()
            assert status["jobRunning"] is False
            assert status["job"] == {"total": 2, "processed": 2, "success": 1, "failed": 1}

            job = await (await client.get("/job")).json()
            assert [r["phone_number"] for r in job["records"]] == ["15550001", "15550002"]
            assert job["artifact"]["row_count"] == 2

            latest = await (await client.get("/result/latest")).json()
            assert latest["status"] == "available"
            assert latest["filename"] == job["artifact"]["filename"]

            download = await client.get(latest["url"])
            assert download.status == 200
            assert len(await download.read()) > 0

            assert len(list((tmp_path / "uploads").iterdir())) == 1

    asyncio.run(scenario())


def test_disconnect_endpoint(tmp_path):
    async def scenario():
        transport = FakeTransport()
        svc = build_service(tmp_path, transport)
        async with test_utils.TestClient(test_utils.TestServer(create_app(svc))) as client:
            await connect_ready(client, transport)
            assert svc.session.is_ready

            resp = await client.post("/disconnect")
            assert (await resp.json())["success"]
            data = await (await client.get("/status")).json()
            assert data["sessionReady"] is False
            assert data["sessionState"] == "disconnected"
            assert transport.destroyed == 1

    asyncio.run(scenario())

import asyncio

import httpx

from conftest import PICTURE_BYTES, FakeTransport, make_ready_session, picture_client
from wa_checker.errors import ContactNotFoundError, LookupFailed
from wa_checker.session_manager.lookup import LookupClient, format_contact_id
from wa_checker.session_manager.session import SessionManager
from wa_checker.session_manager.transport import Contact


def test_format_contact_id_keeps_digits_only():
    assert format_contact_id("15550001") == "15550001@c.us"
    assert format_contact_id("+1 555-0001") == "15550001@c.us"


def test_registered_contact_with_picture(tmp_path):
    async def scenario():
        transport = FakeTransport(
            contacts={"15550001@c.us": Contact(id="15550001@c.us", pushname="Alice")},
            pictures={"15550001@c.us": "https://pps.example.net/alice.jpg"},
        )
        session = await make_ready_session(transport)
        client = LookupClient(session, pictures_dir=tmp_path, http_client=picture_client())

        result = await client.lookup("15550001")

        assert result.is_registered is True
        assert result.name == "Alice"
        assert result.profile_pic_url == "https://pps.example.net/alice.jpg"
        assert result.profile_pic_path == str(tmp_path / "15550001.jpg")
        assert (tmp_path / "15550001.jpg").read_bytes() == PICTURE_BYTES
        await session.close()

    asyncio.run(scenario())


def test_saved_name_wins_over_pushname(tmp_path):
    async def scenario():
        transport = FakeTransport(
            contacts={"1@c.us": Contact(id="1@c.us", name="Saved", pushname="Pushed")},
        )
        session = await make_ready_session(transport)
        result = await LookupClient(session, pictures_dir=tmp_path, http_client=picture_client()).lookup("1")
        assert result.name == "Saved"
        assert result.profile_pic_path is None
        await session.close()

    asyncio.run(scenario())


def test_not_found_is_not_an_error(tmp_path):
    async def scenario():
        transport = FakeTransport(errors={"15550002@c.us": ContactNotFoundError("404: not on WhatsApp")})
        session = await make_ready_session(transport)
        result = await LookupClient(session, pictures_dir=tmp_path).lookup("15550002")

        assert result.is_registered is False
        assert not result.is_error
        assert result.error == "404: not on WhatsApp"
        await session.close()

    asyncio.run(scenario())


def test_timeout_on_404_area_code_is_an_error(tmp_path):
    async def scenario():
        contact_id = "14045550123@c.us"
        timeout = TimeoutError(
            'Timeout 60000ms exceeded. navigating to "https://web.whatsapp.com/send?phone=14045550123"'
        )
        session = await make_ready_session(FakeTransport(errors={contact_id: timeout}))
        result = await LookupClient(session, pictures_dir=tmp_path).lookup("14045550123")

        assert result.is_registered == "error"
        assert result.name == "Error"
        assert "14045550123" in result.error
        await session.close()

    asyncio.run(scenario())


def test_http_404_status_counts_as_not_found(tmp_path):
    async def scenario():
        request = httpx.Request("GET", "https://web.whatsapp.com/send?phone=9")
        not_found = httpx.HTTPStatusError(
            "Not Found", request=request, response=httpx.Response(404, request=request)
        )
        session = await make_ready_session(FakeTransport(errors={"9@c.us": not_found}))
        result = await LookupClient(session, pictures_dir=tmp_path).lookup("9")
        assert result.is_registered is False
        await session.close()

    asyncio.run(scenario())


def test_page_that_never_settles_is_an_error(tmp_path):
    async def scenario():
        failure = LookupFailed("Chat for 15550001 did not load: Timeout 60000ms exceeded.")
        session = await make_ready_session(FakeTransport(errors={"15550001@c.us": failure}))
        result = await LookupClient(session, pictures_dir=tmp_path).lookup("15550001")
        assert result.is_registered == "error"
        assert not result.counts_as_success
        await session.close()

    asyncio.run(scenario())


def test_other_errors_are_kept_in_the_record(tmp_path):
    async def scenario():
        transport = FakeTransport(errors={"7@c.us": RuntimeError("Evaluation failed: rate limited")})
        session = await make_ready_session(transport)
        result = await LookupClient(session, pictures_dir=tmp_path).lookup("7")

        assert result.is_registered == "error"
        assert result.name == "Error"
        assert result.profile_pic_url == "Evaluation failed: rate limited"
        assert not result.counts_as_success
        await session.close()

    asyncio.run(scenario())


def test_unknown_contact_is_not_registered(tmp_path):
    async def scenario():
        session = await make_ready_session(FakeTransport())
        result = await LookupClient(session, pictures_dir=tmp_path).lookup("123")
        assert result.is_registered is False
        assert result.name == "Not available"
        assert result.profile_pic_url is None
        await session.close()

    asyncio.run(scenario())


def test_picture_failures_never_fail_the_lookup(tmp_path):
    async def scenario():
        contacts = {
            "1@c.us": Contact(id="1@c.us", pushname="One"),
            "2@c.us": Contact(id="2@c.us", pushname="Two"),
        }
        transport = FakeTransport(
            contacts=contacts,
            pictures={"1@c.us": "https://pps.example.net/one.jpg"},
            picture_errors={"2@c.us": RuntimeError("privacy settings")},
        )
        session = await make_ready_session(transport)
        client = LookupClient(session, pictures_dir=tmp_path, http_client=picture_client(500))

        first = await client.lookup("1")
        second = await client.lookup("2")

        assert first.is_registered is True
        assert first.profile_pic_url == "https://pps.example.net/one.jpg"
        assert first.profile_pic_path is None
        assert not (tmp_path / "1.jpg").exists()
        assert second.is_registered is True
        assert second.profile_pic_path is None
        await session.close()

    asyncio.run(scenario())


def test_repeat_download_overwrites_same_file(tmp_path):
    async def scenario():
        session = await make_ready_session(FakeTransport())
        client = LookupClient(session, pictures_dir=tmp_path, http_client=picture_client())
        (tmp_path / "15550001.jpg").write_bytes(b"old")

        path = await client.download_profile_picture("https://pps.example.net/a.jpg", "15550001")

        assert path == tmp_path / "15550001.jpg"
        assert path.read_bytes() == PICTURE_BYTES
        await session.close()

    asyncio.run(scenario())


def test_lookup_without_ready_session_is_an_error(tmp_path):
    async def scenario():
        session = SessionManager(FakeTransport, echo_qr=False)
        result = await LookupClient(session, pictures_dir=tmp_path).lookup("15550001")
        assert result.is_registered == "error"
        assert "not ready" in result.error

    asyncio.run(scenario())

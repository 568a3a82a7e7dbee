"""Tests for the transport seam: credentials, backend loading, loopback."""

import json
import os

import pytest

from transport.base import ConnectionUpdate, DisconnectReason, is_terminal_close
from transport.credentials import FileCredentialStore
from transport.factory import load_session_class
from transport.loopback import LoopbackSession


class TestCloseClassification:
    def test_only_logged_out_is_terminal(self):
        assert is_terminal_close(ConnectionUpdate(connection="close", status_code=401))
        for reason in DisconnectReason:
            if reason is DisconnectReason.LOGGED_OUT:
                continue
            assert not is_terminal_close(
                ConnectionUpdate(connection="close", status_code=reason)
            )

    def test_unknown_close_is_recoverable(self):
        update = ConnectionUpdate(connection="close")
        assert not is_terminal_close(update)
        assert update.close_reason == "unknown"

    def test_close_reason_prefers_status_code(self):
        update = ConnectionUpdate(
            connection="close", status_code=DisconnectReason.CONNECTION_REPLACED, reason="x"
        )
        assert update.close_reason == "440"


class TestFileCredentialStore:
    @pytest.mark.asyncio
    async def test_load_missing_returns_none(self, tmp_path):
        store = FileCredentialStore(str(tmp_path / "auth"))
        assert await store.load() is None

    @pytest.mark.asyncio
    async def test_save_then_load(self, tmp_path):
        store = FileCredentialStore(str(tmp_path / "auth"))
        await store.save({"noise_key": "abc", "registration_id": 7})

        again = FileCredentialStore(str(tmp_path / "auth"))
        assert await again.load() == {"noise_key": "abc", "registration_id": 7}
        assert not os.path.exists(store.path + ".tmp")

    @pytest.mark.asyncio
    async def test_corrupt_file_treated_as_missing(self, tmp_path):
        auth = tmp_path / "auth"
        auth.mkdir()
        (auth / FileCredentialStore.FILE_NAME).write_text("{not json", encoding="utf-8")
        assert await FileCredentialStore(str(auth)).load() is None

    @pytest.mark.asyncio
    async def test_save_overwrites(self, tmp_path):
        store = FileCredentialStore(str(tmp_path))
        await store.save({"v": 1})
        await store.save({"v": 2})
        with open(store.path, encoding="utf-8") as f:
            assert json.load(f) == {"v": 2}


class TestLoadSessionClass:
    def test_none_when_unset(self):
        assert load_session_class(None) is None
        assert load_session_class("") is None

    def test_resolves_loopback(self):
        assert load_session_class("transport.loopback:LoopbackSession") is LoopbackSession

    def test_missing_attribute(self):
        with pytest.raises(ImportError):
            load_session_class("transport.loopback:Nope")

    def test_missing_module(self):
        with pytest.raises(ImportError):
            load_session_class("transport.does_not_exist:Session")

    def test_rejects_non_session(self):
        with pytest.raises(TypeError):
            load_session_class("transport.base:ConnectionUpdate")


class TestLoopbackSession:
    @pytest.mark.asyncio
    async def test_connect_emits_credentials_and_open(self):
        session = LoopbackSession()
        updates, creds = [], []

        async def on_update(update):
            updates.append(update)

        async def on_creds(c):
            creds.append(c)

        session.on_connection_update(on_update)
        session.on_credentials_update(on_creds)
        await session.connect()

        assert [u.connection for u in updates] == ["open"]
        assert len(creds) == 1
        assert session.credentials == creds[0]

    @pytest.mark.asyncio
    async def test_existing_credentials_not_regenerated(self):
        session = LoopbackSession({"id": "known"})
        await session.connect()
        assert session.credentials == {"id": "known"}

    @pytest.mark.asyncio
    async def test_send_records_and_acknowledges(self):
        session = LoopbackSession()
        await session.connect()
        receipt = await session.send_text("1@s.whatsapp.net", "hi")
        assert receipt.address == "1@s.whatsapp.net"
        assert session.sent == [("1@s.whatsapp.net", "hi")]

    @pytest.mark.asyncio
    async def test_send_after_drop_fails(self):
        session = LoopbackSession()
        await session.connect()
        await session.drop(status_code=DisconnectReason.CONNECTION_LOST)
        with pytest.raises(ConnectionError):
            await session.send_text("1@s.whatsapp.net", "hi")

    @pytest.mark.asyncio
    async def test_inject_message(self):
        session = LoopbackSession()
        received = []

        async def on_messages(messages):
            received.extend(messages)

        session.on_messages(on_messages)
        envelope = await session.inject_message("2@s.whatsapp.net", "hello")
        assert received == [envelope]
        assert envelope.message == {"conversation": "hello"}

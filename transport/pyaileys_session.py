"""
WhatsApp Web transport backed by pyaileys.

Select with ``TRANSPORT_BACKEND=transport.pyaileys_session:PyaileysSession``
and install the ``whatsapp`` extra.

pyaileys keeps its own multi-file auth state (``creds.json`` plus signal key
files) under ``<AUTH_DIR>/pyaileys``. The gateway credential store only
receives a JSON summary of the paired account.
"""

from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .base import ConnectionUpdate, InboundEnvelope, Receipt, TransportSession


def _user_part(jid: Optional[str]) -> Optional[str]:
    """``"123:4@s.whatsapp.net"`` -> ``"123"``"""
    if not jid:
        return None
    return jid.split("@", 1)[0].split(":", 1)[0]


def _close_details(error: Optional[BaseException]) -> tuple[Optional[int], Optional[str]]:
    """Status code and reason for a pyaileys ``last_disconnect`` error."""
    if error is None:
        return None, None
    code = getattr(error, "status_code", None)
    if not isinstance(code, int):
        code = None
    return code, type(error).__name__


class PyaileysSession(TransportSession):
    """One pyaileys ``WhatsAppClient`` wrapped as a gateway session."""

    name = "pyaileys"

    # Overrides <AUTH_DIR>/pyaileys when set
    auth_folder: Optional[str] = None

    def __init__(self, credentials: Any = None):
        super().__init__(credentials)
        self._client: Any = None
        self._auth_state: Any = None
        self._last_qr: Optional[str] = None
        self._closed = False

    @staticmethod
    async def _open_client(folder: str) -> tuple[Any, Any]:
        # pyaileys pulls in the generated WAProto module; import only when used
        from pyaileys import WhatsAppClient

        return await WhatsAppClient.from_auth_folder(folder)

    def _resolve_auth_folder(self) -> str:
        if self.auth_folder:
            return self.auth_folder
        from config.settings import get_settings

        return str(Path(get_settings().auth_dir) / "pyaileys")

    async def connect(self) -> None:
        folder = self._resolve_auth_folder()
        self._client, self._auth_state = await self._open_client(folder)
        self._client.on("connection.update", self._on_connection_update)
        self._client.on("creds.update", self._on_creds_update)
        self._client.on("message.decrypted", self._on_message_decrypted)

        logger.info(f"pyaileys: connecting with auth state in {folder}")
        await self._client.connect()
        await self._auth_state.save_creds()

    async def send_text(self, address: str, text: str) -> Receipt:
        if self._client is None or self._closed:
            raise ConnectionError("pyaileys session is not connected")
        message_id = await self._client.send_text(address, text)
        return Receipt(message_id=str(message_id), address=address)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._client is not None:
            await self._client.disconnect()

    # ------------------------------------------------------------------
    # pyaileys events
    # ------------------------------------------------------------------

    async def _on_connection_update(self, update: Any) -> None:
        if self._closed:
            return

        qr = getattr(update, "qr", None)
        if qr and qr != self._last_qr:
            self._last_qr = qr
        else:
            qr = None

        # "connecting" carries no state change for the gateway
        connection = getattr(update, "connection", None)
        if connection not in ("open", "close"):
            connection = None
        if qr is None and connection is None:
            return

        status_code, reason = None, None
        if connection == "close":
            status_code, reason = _close_details(getattr(update, "last_disconnect", None))
        await self._emit_connection_update(
            ConnectionUpdate(
                connection=connection, qr=qr, status_code=status_code, reason=reason
            )
        )

    async def _on_creds_update(self, creds: Any) -> None:
        if self._auth_state is not None:
            await self._auth_state.save_creds()
        me = getattr(creds, "me", None)
        await self._emit_credentials_update(
            {
                "backend": self.name,
                "me": getattr(me, "id", None),
                "registered": bool(getattr(creds, "registered", False)),
            }
        )

    async def _on_message_decrypted(self, event: dict[str, Any]) -> None:
        if self._closed:
            return
        text = event.get("text")
        me = getattr(getattr(self._auth_state, "creds", None), "me", None)
        sender = _user_part(event.get("sender_jid"))
        envelope = InboundEnvelope(
            id=str(event.get("id") or ""),
            remote_jid=event.get("chat_jid") or "",
            from_me=sender is not None and sender == _user_part(getattr(me, "id", None)),
            timestamp=event.get("timestamp_s"),
            message={"conversation": text} if text else None,
        )
        await self._emit_messages([envelope])

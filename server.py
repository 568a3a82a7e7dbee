"""
Messaging Gateway

Keeps one persistent connection to the messaging transport and exposes:
- single and bulk sends with mandatory pacing (POST /send, /upload-lines, /send-bulk)
- recipient validation (POST /check-jid)
- a live SSE feed of connection, message and bulk progress events (GET /events)
"""

from api.app import app, create_app

__all__ = ["app", "create_app"]

if __name__ == "__main__":
    import uvicorn

    from config.settings import get_settings

    settings = get_settings()
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level="info",
        log_config=None,
    )

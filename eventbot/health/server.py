import logging

from fastapi import FastAPI

from eventbot.storage.event_store import JsonEventStore

logger = logging.getLogger("health")

def create_app(store: JsonEventStore | None = None) -> FastAPI:
    app = FastAPI()

    @app.get("/health")
    def health():
        logger.debug("Health endpoint was pinged")
        payload = {"ok": True}
        if store is not None:
            payload["events"] = len(store.list())
        return payload

    return app

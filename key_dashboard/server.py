"""HTTP surface for the key handlers.

Run:
  key-dashboard-server
  uvicorn --factory key_dashboard.server:create_app
"""

from __future__ import annotations

import json
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from key_dashboard import __version__
from key_dashboard.backends import Gateway, gateway_from_env
from key_dashboard.config import ServerConfig
from key_dashboard.handlers import BODY_NOT_OBJECT, HandlerResult, KeyHandlers

logger = logging.getLogger(__name__)

SERVICE_NAME = "key-dashboard"


def _respond(result: HandlerResult) -> JSONResponse:
    return JSONResponse(result.body, status_code=result.status_code)


async def _read_json(request: Request) -> object | None:
    """Decoded body, or ``None`` when it is missing or not JSON."""
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


def create_app(gateway: Gateway | None = None, config: ServerConfig | None = None) -> FastAPI:
    config = config or ServerConfig.from_env()
    handlers = KeyHandlers(gateway if gateway is not None else gateway_from_env())

    app = FastAPI(title="API Key Dashboard", version=__version__)
    app.state.handlers = handlers

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(config.cors_origins),
            allow_methods=["GET", "POST", "PATCH", "DELETE"],
            allow_headers=["*"],
        )

    @app.get("/keys")
    async def list_keys() -> JSONResponse:
        return _respond(await handlers.list_keys())

    @app.post("/keys")
    async def create_key(request: Request) -> JSONResponse:
        payload = await _read_json(request)
        if payload is None:
            return JSONResponse({"error": BODY_NOT_OBJECT}, status_code=400)
        return _respond(await handlers.create_key(payload))

    @app.patch("/keys/{key_id}")
    async def update_key(key_id: str, request: Request) -> JSONResponse:
        payload = await _read_json(request)
        if payload is None:
            return JSONResponse({"error": BODY_NOT_OBJECT}, status_code=400)
        return _respond(await handlers.update_key(key_id, payload))

    @app.delete("/keys/{key_id}")
    async def delete_key(key_id: str) -> JSONResponse:
        return _respond(await handlers.delete_key(key_id))

    @app.get("/health")
    async def health() -> JSONResponse:
        ok = await handlers.gateway.health_check()
        return JSONResponse(
            {
                "status": "ok" if ok else "degraded",
                "service": SERVICE_NAME,
                "backend": handlers.gateway.name,
            },
            status_code=200 if ok else 503,
        )

    return app


def main() -> None:
    import uvicorn

    load_dotenv()
    config = ServerConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    app = create_app(config=config)
    logger.info("Serving %s on %s:%s", SERVICE_NAME, config.host, config.port)
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import date, datetime, timezone
from dotenv import load_dotenv
from typing import Callable, Optional
import logging

import uvicorn

from relay.settings import Settings
from relay.adapters.base import UpstreamClient
from relay.adapters.rapidapi import RapidApiClient
from relay.adapters.utils import QuotaGuard, ResponseCache
from relay.errors import RelayError
from relay.service import RelayService


# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    client: Optional[UpstreamClient] = None,
    clock: Optional[Callable[[], float]] = None,
    today: Optional[Callable[[], date]] = None,
) -> FastAPI:
    settings = settings or Settings.load()
    client = client or RapidApiClient(settings.api_base, timeout=settings.upstream_timeout)

    cache = ResponseCache(ttl_seconds=settings.cache_ttl_seconds, clock=clock)
    guard = QuotaGuard(daily_limit=settings.daily_limit, today=today)
    service = RelayService(settings, cache, guard, client)

    app = FastAPI(title="RapidAPI Relay", version="0.1.0")
    app.state.settings = settings
    app.state.relay = service

    # Browser clients are served from file:// or other dev origins.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    # ------------------------ Diagnostics ------------------------

    @app.get("/api/health")
    def health():
        return {"status": "up", "ts": datetime.now(timezone.utc).isoformat()}

    @app.get("/api/status")
    def status():
        return service.status()

    # ------------------------ Relayed routes ------------------------

    @app.get("/api/episodes")
    def episodes(request: Request):
        """Connectivity check: pass-through query, non-JSON bodies wrapped as {"raw": ...}."""
        return service.episodes(request.query_params)

    @app.get("/api/products")
    def products(request: Request):
        return service.products(request.query_params)

    # Registered before /api/products/{product_id} so "search" is never read as an id.
    @app.get("/api/products/search")
    def search_products(
        q: Optional[str] = Query(None),
        sort: Optional[str] = Query(None),
        page: Optional[str] = Query(None),
        limit: Optional[str] = Query(None),
    ):
        return service.search_products(q=q, sort=sort, page=page, limit=limit)

    @app.get("/api/products/{product_id}")
    def product_detail(product_id: str):
        return service.product_detail(product_id)

    return app


def run() -> None:
    settings = Settings.load()
    configure_logging(settings.log_level)
    logger.info("[proxy] listening on http://localhost:%s (quota %d/day)", settings.port, settings.daily_limit)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


app = create_app()


if __name__ == "__main__":
    run()

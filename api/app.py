from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.ai_routes import router as ai_router
from api.auth_routes import router as auth_router
from api.errors import register_exception_handlers
from api.player_routes import router as player_router
from api.playlist_routes import router as playlist_router
from api.schedule_routes import router as schedule_router
from api.search_routes import router as search_router
from api.services import Services, build_services
from utils.logger import log_info


def cors_origins(value: str) -> List[str]:
    """CORS_ORIGIN: unset or "*" allows any origin, otherwise a comma-separated list."""
    value = str(value or "").strip()
    if not value or value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def create_app(
    config: Dict[str, Any],
    *,
    services: Optional[Services] = None,
    start_scheduler: bool = True,
) -> FastAPI:
    services = services or build_services(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services.engine.compile()
        if start_scheduler:
            services.engine.registry.start()
        try:
            yield
        finally:
            await services.aclose()
            log_info("Services closed")

    app = FastAPI(
        title="Spotify Control Panel Backend",
        description=(
            "Spotify OAuth token lifecycle, scheduled playback, "
            "playlist and player proxy routes, AI playlist generation"
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    # === CORS Middleware ===
    origins = cors_origins(config.get("cors_origin", ""))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(auth_router, tags=["Spotify OAuth"])
    app.include_router(schedule_router)
    app.include_router(search_router)
    app.include_router(playlist_router)
    app.include_router(player_router)
    app.include_router(ai_router)

    @app.get("/health")
    def health():
        return {"ok": True, "ts": datetime.now(timezone.utc).isoformat()}

    return app


from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from casino_engine.config import settings
from casino_engine.database import close_pool, create_tables
from casino_engine.errors import EngineError
from casino_engine.middleware.auth import SESSION_HEADER
from casino_engine.redis_client import close_redis, get_redis, hit_rate_limit
from casino_engine.routes import admin, user, wagers
from casino_engine.services.casino import CasinoService

logger = logging.getLogger(__name__)

def configure_logging():
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    )

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    backend = app.state.casino.sessions.backend
    if backend == "postgres":
        await create_tables()
    if settings.REDIS_URL:
        redis = await get_redis()
        await redis.ping()
    logger.info("casino engine started (storage=%s, rate_limit=%s)", backend, bool(settings.REDIS_URL))
    yield
    await app.state.casino.close()
    if settings.REDIS_URL:
        await close_redis()
    if backend == "postgres":
        await close_pool()

def create_app(casino: CasinoService = None) -> FastAPI:
    app = FastAPI(title="Wager Engine API", version="1.0.0", lifespan=lifespan)
    app.state.casino = casino or CasinoService()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting middleware (simple Redis-based)
    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        sid = request.headers.get(SESSION_HEADER)
        if settings.REDIS_URL and sid and request.url.path.startswith("/api/"):
            if await hit_rate_limit(sid):
                logger.warning("rate limit hit for session %s", sid)
                return JSONResponse({"error": "rate_limited", "message": "Too many requests"}, status_code=429)
        return await call_next(request)

    @app.exception_handler(EngineError)
    async def engine_error(request: Request, exc: EngineError):
        return JSONResponse(exc.to_dict(), status_code=exc.status)

    app.include_router(user.router,   prefix="/api/user",  tags=["user"])
    app.include_router(wagers.router, prefix="/api/games", tags=["games"])
    app.include_router(admin.router,  prefix="/api/admin", tags=["admin"])

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app

app = create_app()

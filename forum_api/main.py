import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from forum_api.config import CORS_ORIGINS
from forum_api.database import Base, engine
from forum_api.errors import envelope, register_error_handlers
from forum_api.logging_config import configure_logging
from forum_api.routes import admin_routes, auth, category_routes, forum_routes, post_routes, user_routes

logger = logging.getLogger(__name__)


async def init_models() -> None:
    # Tiny retry so a momentary DB disconnect doesn't crash the app.
    for attempt in range(2):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            return
        except Exception as e:
            if attempt == 0:
                logger.warning("DB init failed, retrying once: %r", e)
                await asyncio.sleep(0.5)
            else:
                # Tables should already exist from previous runs.
                logger.error("Skipping DB init due to error: %r", e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Forum API", lifespan=lifespan)

    register_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router)
    app.include_router(category_routes.router)
    app.include_router(forum_routes.router)
    app.include_router(post_routes.router)
    app.include_router(user_routes.router)
    app.include_router(admin_routes.router)

    @app.get("/api/health")
    async def health():
        return envelope(True, {"status": "ok"})

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("forum_api.main:app", host="0.0.0.0", port=5000)


if __name__ == "__main__":
    run()

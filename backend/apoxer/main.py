import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import init_db, async_session_factory
from .routers import matches, tournaments, users
from .services.rewards import dispatch_pending_rewards

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    await init_db()
    reward_task = asyncio.create_task(_reward_dispatch_loop())
    yield
    reward_task.cancel()
    with suppress(asyncio.CancelledError):
        await reward_task


async def invalid_input_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid input", "errors": jsonable_encoder(exc.errors())},
    )


def create_app(*, with_lifespan: bool = True) -> FastAPI:
    app = FastAPI(title=settings.app_name, lifespan=lifespan if with_lifespan else None)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.cors_origins],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, invalid_input_handler)

    app.include_router(users.router, prefix=settings.api_prefix)
    app.include_router(tournaments.router, prefix=settings.api_prefix)
    app.include_router(matches.router, prefix=settings.api_prefix)

    @app.get("/healthz")
    async def healthcheck():
        return {"status": "ok"}

    return app


async def _reward_dispatch_loop() -> None:
    interval = max(1, settings.reward_dispatch_interval_seconds)
    try:
        while True:
            await asyncio.sleep(interval)
            try:
                async with async_session_factory() as session:
                    dispatched = await dispatch_pending_rewards(session)
                    if dispatched:
                        logger.info("Dispatched %s reward tasks", dispatched)
            except Exception:  # noqa: BLE001
                logger.exception("Reward dispatch loop failed")
    except asyncio.CancelledError:
        logger.debug("Reward dispatch loop cancelled")
        raise


app = create_app()

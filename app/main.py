import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.auth import require_auth_token
from app.core.db import init_db
from app.core.exceptions import AnalyticsError
from app.core.log_config import configure_logging
from app.routers import events, experiments, features, funnels, journeys, retention, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()
    logger.info("Product analytics API started")
    yield


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AnalyticsError)
    async def analytics_error_handler(request: Request, exc: AnalyticsError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error_code": exc.error_code},
        )


app = FastAPI(
    title="Product Analytics API",
    description="Event tracking, funnels, retention, journeys, feature adoption and A/B tests",
    version="0.1.0",
    dependencies=[Depends(require_auth_token)],
    lifespan=lifespan,
)

register_exception_handlers(app)

app.include_router(events.router)
app.include_router(users.router)
app.include_router(funnels.router)
app.include_router(retention.router)
app.include_router(journeys.router)
app.include_router(features.router)
app.include_router(experiments.router)


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)

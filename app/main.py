# Run from project root: uvicorn app.main:app --reload

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from app.api.routes import router
from app.core.config import LOG_LEVEL, missing_environment
from app.services.agent_service import build_agent_runner

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    missing = missing_environment()
    if missing:
        logger.error("Missing required environment variables: %s", ", ".join(missing))
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")
    logger.info("Environment variables validated successfully")
    app.state.agent_runner = build_agent_runner()
    yield
    logger.info("Shutting down")


app = FastAPI(title="HR Employee Agent", lifespan=lifespan)
app.include_router(router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s %d - %.0fms", request.method, request.url.path, response.status_code, duration_ms)
    return response

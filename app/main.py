# app/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import EssayServiceError
from app.core.logging_middleware import LoggingMiddleware
from app import init_db
from app.api.v1.endpoints import health, revisions, students, submissions
from app.services.container import build_services

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)
app.state.services = None

origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(EssayServiceError)
async def essay_service_error_handler(request: Request, exc: EssayServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
async def on_startup():
    init_db()

    # tests install their own wiring before startup
    if app.state.services is None:
        app.state.services = build_services(settings)

    if settings.RETRY_SWEEPER_ENABLED:
        app.state.services.scheduler.start()
    logger.info(f"{settings.PROJECT_NAME} started ({settings.ENVIRONMENT})")


@app.on_event("shutdown")
async def on_shutdown():
    if app.state.services is not None:
        await app.state.services.scheduler.stop()
        await app.state.services.revisions.wait_for_background()


app.include_router(health.router, prefix="/api/v1")
app.include_router(students.router, prefix="/api/v1")
app.include_router(submissions.router, prefix="/api/v1")
app.include_router(revisions.router, prefix="/api/v1")

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from tutor_orchestrator.api.health import router as health_router
from tutor_orchestrator.api.metrics import router as metrics_router
from tutor_orchestrator.api.orchestrate import router as orchestrate_router
from tutor_orchestrator.api.teaching import router as teaching_router
from tutor_orchestrator.core.app_metrics import metrics_middleware
from tutor_orchestrator.core.errors import (
    http_exception_handler,
    request_id_middleware,
    unhandled_exception_handler,
    validation_exception_handler,
)
from tutor_orchestrator.core.logging import DOMAIN_PERSISTENCE, configure_logging, get_domain_logger
from tutor_orchestrator.core.settings import settings

configure_logging(settings.log_level)
logger = get_domain_logger(__name__, DOMAIN_PERSISTENCE)

app = FastAPI(title="Tutor Orchestrator API", version="0.1.0")
app.include_router(health_router)
app.include_router(orchestrate_router)
app.include_router(teaching_router)
app.include_router(metrics_router)
app.middleware("http")(metrics_middleware)
app.middleware("http")(request_id_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


@app.on_event("startup")
async def on_startup():
    if settings.create_schema_on_start and settings.durable_store_backend.strip().lower() != "memory":
        from tutor_orchestrator.memory.database import create_schema

        await create_schema()
        logger.info("Durable schema ensured")

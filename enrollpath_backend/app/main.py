import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import router as api_router
from app.core.database import engine
from app.core.errors import ExtractionFailure, InvalidTransitionError, NotFoundError
from app.core.logging import configure_logging
from app.models.base import Base
import app.models  # noqa: F401

logger = logging.getLogger(__name__)

app = FastAPI(title="EnrollPath API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.on_event("startup")
def on_startup():
    configure_logging()
    Base.metadata.create_all(bind=engine)


@app.exception_handler(NotFoundError)
def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ExtractionFailure)
def extraction_failure_handler(request: Request, exc: ExtractionFailure):
    record = exc.record
    return JSONResponse(
        status_code=422,
        content={
            "detail": exc.reason,
            "transcript_id": record.id if record else None,
            "status": record.status if record else None,
        },
    )


@app.exception_handler(InvalidTransitionError)
def invalid_transition_handler(request: Request, exc: InvalidTransitionError):
    logger.warning("Rejected transcript transition: %s", exc)
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.get("/health")
def health_check():
    return {"status": "ok"}

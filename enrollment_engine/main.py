from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from enrollment_engine.core.config import config
from enrollment_engine.core.exceptions import AdmissionError, ErrorKind
from enrollment_engine.core.logging import get_logger, setup_logging
from enrollment_engine.database.db import Base, engine
from enrollment_engine.routes import admin, enrollments, events, notifications

setup_logging()
logger = get_logger(__name__)

app = FastAPI(title="Event Enrollment & Waitlist Engine", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create all tables (in production, use migrations such as Alembic)
Base.metadata.create_all(bind=engine)


@app.exception_handler(AdmissionError)
async def admission_error_handler(request: Request, exc: AdmissionError) -> JSONResponse:
    headers = {}
    if exc.kind is ErrorKind.EVENT_BUSY:
        headers["Retry-After"] = "1"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error_code": exc.error_code, "message": exc.message},
        headers=headers,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "error_code": "INTERNAL_ERROR",
            "message": "An internal server error occurred",
            "detail": str(exc) if config.DEBUG else None,
        },
    )


@app.get("/health")
def health_check() -> dict:
    return {"status": "healthy", "app_name": config.APP_NAME}


# Include the routers
app.include_router(events.router)
app.include_router(enrollments.router)
app.include_router(admin.router)
app.include_router(notifications.router)

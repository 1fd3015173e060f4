"""
Request Size Limit - example service
Main application entry point
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import PlainTextResponse
from sizelimit.core.config import get_settings
from sizelimit.core.logging import setup_logging, get_logger
from sizelimit.core.middleware import RequestSizeLimitMiddleware
from sizelimit.models.schemas import ErrorResponse, HealthResponse, LimitsInfo, UploadResponse

VERSION = "0.1.0"

logger = get_logger(__name__)

# Get settings instance
settings = get_settings()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle manager for the FastAPI application.

    Code before 'yield' runs at startup
    Code after 'yield' runs at shutdown
    """
    # startup
    setup_logging()
    logger.info(
        "application_starting",
        mode=settings.app_mode,
        max_body_bytes=settings.max_body_bytes,
    )

    yield # Application runs here
    # shutdown
    logger.info("application_stopping")

app = FastAPI(
    title="Request Size Limit",
    description="Streaming request body size limits for ASGI apps",
    version=VERSION,
    lifespan=lifespan,
    responses={413: {"model": ErrorResponse, "description": "Request body over the limit"}},
)

# Middleware
app.add_middleware(
    RequestSizeLimitMiddleware,
    max_body_bytes=settings.max_body_bytes,
    chunk_size=settings.read_chunk_size,
)

def _limits() -> LimitsInfo:
    return LimitsInfo(
        max_body_bytes=settings.max_body_bytes,
        read_chunk_size=settings.read_chunk_size,
    )

@app.get("/")
async def root():
    """
    Returns a simple message to confirm the API is running
    """
    return {
        "status": "ok",
        "message": "Request Size Limit is running",
        "mode": settings.app_mode,
        "max_body_bytes": settings.max_body_bytes,
    }

@app.post("/", response_class=PlainTextResponse)
async def submit(request: Request):
    """
    Echo the form field 'b'.
    Reading the form pulls the body through the size limit.
    """
    form = await request.form()
    val = form.get("b", "")
    return f"got {val}\n"

@app.post("/upload", response_model=UploadResponse)
async def upload(file: UploadFile = File(...)):
    """
    Accept a multipart file upload.
    Uploads over the limit are answered with 413 before this runs.
    """
    data = await file.read()
    if not file.filename:
        raise HTTPException(status_code=400, detail="Uploaded file has no name")

    logger.info("file_uploaded", filename=file.filename, size=len(data))

    return UploadResponse(
        message="File uploaded successfully",
        filename=file.filename,
        size=len(data),
    )

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Detailed health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=VERSION,
        mode=settings.app_mode,
        limits=_limits(),
    )

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sizelimit.main:app",
        host="0.0.0.0",
        port=8080,
        log_level=settings.log_level.lower(),
    )

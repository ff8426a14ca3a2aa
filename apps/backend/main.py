"""
FastAPI application for the collectible research backend.

Research and dealer routes live in routes/; this module wires logging,
middleware, CORS, health and metrics endpoints and the error handlers.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from exceptions import ResearchError
from observability import ObservabilityMiddleware, get_correlation_id, metrics_registry, setup_logging
from routes.dealers import router as dealers_router
from routes.research import router as research_router
from utils.security import redact_sensitive

load_dotenv(dotenv_path=Path(__file__).resolve().parent / ".env", override=False)
setup_logging()

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

app = FastAPI(
    title="Collectible Research Backend",
    description="Dealer research, visual matching and attribution for collectible posters",
    version=VERSION,
)

app.add_middleware(ObservabilityMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(research_router)
app.include_router(dealers_router)


class HealthResponse(BaseModel):
    status: str
    version: str


@app.get("/health", response_model=HealthResponse)
async def health_check():
    return {"status": "healthy", "version": VERSION}


@app.get("/metrics")
async def metrics():
    return Response(generate_latest(metrics_registry), media_type=CONTENT_TYPE_LATEST)


@app.exception_handler(ResearchError)
async def research_error_handler(request: Request, exc: ResearchError):
    body = exc.to_dict()
    if "detail" in body:
        body["detail"] = redact_sensitive(body["detail"])
    body["request_id"] = get_correlation_id()

    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"[API] {request.method} {request.url.path} -> {exc.status_code} {type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Unhandled errors: full traceback server-side, a safe message to the client."""
    request_id = get_correlation_id()
    logger.error(
        f"[API] Unhandled exception on {request.method} {request.url.path}",
        exc_info=exc,
        extra={"error_type": type(exc).__name__},
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "InternalServerError",
            "message": "An unexpected error occurred",
            "request_id": request_id,
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=False)

"""FastAPI application entry point."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from rich.logging import RichHandler

from cdi_optimizer.config import settings
from cdi_optimizer.errors import PipelineError
from cdi_optimizer.models.schemas import ErrorResponse
from cdi_optimizer.routers.optimize import router as optimize_router

logging.basicConfig(
    level=logging.INFO,
    format="%(name)s - %(message)s",
    datefmt="%H:%M:%S",
    handlers=[RichHandler(rich_tracebacks=True, markup=False)],
    force=True,
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
# Our app loggers: show DEBUG when debug=True, keep third-party libs at INFO
if settings.debug:
    logging.getLogger("cdi_optimizer").setLevel(logging.DEBUG)


app = FastAPI(
    title="CDI Optimizer",
    description="Clinical documentation review against payer guidelines",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_credentials=True,
    allow_headers=["*"],
)

app.include_router(optimize_router)


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    location = ".".join(str(p) for p in errors[0]["loc"]) if errors else "body"
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error=f"Invalid request body: {location}").model_dump(),
    )


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}

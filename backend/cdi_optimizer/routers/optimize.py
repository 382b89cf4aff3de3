"""Clinical documentation optimization endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter

from cdi_optimizer.errors import PipelineError
from cdi_optimizer.models.schemas import ClinicalResult, ErrorResponse, OptimizeRequest
from cdi_optimizer.services.optimizer_service import optimize_documents

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["optimize"])


@router.post(
    "/optimize-clinical-doc",
    response_model=ClinicalResult,
    response_model_exclude_none=True,
    responses={
        status: {"model": ErrorResponse} for status in (400, 402, 429, 500, 502, 504)
    },
)
async def optimize_clinical_doc(request: OptimizeRequest) -> ClinicalResult:
    try:
        return await optimize_documents(request)
    except PipelineError as e:
        logger.warning("Optimization failed: code=%s status=%d", e.code, e.status_code)
        raise
    except Exception as e:
        logger.exception("Unexpected error in optimize-clinical-doc")
        raise PipelineError(
            code="INTERNAL_ERROR",
            message=str(e) or "An unexpected error occurred. Please try again.",
        )

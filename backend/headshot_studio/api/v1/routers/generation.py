"""API routes for costed image generation.

This module provides REST endpoints for:
- POST /api/v1/generate/headshot - Professional headshot from a portrait
- POST /api/v1/generate/image-edit - Prompt-driven edit of an image
- GET /api/v1/generate/history - Recent generations
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, ValidationError

from headshot_studio.api.deps import get_credit_ledger, get_current_account, get_generation_service
from headshot_studio.models.account import Account
from headshot_studio.models.generation import GenerationKind
from headshot_studio.providers.errors import ProviderFailure
from headshot_studio.schemas.generation import (
    GenerationHistoryResponse,
    GenerationRecordResponse,
    GenerationResponse,
    HeadshotParameters,
    ImageEditParameters,
)
from headshot_studio.services.credit_ledger import CreditLedger
from headshot_studio.services.errors import (
    AccountNotFoundError,
    InsufficientBalanceError,
    ReservationClosedError,
    SettlementInconsistency,
)
from headshot_studio.services.generation_service import GenerationService
from headshot_studio.utils import FileValidationError, validate_image_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/generate", tags=["generation"])


async def _read_image(image: UploadFile) -> tuple[bytes, str]:
    """Read an upload and check it is a supported image within the size limit."""
    content = await image.read()
    try:
        mime_type = validate_image_upload(content, image.filename or "unknown")
    except FileValidationError as e:
        code = (
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
            if "exceeds maximum" in str(e)
            else status.HTTP_400_BAD_REQUEST
        )
        raise HTTPException(status_code=code, detail=str(e))
    return content, mime_type


def _parse_parameters(model: type[BaseModel], **values: Any) -> dict[str, Any]:
    try:
        return model(**values).model_dump(exclude_none=True)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[err["msg"] for err in e.errors()],
        )


async def _run_generation(
    service: GenerationService,
    account: Account,
    kind: GenerationKind,
    parameters: dict[str, Any],
    image: bytes,
    mime_type: str,
) -> GenerationResponse:
    """Run one generation and translate ledger outcomes into HTTP errors."""
    try:
        outcome = await service.generate(account.id, kind, parameters, image, mime_type)
    except InsufficientBalanceError as e:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "error": "Insufficient credits",
                "required": e.required,
                "available": e.available,
            },
        )
    except AccountNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    except ProviderFailure as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "error": e.user_message,
                "details": e.details,
                "credits_refunded": e.refunded,
                "credits_remaining": e.balance,
            },
        )
    except ReservationClosedError:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "error": "Generation expired before it completed",
                "credits_refunded": True,
            },
        )
    except SettlementInconsistency:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "Generation failed and the refund could not be applied. "
                "Support has been notified.",
            },
        )

    return GenerationResponse(
        image_url=outcome.record.result_url,
        credits_remaining=outcome.balance,
        generation=GenerationRecordResponse.model_validate(outcome.record),
    )


@router.post(
    "/headshot",
    response_model=GenerationResponse,
    summary="Generate a professional headshot",
    description="Costs one credit. The credit is refunded if generation fails.",
)
async def generate_headshot(
    image: UploadFile = File(..., description="Portrait photo (JPEG, PNG, WebP or GIF)"),
    gender: Optional[str] = Form(default=None),
    background: str = Form(default="neutral"),
    aspect_ratio: str = Form(default="1:1"),
    seed: Optional[int] = Form(default=None),
    current_account: Account = Depends(get_current_account),
    service: GenerationService = Depends(get_generation_service),
) -> GenerationResponse:
    content, mime_type = await _read_image(image)
    parameters = _parse_parameters(
        HeadshotParameters,
        gender=gender or None,
        background=background,
        aspect_ratio=aspect_ratio,
        seed=seed,
    )
    return await _run_generation(
        service, current_account, GenerationKind.HEADSHOT, parameters, content, mime_type
    )


@router.post(
    "/image-edit",
    response_model=GenerationResponse,
    summary="Edit an image with a prompt",
    description="Costs one credit. The credit is refunded if generation fails.",
)
async def generate_image_edit(
    image: UploadFile = File(..., description="Source image (JPEG, PNG, WebP or GIF)"),
    prompt: str = Form(...),
    output_format: str = Form(default="jpg"),
    current_account: Account = Depends(get_current_account),
    service: GenerationService = Depends(get_generation_service),
) -> GenerationResponse:
    content, mime_type = await _read_image(image)
    parameters = _parse_parameters(
        ImageEditParameters,
        prompt=prompt,
        output_format=output_format,
    )
    return await _run_generation(
        service, current_account, GenerationKind.IMAGE_EDIT, parameters, content, mime_type
    )


@router.get(
    "/history",
    response_model=GenerationHistoryResponse,
    summary="Get generation history",
)
async def get_generation_history(
    limit: int = Query(default=20, ge=1, le=100),
    current_account: Account = Depends(get_current_account),
    ledger: CreditLedger = Depends(get_credit_ledger),
) -> GenerationHistoryResponse:
    records = await ledger.list_generations(current_account.id, limit=limit)
    return GenerationHistoryResponse(
        generations=[GenerationRecordResponse.model_validate(r) for r in records],
        count=len(records),
    )

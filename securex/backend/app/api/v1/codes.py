# backend/app/api/v1/codes.py
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.api.dependencies import get_code_registry, get_profile_repository, get_public_context, get_request_context
from app.core.constants import CodeValidationError, RegistryCodeType
from app.core.context import RequestContext
from app.db.repositories.profile_repository import ProfileRepository
from app.schemas.codes import CodeRequest, RedeemResponse
from app.services.code_registry import CodeRegistryClient, error_message_key, redeem_plan_code, validate_code

router = APIRouter()


@router.post("/validate-code")
async def validate_discount_code(
    payload: CodeRequest,
    registry: CodeRegistryClient = Depends(get_code_registry),
    ctx: RequestContext = Depends(get_public_context),
):
    """Check a discount code at the registry"""
    result = await validate_code(registry, payload.code, RegistryCodeType.DISCOUNT)
    if result.valid:
        result.message = "ok"
        return result.to_response()

    result.message = ctx.translator(error_message_key(result.error, RegistryCodeType.DISCOUNT))
    status_code = (
        status.HTTP_502_BAD_GATEWAY
        if result.error == CodeValidationError.INTERNAL_ERROR
        else status.HTTP_200_OK
    )
    return JSONResponse(status_code=status_code, content=result.to_response())


@router.post("/redeem-code", response_model=RedeemResponse)
async def redeem_code(
    payload: CodeRequest,
    ctx: RequestContext = Depends(get_request_context),
    registry: CodeRegistryClient = Depends(get_code_registry),
    profiles: ProfileRepository = Depends(get_profile_repository),
):
    """Redeem a plan code for a period of PRO access"""
    return await redeem_plan_code(registry, profiles, ctx.user_id, payload.code, ctx.translator)

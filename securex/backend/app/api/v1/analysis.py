# backend/app/api/v1/analysis.py
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials

from app.api.dependencies import get_analysis_service, get_public_context, resolve_user, security
from app.core.context import RequestContext
from app.core.exceptions import AuthenticationError, SecureXError
from app.core.logging import logger
from app.db.backend_client import BackendClient
from app.db.database import get_backend_client
from app.schemas.scan import StartAnalysisRequest
from app.services.analysis_service import AnalysisService

router = APIRouter()


@router.post("/start-analysis")
async def start_analysis(
    payload: StartAnalysisRequest,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    client: BackendClient = Depends(get_backend_client),
    analysis: AnalysisService = Depends(get_analysis_service),
    ctx: RequestContext = Depends(get_public_context),
):
    """
    Run the security analysis of one of the caller's scans.

    The prompt is built from the stored scan record; `target` and `scanType`
    in the body are informational only.
    """
    try:
        user = await resolve_user(client, credentials.credentials if credentials else None)
        if user is None:
            raise AuthenticationError("Unauthorized: invalid token")
        result = await analysis.run(user.id, payload.scan_id)
    except SecureXError as e:
        logger.error(f"Error in start-analysis: {str(e)}", extra={"scan_id": payload.scan_id})
        return JSONResponse(
            status_code=e.status_code,
            content={"success": False, "error": ctx.translator(e.message_key, **e.params)},
        )

    return {
        "success": True,
        "scanId": payload.scan_id,
        "result": result.model_dump(mode="json"),
    }

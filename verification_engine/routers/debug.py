"""
Development-only diagnostics – reveals the stored code for an identity.

Answers 403 unless code exposure is switched on (EXPOSE_CODES).
"""

from fastapi import APIRouter, HTTPException, Query, status

from verification_engine.dependencies import Purpose, Service, invalid_identity
from verification_engine.errors import DiagnosticsDisabled, InvalidIdentity
from verification_engine.models import DebugCodeStatus

router = APIRouter(prefix="/api/debug", tags=["debug"])


@router.get(
    "/codes/{purpose}",
    response_model=DebugCodeStatus,
    operation_id="getDebugCodeStatus",
    summary="Show the stored code for an identity (development only)",
)
async def get_code_status(
    purpose: Purpose,
    service: Service,
    identity: str = Query(..., min_length=3),
) -> DebugCodeStatus:
    try:
        state = service.debug_status(identity, purpose)
    except DiagnosticsDisabled:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This endpoint is only available in development mode",
        ) from None
    except InvalidIdentity as exc:
        raise invalid_identity(exc) from None

    if state is None:
        return DebugCodeStatus(status="not_found")
    return DebugCodeStatus(status="found", **state)

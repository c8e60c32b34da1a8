from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from verification_engine.errors import InvalidIdentity, UnsupportedPurpose
from verification_engine.services.engine import VerificationService

# ── Service ────────────────────────────────────────────────────────────────


def get_verification_service(request: Request) -> VerificationService:
    service: VerificationService | None = getattr(request.app.state, "verification_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Verification service is not ready",
        )
    return service


Service = Annotated[VerificationService, Depends(get_verification_service)]


# ── Purpose ────────────────────────────────────────────────────────────────


def get_purpose(purpose: str, service: Service) -> str:
    try:
        service.flow(purpose)
    except UnsupportedPurpose:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown verification purpose '{purpose}'. Expected one of: {', '.join(service.purposes)}",
        ) from None
    return purpose


Purpose = Annotated[str, Depends(get_purpose)]


def invalid_identity(exc: InvalidIdentity) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

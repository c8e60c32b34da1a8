"""
Verification endpoints – issue, verify and clear one-time codes for any
configured purpose (login, verify, reset).
"""

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query, Request, status

from verification_engine.dependencies import Purpose, Service, invalid_identity
from verification_engine.errors import DeliveryFailure, InvalidIdentity, RateLimited
from verification_engine.models import (
    IssueRequest,
    IssueResponse,
    MessageResponse,
    StatsResponse,
    VerifyRequest,
    VerifyResponse,
)
from verification_engine.rate_limit import AUTH, DEFAULT, STRICT, limiter
from verification_engine.services.verification import VerificationOutcome, VerificationResult

router = APIRouter(prefix="/api/verification", tags=["verification"])

_FAILURES: dict[VerificationOutcome, tuple[int, str]] = {
    VerificationOutcome.NOT_FOUND: (
        status.HTTP_404_NOT_FOUND,
        "Code not found. Please request a new code.",
    ),
    VerificationOutcome.EXPIRED: (
        status.HTTP_410_GONE,
        "Code has expired. Please request a new code.",
    ),
    VerificationOutcome.ALREADY_CONSUMED: (
        status.HTTP_400_BAD_REQUEST,
        "Code already used. Please request a new code.",
    ),
    VerificationOutcome.MAX_ATTEMPTS_EXCEEDED: (
        status.HTTP_429_TOO_MANY_REQUESTS,
        "Maximum attempts exceeded. Please request a new code.",
    ),
}


def _raise_for(result: VerificationResult) -> None:
    if result.outcome is VerificationOutcome.MISMATCH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid code. {result.remaining} attempt(s) remaining.",
        )
    status_code, detail = _FAILURES[result.outcome]
    raise HTTPException(status_code=status_code, detail=detail)


@router.get(
    "/stats",
    response_model=StatsResponse,
    operation_id="getVerificationStats",
    summary="Point-in-time counts of held verification codes",
)
@limiter.limit(DEFAULT)
async def get_stats(request: Request, service: Service) -> StatsResponse:
    stats = service.stats()
    return StatsResponse(total=stats.total, expired=stats.expired, verified=stats.verified)


@router.post(
    "/{purpose}/issue",
    response_model=IssueResponse,
    operation_id="issueCode",
    summary="Send a one-time code to a phone number or email address",
)
@limiter.limit(STRICT)
async def issue_code(request: Request, body: IssueRequest, purpose: Purpose, service: Service) -> IssueResponse:
    """
    Generate a code for the identity and deliver it. Refused with 429 while
    an earlier code for the same identity and purpose is still valid.
    """
    try:
        receipt = await service.issue(body.identity, purpose)
    except InvalidIdentity as exc:
        raise invalid_identity(exc) from None
    except RateLimited as exc:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Code already sent. Please wait {int(exc.retry_after)} seconds or use the existing code.",
            headers={"Retry-After": str(int(exc.retry_after))},
        ) from None
    except DeliveryFailure as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"{exc}. Please try again.",
        ) from None

    return IssueResponse(
        message=f"Code sent to {receipt.masked_destination}",
        masked_destination=receipt.masked_destination,
        expires_in_seconds=receipt.expires_in_seconds,
    )


@router.post(
    "/{purpose}/verify",
    response_model=VerifyResponse,
    operation_id="verifyCode",
    summary="Check a submitted one-time code",
)
@limiter.limit(AUTH)
async def verify_code(request: Request, body: VerifyRequest, purpose: Purpose, service: Service) -> VerifyResponse:
    try:
        result = service.verify(body.identity, purpose, body.code)
    except InvalidIdentity as exc:
        raise invalid_identity(exc) from None

    if not result.ok:
        _raise_for(result)

    return VerifyResponse(
        message="Code verified successfully",
        verified_at=datetime.now(timezone.utc),
    )


@router.delete(
    "/{purpose}",
    response_model=MessageResponse,
    operation_id="clearCode",
    summary="Discard any code held for an identity",
)
async def clear_code(
    purpose: Purpose,
    service: Service,
    identity: str = Query(..., min_length=3, description="Phone number or email address"),
) -> MessageResponse:
    try:
        service.clear(identity, purpose)
    except InvalidIdentity as exc:
        raise invalid_identity(exc) from None
    return MessageResponse(message="Verification cleared")

"""Pydantic models for the verification HTTP API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class IssueRequest(BaseModel):
    """Request a code for a phone number or email address."""
    identity: str = Field(..., min_length=3, max_length=254, description="Phone number or email address")


class IssueResponse(BaseModel):
    message: str
    masked_destination: str = Field(..., description="Where the code was sent, partially hidden")
    expires_in_seconds: int = Field(..., description="Seconds until the code expires")


class VerifyRequest(BaseModel):
    identity: str = Field(..., min_length=3, max_length=254, description="Phone number or email address")
    code: str = Field(..., pattern=r"^\s*\d{4,10}\s*$", description="The code that was delivered")


class VerifyResponse(BaseModel):
    message: str
    verified_at: datetime


class MessageResponse(BaseModel):
    message: str


class StatsResponse(BaseModel):
    total: int = Field(..., description="Records currently held")
    expired: int = Field(..., description="Held records past their expiry, awaiting sweep")
    verified: int = Field(..., description="Held records already consumed")


class DebugCodeStatus(BaseModel):
    """Stored state of a code (development only)."""
    status: str
    identity: Optional[str] = None
    purpose: Optional[str] = None
    code: Optional[str] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    attempts: Optional[int] = None
    max_attempts: Optional[int] = None
    consumed: Optional[bool] = None
    expired: Optional[bool] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime

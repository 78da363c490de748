"""
FastAPI router: token vetting endpoints.

POST /api/tokens/{token_id}/run-checks   run (or reuse) automated checks
GET  /api/tokens/{token_id}/verdict      latest stored verdict with freshness
GET  /api/tokens/{token_id}/history      bounded verdict history, newest first

Engine error kinds map to HTTP statuses in STATUS_BY_KIND; the body is the
envelope ({success: false, error: {kind, message}, ranChecks}).
"""

from __future__ import annotations

import hmac
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from backend_vetting.core.exceptions import VettingError
from backend_vetting.vetting.service import VettingService
from backend_vetting.vetting_logging import get_logger

logger = get_logger(__name__)

STATUS_BY_KIND = {
    "InvalidTokenId": 400,
    "NotFound": 404,
    "DataUnavailable": 404,
    "InsufficientData": 422,
    "ProviderError": 502,
    "Timeout": 504,
}


# -----------------------------------------------------------------------------
# Response models
# -----------------------------------------------------------------------------


class CheckResultModel(BaseModel):
    name: str
    status: str = Field(..., description="pass | fail | warn | error")
    score: float = Field(..., ge=-100, le=100)
    detail: str
    durationMs: float
    severity: str


class ProviderErrorModel(BaseModel):
    provider: str
    kind: str


class VerdictModel(BaseModel):
    score: float
    status: str = Field(..., description="pass | fail | warn")
    confidence: float = Field(..., ge=0, le=1)
    checks: list[CheckResultModel]
    computedAt: str = Field(..., description="ISO-8601 UTC time the checks ran")
    computedAtTs: float
    snapshotFetchedAt: float | None = None
    fresh: bool
    redFlags: list[dict[str, str]] = Field(default_factory=list)
    greenFlags: list[str] = Field(default_factory=list)
    riskLevel: str | None = Field(None, description="LOW | MEDIUM | HIGH | EXTREME")
    providers: list[str] = Field(default_factory=list)
    providerErrors: list[ProviderErrorModel] = Field(default_factory=list)


class EnvelopeModel(BaseModel):
    success: bool
    tokenId: str
    ranChecks: bool
    verdict: VerdictModel | None = None
    error: dict[str, Any] | None = None


class HistoryModel(BaseModel):
    tokenId: str
    verdicts: list[VerdictModel]


# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------


def get_service(request: Request) -> VettingService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="vetting service not ready")
    return service


def require_api_key(request: Request, x_api_key: str | None = Header(None, alias="X-API-Key")) -> None:
    """401 unless the X-API-Key header matches the configured key. No key configured: open."""
    expected = getattr(request.app.state, "api_key", None)
    if not expected:
        return
    if not x_api_key or not hmac.compare_digest(x_api_key, expected):
        logger.info("api_key_rejected", path=request.url.path)
        raise HTTPException(status_code=401, detail="invalid or missing API key")


def _error_response(error: VettingError, *, ran_checks: bool = False) -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_BY_KIND.get(error.kind, 500),
        content={"success": False, "tokenId": error.token_id, "ranChecks": ran_checks, "error": error.to_dict()},
    )


router = APIRouter(prefix="/tokens", tags=["vetting"], dependencies=[Depends(require_api_key)])


@router.post("/{token_id}/run-checks", response_model=EnvelopeModel)
def run_checks(
    token_id: str,
    force: bool = Query(False, description="Ignore a fresh stored verdict and re-run"),
    service: VettingService = Depends(get_service),
):
    envelope = service.run_automated_checks(token_id, force_refresh=force)
    body = envelope.to_dict()
    if envelope.success:
        return JSONResponse(status_code=200, content=body)
    kind = (envelope.error or {}).get("kind", "")
    status_code = STATUS_BY_KIND.get(kind, 500)
    logger.info("run_checks_failed", token_id=envelope.token_id, kind=kind, status_code=status_code)
    return JSONResponse(status_code=status_code, content=body)


@router.get("/{token_id}/verdict", response_model=VerdictModel)
def get_verdict(token_id: str, service: VettingService = Depends(get_service)):
    try:
        verdict = service.get_verdict(token_id)
    except VettingError as e:
        return _error_response(e)
    return verdict.to_dict()


@router.get("/{token_id}/history", response_model=HistoryModel)
def get_history(
    token_id: str,
    limit: int = Query(20, ge=1, le=500),
    service: VettingService = Depends(get_service),
):
    try:
        verdicts = service.history(token_id, limit)
    except VettingError as e:
        return _error_response(e)
    return {"tokenId": token_id, "verdicts": [v.to_dict() for v in verdicts]}

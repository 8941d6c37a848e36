from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gateway.app.api.deps import get_generation_service, get_ledger, get_reputation_checker
from gateway.app.config.settings import settings
from gateway.app.core.errors import AuthorizationError, UpstreamError, ValidationError
from gateway.app.db.session import get_db
from gateway.app.providers.types import GenerationError
from gateway.app.services.generation_service import GenerationService
from gateway.app.services.identity import canonical_ip, is_valid_identity
from gateway.app.services.quota_service import Decision, QuotaLedger
from gateway.app.services.reputation import ReputationChecker

logger = logging.getLogger("gateway")

router = APIRouter(tags=["prompt"])

DENY_MESSAGES = {
    Decision.DENY_BANNED: ("BANNED", "This account has been banned."),
    Decision.DENY_QUOTA_EXCEEDED: (
        "QUOTA_EXCEEDED",
        "Daily limit exceeded for free users. Upgrade to pro for unlimited access.",
    ),
}


def _resolve_identity(ip: Optional[str], device_id: Optional[str]) -> Optional[str]:
    """Pick and validate the quota key for the configured identity mode.

    In ip mode the key is the canonical address, or None when ``ip`` is not a
    usable literal; the IP check below rejects that case.
    """
    if settings.identity_mode == "ip":
        return canonical_ip(ip)
    if not is_valid_identity(device_id):
        raise AuthorizationError("Invalid device ID.", code="INVALID_IDENTITY")
    return device_id


@router.get("/prompt")
async def generate_prompt(
    prompt: Optional[str] = None,
    ip: Optional[str] = None,
    id: Optional[str] = None,
    db: Session = Depends(get_db),
    ledger: QuotaLedger = Depends(get_ledger),
    reputation: ReputationChecker = Depends(get_reputation_checker),
    generation: GenerationService = Depends(get_generation_service),
) -> dict:
    if settings.identity_mode == "ip":
        if not prompt or not ip:
            raise ValidationError("Prompt and IP address are required.", code="MISSING_PARAMS")
    elif not prompt or not ip or not id:
        raise ValidationError("Prompt, IP address, and device ID are required.", code="MISSING_PARAMS")

    identity = _resolve_identity(ip, id)

    client_ip = canonical_ip(ip)
    if client_ip is None:
        raise AuthorizationError("Invalid or VPN IP address.", code="IP_REJECTED")
    verdict = await reputation.check(client_ip)
    if not verdict.allowed:
        raise AuthorizationError("Invalid or VPN IP address.", code="IP_REJECTED")

    decision = ledger.admit(db, identity)
    if decision is not Decision.ADMIT:
        code, message = DENY_MESSAGES[decision]
        logger.info("Prompt denied", extra={"identity": identity, "decision": decision.value})
        raise AuthorizationError(message, code=code)

    # Usage is charged before generation; a failed generation still counts.
    ledger.record_usage(db, identity)

    result = await generation.generate(prompt)
    if isinstance(result, GenerationError):
        logger.error("Generation failed", extra={"identity": identity, "reason": result.message})
        raise UpstreamError(result.message, code="GENERATION_FAILED")

    return {"code": 200, "url": result}

from __future__ import annotations

from gateway.app.services.container import services
from gateway.app.services.generation_service import GenerationService
from gateway.app.services.quota_service import QuotaLedger
from gateway.app.services.reputation import ReputationChecker


def get_ledger() -> QuotaLedger:
    return services.ledger


def get_reputation_checker() -> ReputationChecker:
    return services.reputation


def get_generation_service() -> GenerationService:
    return services.generation

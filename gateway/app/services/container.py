from __future__ import annotations

import logging

from gateway.app.config.settings import Settings
from gateway.app.providers.playground import PlaygroundBackend
from gateway.app.services.generation_service import GenerationService
from gateway.app.services.image_host import build_image_host
from gateway.app.services.quota_service import QuotaLedger
from gateway.app.services.reputation import build_reputation_checker

logger = logging.getLogger("gateway")


class ServiceContainer:
    """Process-wide collaborators, built once at startup and handed to routes via dependencies."""

    def __init__(self):
        self.reputation = None
        self.ledger = None
        self.generation = None

    def build(self, settings: Settings) -> None:
        self.reputation = build_reputation_checker(settings)
        self.ledger = QuotaLedger(
            free_daily_limit=settings.free_daily_limit,
            reset_policy=settings.quota_reset_policy,
            premium_duration_days=settings.premium_duration_days,
        )
        backend = PlaygroundBackend(
            endpoint_url=settings.generation_backend_url,
            cookies=settings.generation_cookies,
            model_type=settings.model_type,
            status_uuid=settings.status_uuid,
            image_base_url=settings.generation_image_base_url,
            timeout_seconds=settings.generation_timeout_seconds,
        )
        self.generation = GenerationService(backend, build_image_host(settings))
        if not settings.generation_backend_url:
            logger.warning("GENERATION_BACKEND_URL is not set; /prompt will fail")
        logger.info(
            "Services ready",
            extra={
                "reputation_provider": self.reputation.provider_id,
                "reset_policy": settings.quota_reset_policy,
                "image_url_strategy": settings.image_url_strategy,
                "identity_mode": settings.identity_mode,
            },
        )

    async def close(self) -> None:
        components = [self.reputation]
        if self.generation is not None:
            components += [self.generation.backend, self.generation.image_host]
        for component in components:
            aclose = getattr(component, "aclose", None)
            if aclose is not None:
                await aclose()


# Global container instance
services = ServiceContainer()

from __future__ import annotations

import logging
import secrets

from gateway.app.providers.base import ImageBackend
from gateway.app.providers.types import GenerationError, GenerationRequest
from gateway.app.services.image_host import ImageHost

logger = logging.getLogger("gateway.generation")

PUBLISH_FAILED = "Failed to store generated image. Please try again later."
INTERNAL_FAILED = "Internal server error. Please try again later."


def random_seed() -> int:
    """Uniform unsigned 32-bit seed from the OS CSPRNG."""
    return secrets.randbits(32)


class GenerationService:
    """Runs one prompt through the backend and publishes the resulting image."""

    def __init__(self, backend: ImageBackend, image_host: ImageHost):
        self.backend = backend
        self.image_host = image_host

    async def generate(self, prompt: str) -> str | GenerationError:
        try:
            result = await self.backend.generate(GenerationRequest(prompt=prompt, seed=random_seed()))
            if isinstance(result, GenerationError):
                return result

            try:
                return await self.image_host.publish(result.source_url)
            except Exception:
                logger.exception(
                    "Publishing generated image failed",
                    extra={"strategy": self.image_host.strategy, "image_key": result.image_key},
                )
                return GenerationError(PUBLISH_FAILED)
        except Exception:
            logger.exception("Unexpected generation failure")
            return GenerationError(INTERNAL_FAILED)

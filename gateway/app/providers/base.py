from __future__ import annotations

from typing import Protocol

from gateway.app.providers.types import GeneratedImage, GenerationError, GenerationRequest


class ImageBackend(Protocol):
    backend_id: str
    display_name: str

    async def generate(self, req: GenerationRequest) -> GeneratedImage | GenerationError:
        ...

from __future__ import annotations

import logging

import httpx

from gateway.app.providers.base import ImageBackend
from gateway.app.providers.types import GeneratedImage, GenerationError, GenerationRequest

logger = logging.getLogger("gateway.providers.playground")

NEGATIVE_PROMPT = (
    "ugly, deformed, noisy, blurry, distorted, out of focus, bad anatomy, extra limbs, "
    "poorly drawn face, poorly drawn hands, missing fingers"
)
BATCH_ID = "0yU1CQbVkr"

GENERATE_FAILED = "Failed to generate image. Please try again later."
PARSE_FAILED = "Failed to parse generation response. Please try again later."
INTERNAL_FAILED = "Internal server error. Please try again later."


class PlaygroundBackend(ImageBackend):
    """Session-cookie client for the playground-style image generation endpoint."""

    backend_id = "playground"
    display_name = "Playground"

    def __init__(
        self,
        endpoint_url: str,
        cookies: str = "",
        model_type: str = "",
        status_uuid: str = "",
        image_base_url: str = "https://images.playground.com",
        timeout_seconds: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.endpoint_url = endpoint_url
        self.cookies = cookies
        self.model_type = model_type
        self.status_uuid = status_uuid
        self.image_base_url = image_base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client or httpx.AsyncClient(timeout=self.timeout_seconds)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.cookies:
            headers["Cookie"] = self.cookies
        return headers

    def build_payload(self, req: GenerationRequest) -> dict:
        return {
            "width": req.width,
            "height": req.height,
            "seed": req.seed,
            "num_images": req.num_images,
            "modelType": self.model_type,
            "sampler": 9,
            "cfg_scale": 3,
            "guidance_scale": 3,
            "strength": 1.7,
            "steps": 30,
            "high_noise_frac": 1,
            "negativePrompt": NEGATIVE_PROMPT,
            "prompt": req.prompt,
            "hide": False,
            "isPrivate": False,
            "batchId": BATCH_ID,
            "generateVariants": False,
            "initImageFromPlayground": False,
            "statusUUID": self.status_uuid,
        }

    def image_url(self, image_key: str) -> str:
        return f"{self.image_base_url}/{image_key}.jpeg"

    @staticmethod
    def _extract_image_key(data: object) -> str | None:
        if not isinstance(data, dict):
            return None
        images = data.get("images")
        if not isinstance(images, list) or not images or not isinstance(images[0], dict):
            return None
        key = images[0].get("imageKey")
        return key if isinstance(key, str) and key else None

    async def generate(self, req: GenerationRequest) -> GeneratedImage | GenerationError:
        try:
            response = await self._client.post(
                self.endpoint_url,
                headers=self._headers(),
                json=self.build_payload(req),
            )
            if not response.is_success:
                logger.error("Generation backend returned an error", extra={"status": response.status_code})
                return GenerationError(GENERATE_FAILED)

            try:
                data = response.json()
            except ValueError:
                logger.error("Generation backend returned non-JSON body")
                return GenerationError(PARSE_FAILED)

            image_key = self._extract_image_key(data)
            if image_key is None:
                logger.error("Generation response missing image key", extra={"body_keys": list(data) if isinstance(data, dict) else None})
                return GenerationError(PARSE_FAILED)

            return GeneratedImage(image_key=image_key, source_url=self.image_url(image_key), raw=data)
        except Exception:
            logger.exception("Generation request failed")
            return GenerationError(INTERNAL_FAILED)

    async def aclose(self) -> None:
        await self._client.aclose()

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class GenerationRequest:
    prompt: str
    seed: int
    width: int = 1024
    height: int = 1024
    num_images: int = 1


@dataclass
class GeneratedImage:
    image_key: str
    source_url: str
    raw: dict | None = field(default=None, repr=False)


@dataclass
class GenerationError:
    """A failed generation. Returned rather than raised; ``message`` is safe to show clients."""

    message: str

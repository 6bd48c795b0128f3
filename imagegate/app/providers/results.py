"""Generation results returned by image providers.

A provider answers either with a hosted URL (DALL-E) or with raw image bytes
(Stability). Callers handle both variants explicitly; ``to_entries`` gives the
uniform ``[{"imageUrl": ...}]`` shape used on the wire.
"""

import base64
from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class HostedImage:
    """A single image hosted by the provider."""
    url: str

    def to_entries(self) -> list[dict[str, str]]:
        return [{"imageUrl": self.url}]

    def __len__(self) -> int:
        return 1


@dataclass(frozen=True)
class InlineImages:
    """One or more PNG images returned inline."""
    images: list[bytes] = field(default_factory=list)
    media_type: str = "image/png"

    def to_data_uris(self) -> list[str]:
        return [
            f"data:{self.media_type};base64,{base64.b64encode(image).decode('ascii')}"
            for image in self.images
        ]

    def to_entries(self) -> list[dict[str, str]]:
        return [{"imageUrl": uri} for uri in self.to_data_uris()]

    def __len__(self) -> int:
        return len(self.images)


GenerationResult = Union[HostedImage, InlineImages]

"""Supported PostgreSQL/PostGIS versions and their container images."""

import re
from types import MappingProxyType
from typing import List, Mapping

DEFAULT_VERSION = "13-3.1"
FALLBACK_IMAGE = "odidev/postgis:13-3.1-alpine"

_VERSION_PATTERN = re.compile(r"\d+(?:[.-]\d+)*")


class ImageRegistry:
    """Read-only mapping from a version tag to the image that runs it."""

    def __init__(self, images: Mapping[str, str], default_version: str, fallback_image: str):
        self._images = MappingProxyType(dict(images))
        self.default_version = default_version
        self.fallback_image = fallback_image

    @property
    def versions(self) -> List[str]:
        return sorted(self._images)

    def normalize(self, version: str) -> str:
        clean = (version or "").strip()
        return clean or self.default_version

    def is_supported(self, version: str) -> bool:
        return self.normalize(version) in self._images

    def is_well_formed(self, version: str) -> bool:
        return _VERSION_PATTERN.fullmatch(self.normalize(version)) is not None

    def image_for(self, version: str) -> str:
        return self._images.get(self.normalize(version), self.fallback_image)


REGISTRY = ImageRegistry(
    images={
        "10.3.2": "postgis/postgis:10-3.2-alpine",
        "11.2.5": "postgis/postgis:11-2.5-alpine",
        "11.3.2": "postgis/postgis:11-3.2-alpine",
        "12.3.2": "postgis/postgis:12-3.2-alpine",
        "13-3.1": "odidev/postgis:13-3.1-alpine",
        "13.3.2": "postgis/postgis:13-3.2-alpine",
        "14.3.2": "postgis/postgis:14-3.2-alpine",
    },
    default_version=DEFAULT_VERSION,
    fallback_image=FALLBACK_IMAGE,
)

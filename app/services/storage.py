"""Public URL resolution for objects held in hosted storage buckets."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from app.config import StorageConfig


@dataclass(slots=True)
class StorageService:
    config: StorageConfig

    def public_url(self, bucket: str, path: str | None) -> str | None:
        if not path:
            return None
        key = quote(path.lstrip("/"), safe="/")
        base = self.config.base_url
        if not base:
            return f"/storage/{bucket}/{key}"
        return f"{base}/storage/v1/object/public/{bucket}/{key}"

    def song_url(self, path: str | None) -> str | None:
        return self.public_url(self.config.songs_bucket, path)

    def image_url(self, path: str | None) -> str | None:
        return self.public_url(self.config.images_bucket, path)


__all__ = ["StorageService"]

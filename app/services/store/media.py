import re
import shutil
import time
from pathlib import Path
from typing import List

from fastapi import HTTPException, UploadFile, status
from loguru import logger

from app.core.config import settings

MEDIA_URL_PREFIX = "/uploads"


class MediaStorage:
    """Stores uploaded images on local disk, one directory per collectible"""

    ALLOWED_TYPES = {
        "image/jpeg": "jpg",
        "image/png": "png",
        "image/webp": "webp",
        "image/gif": "gif",
    }

    @property
    def root(self) -> Path:
        return Path(settings.media_root)

    @classmethod
    def validate_file(cls, file: UploadFile):
        if file.content_type not in cls.ALLOWED_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unsupported file type. Allowed: {list(cls.ALLOWED_TYPES.keys())}"
            )

    @staticmethod
    def _safe_name(filename: str | None, content_type: str, index: int = 0) -> str:
        name = Path(filename or "").name
        name = re.sub(r"[^A-Za-z0-9._-]", "_", name).lstrip(".")
        if not name:
            name = f"image.{MediaStorage.ALLOWED_TYPES[content_type]}"
        return f"{int(time.time() * 1000)}-{index}-{name}"

    def ensure_root(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def save_images(self, folder: str, files: List[UploadFile]) -> List[str]:
        """Write files to <media root>/<folder>/ and return their public paths"""
        target = self.root / folder
        target.mkdir(parents=True, exist_ok=True)

        paths = []
        for index, file in enumerate(files):
            filename = self._safe_name(file.filename, file.content_type, index)
            file.file.seek(0)
            with open(target / filename, "wb") as out:
                shutil.copyfileobj(file.file, out)
            paths.append(f"{MEDIA_URL_PREFIX}/{folder}/{filename}")

        logger.info(f"Stored {len(paths)} image(s) under {target}")
        return paths

    def remove_folder(self, folder: str):
        shutil.rmtree(self.root / folder, ignore_errors=True)


media_storage = MediaStorage()

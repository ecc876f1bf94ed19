from datetime import date
from typing import List

from fastapi import UploadFile
from loguru import logger
from tortoise.exceptions import BaseORMException

from app.core.config import settings
from app.models.collectible import Collectible
from app.services.store.media import media_storage


class CollectibleError(ValueError):
    pass


class CollectibleService:
    @staticmethod
    async def register(name: str, scale: str, deadline: date, images: List[UploadFile]) -> Collectible:
        """Create a collectible and store its images"""
        if len(images) > settings.max_images_per_collectible:
            raise CollectibleError(
                f"At most {settings.max_images_per_collectible} images are allowed"
            )
        for image in images:
            media_storage.validate_file(image)

        if await Collectible.exists(name=name):
            raise CollectibleError("Collectible already exists")

        collectible = await Collectible.create(name=name, scale=scale, deadline=deadline, images=[])
        folder = str(collectible.id)
        try:
            collectible.images = media_storage.save_images(folder, images)
            await collectible.save()
        except (OSError, BaseORMException):
            logger.exception(f"Failed to store images for collectible {collectible.id}")
            media_storage.remove_folder(folder)
            await collectible.delete()
            raise

        logger.info(f"Collectible registered: {collectible.id} ({name})")
        return collectible

    @staticmethod
    async def list_by_scale(scale: str) -> List[Collectible]:
        return await Collectible.filter(scale=scale).order_by("-published_at")

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, Request, UploadFile, status

from app.schemas.collectible import (
    CollectibleCreatedResponse,
    CollectibleListResponse,
    CollectibleResponse,
)
from app.services.collectible_service import CollectibleError, CollectibleService

router = APIRouter()


@router.post("", response_model=CollectibleCreatedResponse, status_code=status.HTTP_201_CREATED)
async def register_collectible(
    name: str = Form(..., min_length=1, max_length=255),
    scale: str = Form(..., min_length=1, max_length=32),
    deadline: date = Form(...),
    images: Optional[List[UploadFile]] = File(None),
):
    """Register a collectible with up to MAX_IMAGES_PER_COLLECTIBLE images"""
    try:
        collectible = await CollectibleService.register(name, scale, deadline, images or [])
    except CollectibleError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return CollectibleCreatedResponse(id=collectible.id, images=collectible.images)


@router.get("", response_model=CollectibleListResponse)
async def list_collectibles(request: Request, scale: Optional[str] = Query(None)):
    """Collectibles of one scale, with absolute image URLs"""
    if not scale:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Scale not provided")

    base_url = str(request.base_url).rstrip("/")
    collectibles = await CollectibleService.list_by_scale(scale)

    data = []
    for collectible in collectibles:
        item = CollectibleResponse.model_validate(collectible)
        item.images = [f"{base_url}{path}" for path in collectible.images or []]
        data.append(item)
    return CollectibleListResponse(data=data)

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_serializer


class CollectibleCreatedResponse(BaseModel):
    message: str = "Collectible registered successfully"
    id: UUID
    images: list[str]

    @field_serializer("id")
    def serialize_id(self, v: UUID, _info):
        return str(v)


class CollectibleResponse(BaseModel):
    id: UUID
    name: str
    scale: str
    deadline: date
    published_at: datetime
    images: list[str]

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("id")
    def serialize_id(self, v: UUID, _info):
        return str(v)


class CollectibleListResponse(BaseModel):
    message: str = "Collectibles found"
    data: list[CollectibleResponse]

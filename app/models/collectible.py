import uuid
from tortoise import fields, models


class Collectible(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255, unique=True)
    scale = fields.CharField(max_length=32, index=True)
    deadline = fields.DateField()
    images = fields.JSONField(default=list)
    published_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "collectibles"

    def __str__(self):
        return f"Collectible {self.name} ({self.scale})"

import uuid
from tortoise import fields
from tortoise.models import Model


class Bid(Model):
    """
    One admitted bid. Rows are only ever inserted.

    user_id is a plain reference checked by lookup at admission time,
    (item_id, sequence) orders the per-item ledger.
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)

    item_id = fields.CharField(max_length=64, index=True)
    user_id = fields.UUIDField()
    amount = fields.DecimalField(max_digits=12, decimal_places=2)

    sequence = fields.IntField()
    created_at = fields.DatetimeField()

    class Meta:
        table = "bids"
        unique_together = (("item_id", "sequence"),)
        indexes = (("item_id", "created_at"),)
        ordering = ["-created_at", "-sequence"]

    async def save(self, *args, **kwargs):
        if self.amount <= 0:
            raise ValueError("Amount must be greater than 0")
        await super().save(*args, **kwargs)

import uuid
from tortoise import fields, models

from app.enums.user_role import UserRole


class User(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    username = fields.CharField(max_length=150, unique=True)
    email = fields.CharField(max_length=255, unique=True)
    password_hash = fields.CharField(max_length=255)
    full_name = fields.CharField(max_length=255)
    role = fields.CharEnumField(UserRole, default=UserRole.user)
    is_active = fields.BooleanField(default=True)

    # TOTP second factor
    mfa_secret = fields.CharField(max_length=64, null=True)
    mfa_enabled = fields.BooleanField(default=False)

    # Password recovery
    recovery_token = fields.TextField(null=True)
    recovery_token_expires = fields.DatetimeField(null=True)

    last_login = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "users"

    def __str__(self):
        return self.username


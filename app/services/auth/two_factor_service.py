import base64
import io
from typing import Optional

import pyotp
import qrcode
from loguru import logger

from app.core.config import settings
from app.models.user import User


class TwoFactorService:
    # ===================== utils =====================

    @staticmethod
    def generate_secret() -> str:
        """Generate a new TOTP secret"""
        return pyotp.random_base32()

    @staticmethod
    def _normalize_code(code: str) -> str:
        """
        Приводим код к единому виду:
        - убираем пробелы по краям и внутри
        """
        return code.strip().replace(" ", "")

    @staticmethod
    def provisioning_uri(username: str, secret: str, issuer: Optional[str] = None) -> str:
        return pyotp.TOTP(secret).provisioning_uri(
            name=username,
            issuer_name=issuer or settings.mfa_issuer
        )

    @staticmethod
    def generate_qr_code(provisioning_uri: str) -> str:
        """Generate QR code as base64 data URL"""
        qr = qrcode.QRCode(version=1, box_size=10, border=5)
        qr.add_data(provisioning_uri)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        buffer.seek(0)

        img_base64 = base64.b64encode(buffer.getvalue()).decode()
        return f"data:image/png;base64,{img_base64}"

    @staticmethod
    def verify_code(secret: str, code: str) -> bool:
        """Verify a TOTP code"""
        norm = TwoFactorService._normalize_code(code)
        totp = pyotp.TOTP(secret)
        # valid_window=1 → +/- одно 30-секундное окно
        return totp.verify(norm, valid_window=1)

    # ===================== setup / verify =====================

    @staticmethod
    def build_setup(username: str, secret: str) -> dict:
        """Secret, otpauth URI and QR code for an authenticator app"""
        uri = TwoFactorService.provisioning_uri(username, secret)
        return {
            "secret": secret,
            "otpauth_url": uri,
            "qr_code_url": TwoFactorService.generate_qr_code(uri),
        }

    @staticmethod
    async def verify_and_activate(user: User, code: str) -> bool:
        """
        Verify a code against the user's pending secret and switch MFA on.

        Already-enabled users just get their code checked.
        """
        if not user.mfa_secret:
            raise ValueError("MFA is not configured for this user")

        if not TwoFactorService.verify_code(user.mfa_secret, code):
            logger.warning(f"Invalid MFA code for user {user.username}")
            return False

        if not user.mfa_enabled:
            user.mfa_enabled = True
            await user.save()
            logger.info(f"MFA enabled for user {user.username}")
        return True

    @staticmethod
    def verify_login(user: User, code: str) -> bool:
        """Verify the second factor during login"""
        if not user.mfa_enabled:
            return True
        if not user.mfa_secret:
            return False
        return TwoFactorService.verify_code(user.mfa_secret, code)

import pyotp
import pytest

from app.models.user import User
from app.services.auth.two_factor_service import TwoFactorService


def test_verify_code_ignores_spaces():
    secret = TwoFactorService.generate_secret()
    code = pyotp.TOTP(secret).now()

    assert TwoFactorService.verify_code(secret, f" {code[:3]} {code[3:]} ")


def test_build_setup():
    secret = TwoFactorService.generate_secret()

    setup = TwoFactorService.build_setup("alice", secret)

    assert setup["secret"] == secret
    assert f"secret={secret}" in setup["otpauth_url"]
    assert "issuer=CarCollection" in setup["otpauth_url"]
    assert setup["qr_code_url"].startswith("data:image/png;base64,")


@pytest.mark.asyncio
async def test_verify_and_activate(test_user: User):
    test_user.mfa_secret = TwoFactorService.generate_secret()
    await test_user.save()

    ok = await TwoFactorService.verify_and_activate(test_user, pyotp.TOTP(test_user.mfa_secret).now())

    assert ok is True
    await test_user.refresh_from_db()
    assert test_user.mfa_enabled is True


@pytest.mark.asyncio
async def test_verify_and_activate_without_secret(test_user: User):
    with pytest.raises(ValueError):
        await TwoFactorService.verify_and_activate(test_user, "123456")


@pytest.mark.asyncio
async def test_verify_login(test_user: User, mfa_user: User):
    # MFA off: nothing to check
    assert TwoFactorService.verify_login(test_user, "000000") is True

    assert TwoFactorService.verify_login(mfa_user, pyotp.TOTP(mfa_user.mfa_secret).now()) is True

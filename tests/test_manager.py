"""
Tests for the UserManager hooks that run the configured callbacks.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi_users import exceptions as user_exceptions

from auth.errors import PasswordValidationError
from auth.manager import UserManager
from auth.options import (
    CookieOptions,
    DbAuthHandlerOptions,
    ForgotPasswordOptions,
    LoginOptions,
    ResetPasswordOptions,
    SignupOptions,
)
from auth.password import BcryptPasswordHelper
from database.models import User


def _make_manager(password_validation=None, forgot_handler=None, user_db=None):
    options = DbAuthHandlerOptions(
        db=MagicMock(),
        auth_model=User,
        cookie=CookieOptions(name="session_test"),
        forgot_password=ForgotPasswordOptions(handler=forgot_handler or MagicMock(), expires=1800),
        login=LoginOptions(handler=MagicMock()),
        reset_password=ResetPasswordOptions(handler=MagicMock()),
        signup=SignupOptions(handler=MagicMock(), password_validation=password_validation),
        session_secret="session-secret",
        reset_password_secret="reset-secret",
    )
    return UserManager(user_db or MagicMock(), options, BcryptPasswordHelper(rounds=4))


class TestUserManager:
    def test_reset_token_settings(self):
        manager = _make_manager()
        assert manager.reset_password_token_secret == "reset-secret"
        assert manager.reset_password_token_lifetime_seconds == 1800

    @pytest.mark.asyncio
    async def test_validate_password_accepts(self):
        manager = _make_manager(password_validation=lambda p: True)
        await manager.validate_password("", None)

    @pytest.mark.asyncio
    async def test_validate_password_without_callback(self):
        await _make_manager().validate_password("anything", None)

    @pytest.mark.asyncio
    async def test_validate_password_falsy_result(self):
        manager = _make_manager(password_validation=lambda p: False)
        with pytest.raises(user_exceptions.InvalidPasswordException):
            await manager.validate_password("pw", None)

    @pytest.mark.asyncio
    async def test_validate_password_error_message(self):
        def reject(password):
            raise PasswordValidationError("Password must contain a digit")

        manager = _make_manager(password_validation=reject)
        with pytest.raises(user_exceptions.InvalidPasswordException) as exc_info:
            await manager.validate_password("pw", None)
        assert exc_info.value.reason == "Password must contain a digit"

    @pytest.mark.asyncio
    async def test_forgot_password_hook_runs_callback(self):
        forgot = AsyncMock()
        manager = _make_manager(forgot_handler=forgot)
        user = SimpleNamespace(id="u1")
        await manager.on_after_forgot_password(user, "tok")
        forgot.assert_awaited_once_with(user, "tok")

    @pytest.mark.asyncio
    async def test_reset_hook_stores_new_salt(self):
        user_db = MagicMock(update=AsyncMock())
        manager = _make_manager(user_db=user_db)
        hashed, salt = manager.password_helper.hash_with_salt("new-password")
        user = SimpleNamespace(id="u1", hashed_password=hashed, salt="stale")
        await manager.on_after_reset_password(user)
        user_db.update.assert_awaited_once_with(user, {"salt": salt})

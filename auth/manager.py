"""
fastapi-users ``UserManager`` bound to the handler options.

The manager owns token issuance and password updates; the configured
callbacks are attached to its lifecycle hooks.
"""

from __future__ import annotations

import inspect
import logging
import uuid
from typing import Any, Optional

from fastapi import Request
from fastapi_users import BaseUserManager, UUIDIDMixin, exceptions
from fastapi_users.password import PasswordHelperProtocol

from auth.errors import PasswordValidationError
from auth.options import DbAuthHandlerOptions
from auth.password import BcryptPasswordHelper, extract_salt
from database.models import User

logger = logging.getLogger(__name__)


async def maybe_await(value: Any) -> Any:
    """Callbacks may be plain functions or coroutines."""
    if inspect.isawaitable(value):
        return await value
    return value


class UserManager(UUIDIDMixin, BaseUserManager[User, uuid.UUID]):
    def __init__(
        self,
        user_db,
        options: DbAuthHandlerOptions,
        password_helper: Optional[PasswordHelperProtocol] = None,
    ) -> None:
        super().__init__(user_db, password_helper or BcryptPasswordHelper())
        self.options = options
        self.reset_password_token_secret = options.reset_password_secret
        self.verification_token_secret = options.reset_password_secret
        self.reset_password_token_lifetime_seconds = options.forgot_password.expires

    async def validate_password(self, password: str, user: Any) -> None:
        validation = self.options.signup.password_validation
        if validation is None:
            return
        try:
            valid = await maybe_await(validation(password))
        except PasswordValidationError as exc:
            raise exceptions.InvalidPasswordException(reason=exc.message)
        if not valid:
            raise exceptions.InvalidPasswordException(reason="Password is invalid")

    async def on_after_forgot_password(
        self, user: User, token: str, request: Optional[Request] = None
    ) -> None:
        logger.info("Password reset requested for user %s", user.id)
        await maybe_await(self.options.forgot_password.handler(user, token))

    async def on_after_reset_password(
        self, user: User, request: Optional[Request] = None
    ) -> None:
        # the new hash carries a new salt
        fields = self.options.auth_fields
        hashed_password = getattr(user, fields.hashed_password)
        await self.user_db.update(user, {fields.salt: extract_salt(hashed_password)})
        logger.info("Password reset for user %s", user.id)

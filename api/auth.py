"""
Authentication endpoint — login, signup, logout, password reset, WebAuthn.

All flows are served by ``DbAuthHandler``; this module only supplies its
configuration and the callbacks that run during each flow.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Coroutine, Dict, Optional, Set

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import db_session
from auth.handler import DbAuthHandler
from auth.models import Account, User, UserCredential
from auth.options import (
    ONE_DAY,
    TEN_YEARS,
    AuthFields,
    CookieAttributes,
    CookieOptions,
    DbAuthHandlerOptions,
    ForgotPasswordErrors,
    ForgotPasswordOptions,
    LoginErrors,
    LoginOptions,
    ResetPasswordErrors,
    ResetPasswordOptions,
    SignupErrors,
    SignupOptions,
    WebAuthnOptions,
)
from config.settings import config
from database.models import SubscriptionStatus, UserType
from services.analytics import capture_event
from services.emails import send_reset_email, send_welcome_email
from services.subscriptions import create_subscription
from utils.keys import generate_api_key

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

_background_tasks: Set[asyncio.Task] = set()


def _fire_and_forget(coro: Coroutine[Any, Any, Any], label: str) -> None:
    task = asyncio.create_task(coro)
    _background_tasks.add(task)

    def _done(t: asyncio.Task) -> None:
        _background_tasks.discard(t)
        if not t.cancelled() and t.exception() is not None:
            logger.error("Background %s failed: %s", label, t.exception())

    task.add_done_callback(_done)


def build_auth_options(session: AsyncSession) -> DbAuthHandlerOptions:
    """Assemble the handler configuration around the request's session."""

    def forgot_password_handler(user: User, reset_token: str) -> User:
        _fire_and_forget(
            send_reset_email(
                to=user.email,
                subject="Reset your password",
                reset_link=f"{config.app_url}/reset-password?resetToken={reset_token}",
            ),
            "reset email",
        )
        return user

    # Called after the user matching username/password is found. Return the
    # user to let them in, or raise AuthError to refuse with a message.
    def login_handler(user: User) -> User:
        return user

    # Truthy result logs the user in once the password has been updated
    def reset_password_handler(user: User) -> bool:
        return True

    async def signup_handler(
        username: str,
        hashed_password: str,
        salt: str,
        user_attributes: Optional[Dict[str, Any]] = None,
    ) -> Optional[User]:
        user_attributes = user_attributes or {}

        new_account = Account(id=uuid.uuid4(), api_key=generate_api_key(32))
        session.add(new_account)
        await session.flush()

        new_user = User(
            id=uuid.uuid4(),
            email=username,
            hashed_password=hashed_password,
            salt=salt,
            name=user_attributes.get("name"),
            type=UserType.OWNER,
            account_id=new_account.id,
        )
        session.add(new_user)
        await session.flush()
        # visible to the side effects below, which use their own sessions
        await session.commit()

        user_plan = config.trial_plan_id

        if new_user:
            logger.info("Signed up user %s on account %s", new_user.id, new_account.id)
            _fire_and_forget(
                send_welcome_email(to=username, subject="Welcome to Shepherd Pro"),
                "welcome email",
            )
            _fire_and_forget(
                create_subscription(
                    status=SubscriptionStatus.IN_TRIAL,
                    type=user_plan,
                    user_id=new_user.id,
                ),
                "trial subscription",
            )
            capture_event(
                distinct_id=f"shepherd-user-{new_user.id}",
                event="Shepherd Signup",
                properties={
                    "$set": {
                        "email": username,
                        "name": user_attributes.get("name"),
                        "plan": user_plan,
                    },
                },
                groups={"account": str(new_account.id)},
            )
            return new_user
        return None

    def password_validation(password: str) -> bool:
        return True

    return DbAuthHandlerOptions(
        db=session,
        auth_model=User,
        credential_model=UserCredential,
        allowed_user_fields=["id", "email"],
        auth_fields=AuthFields(
            id="id",
            username="email",
            hashed_password="hashed_password",
            salt="salt",
        ),
        cookie=CookieOptions(
            name=config.cookie_name,
            attributes=CookieAttributes(
                http_only=True,
                path="/",
                same_site="Strict",
                secure=not config.is_development,
            ),
        ),
        forgot_password=ForgotPasswordOptions(
            handler=forgot_password_handler,
            expires=ONE_DAY,
            errors=ForgotPasswordErrors(
                username_not_found="Username not found",
                username_required="Username is required",
            ),
        ),
        login=LoginOptions(
            handler=login_handler,
            expires=TEN_YEARS,
            errors=LoginErrors(
                username_or_password_missing="Both username and password are required",
                username_not_found="Username {username} not found",
                incorrect_password="Incorrect password for {username}",
            ),
        ),
        reset_password=ResetPasswordOptions(
            handler=reset_password_handler,
            allow_reused_password=True,
            errors=ResetPasswordErrors(
                reset_token_expired="resetToken is expired",
                reset_token_invalid="resetToken is invalid",
                reset_token_required="resetToken is required",
                reused_password="Must choose a new password",
            ),
        ),
        signup=SignupOptions(
            handler=signup_handler,
            password_validation=password_validation,
            errors=SignupErrors(
                field_missing="{field} is required",
                username_taken="Username `{username}` already in use",
            ),
        ),
        web_authn=WebAuthnOptions(
            enabled=False,
            expires=TEN_YEARS,
            name="Shepherd Application",
            domain=config.webauthn_domain,
            origin=config.app_url,
            type="platform",
            timeout=60000,
        ),
        session_secret=config.session_secret,
        reset_password_secret=config.reset_password_secret,
    )


@router.api_route("/auth", methods=["GET", "POST"])
async def handler(
    request: Request,
    session: AsyncSession = Depends(db_session),
) -> Response:
    auth_handler = DbAuthHandler(request, build_auth_options(session))
    return await auth_handler.invoke()

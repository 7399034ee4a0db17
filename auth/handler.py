"""
DbAuthHandler — single-endpoint dispatcher over fastapi-users.

The client posts ``{"method": "<action>", ...}`` (or passes ``?method=`` on a
GET) and the handler routes it to the matching flow.  Password hashing,
session tokens and reset tokens are delegated to the fastapi-users
``UserManager`` and ``AuthenticationBackend``; the configured callbacks run at
the documented points of each flow.

Every failure is returned as ``{"error": "<message>"}``.
"""

from __future__ import annotations

import json
import logging
import secrets
from typing import Any, Dict, List, Optional

import jwt
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from fastapi_users import exceptions as user_exceptions
from fastapi_users.jwt import decode_jwt
from fastapi_users_db_sqlalchemy import SQLAlchemyUserDatabase
from sqlalchemy import select

from auth.backend import build_auth_backend
from auth.errors import AuthError, UnknownMethodError, WebAuthnError
from auth.manager import UserManager, maybe_await
from auth.options import DbAuthHandlerOptions
from auth.password import extract_salt

logger = logging.getLogger(__name__)

_METHODS = {
    "forgotPassword": "forgot_password",
    "getToken": "get_token",
    "login": "login",
    "logout": "logout",
    "resetPassword": "reset_password",
    "signup": "signup",
    "validateResetToken": "validate_reset_token",
    "webAuthnRegOptions": "webauthn_reg_options",
    "webAuthnRegister": "webauthn_register",
    "webAuthnAuthOptions": "webauthn_auth_options",
    "webAuthnAuthenticate": "webauthn_authenticate",
}

# claim fastapi-users stores in reset tokens to make them single use
_PASSWORD_FINGERPRINT = "password_fgpt"

_RESERVED_PARAMS = ("method", "username", "password")


def _render(template: str, **values: Any) -> str:
    return template.format(**values)


def _copy_cookies(source: Optional[Response], target: Response) -> Response:
    if source is not None:
        for value in source.headers.getlist("set-cookie"):
            target.headers.append("set-cookie", value)
    return target


class DbAuthHandler:
    """Configured once per request; ``invoke()`` produces the response."""

    def __init__(
        self,
        request: Request,
        options: DbAuthHandlerOptions,
        user_manager: Optional[UserManager] = None,
    ) -> None:
        self.request = request
        self.options = options
        self.user_manager = user_manager or UserManager(
            SQLAlchemyUserDatabase(options.db, options.auth_model), options
        )
        self.backend = build_auth_backend(
            options.cookie, options.session_secret, options.login.expires
        )
        self.params: Dict[str, Any] = {}

    async def invoke(self) -> Response:
        method = ""
        try:
            self.params = await self._read_params()
            method = str(self.params.get("method") or "")
            action = _METHODS.get(method)
            if action is None:
                raise UnknownMethodError(method)
            return await getattr(self, action)()
        except AuthError as exc:
            logger.info("Auth method %r rejected: %s", method, exc.message)
            return self._error(exc.message, exc.status_code)
        except user_exceptions.InvalidPasswordException as exc:
            return self._error(str(exc.reason))
        except user_exceptions.UserInactive:
            return self._error("User is inactive")
        except Exception as exc:
            logger.exception("Auth method %r failed", method)
            return self._error(str(exc))

    # ── Flows ───────────────────────────────────────────────────────────

    async def login(self) -> Response:
        errors = self.options.login.errors
        fields = self.options.auth_fields
        username = self._text("username")
        password = self._text("password")
        if not username or not password:
            raise AuthError(errors.username_or_password_missing)

        try:
            user = await self.user_manager.get_by_email(username)
        except user_exceptions.UserNotExists:
            raise AuthError(_render(errors.username_not_found, username=username))

        verified, updated_hash = self.user_manager.password_helper.verify_and_update(
            password, getattr(user, fields.hashed_password)
        )
        if not verified:
            raise AuthError(_render(errors.incorrect_password, username=username))
        if updated_hash is not None:
            user = await self.user_manager.user_db.update(
                user,
                {fields.hashed_password: updated_hash, fields.salt: extract_salt(updated_hash)},
            )

        user = await maybe_await(self.options.login.handler(user))
        logger.info("Login: %s", getattr(user, fields.id))
        return await self._login_response(user)

    async def logout(self) -> Response:
        strategy = self.backend.get_strategy()
        token = self.request.cookies.get(self.options.cookie.name)
        user = await self._session_user(strategy, token)
        if user is not None:
            cookie_response = await self.backend.logout(strategy, user, token)
        else:
            cookie_response = await self.backend.transport.get_logout_response()
        return _copy_cookies(cookie_response, Response(content="", status_code=200))

    async def get_token(self) -> Response:
        user = await self._session_user(self.backend.get_strategy())
        user_id = str(getattr(user, self.options.auth_fields.id)) if user is not None else ""
        return Response(content=user_id, media_type="text/plain")

    async def signup(self) -> Response:
        errors = self.options.signup.errors
        username = self._text("username")
        password = self._text("password")
        for field, value in (("username", username), ("password", password)):
            if not value:
                raise AuthError(_render(errors.field_missing, field=field))

        await self.user_manager.validate_password(password, None)

        try:
            await self.user_manager.get_by_email(username)
        except user_exceptions.UserNotExists:
            pass
        else:
            raise AuthError(_render(errors.username_taken, username=username))

        hashed_password, salt = self.user_manager.password_helper.hash_with_salt(password)
        user_attributes = {
            key: value for key, value in self.params.items() if key not in _RESERVED_PARAMS
        }
        result = await maybe_await(
            self.options.signup.handler(
                username=username,
                hashed_password=hashed_password,
                salt=salt,
                user_attributes=user_attributes,
            )
        )
        if result is None or isinstance(result, str):
            return JSONResponse({"message": result})
        return await self._login_response(result, status_code=201)

    async def forgot_password(self) -> Response:
        errors = self.options.forgot_password.errors
        username = self._text("username")
        if not username:
            raise AuthError(errors.username_required)

        try:
            user = await self.user_manager.get_by_email(username)
        except user_exceptions.UserNotExists:
            raise AuthError(_render(errors.username_not_found, username=username))

        # issues the token and runs the forgot-password callback
        await self.user_manager.forgot_password(user, self.request)
        return JSONResponse(self.options.sanitize_user(user))

    async def validate_reset_token(self) -> Response:
        user = await self._user_from_reset_token(self._text("resetToken"))
        return JSONResponse(self.options.sanitize_user(user))

    async def reset_password(self) -> Response:
        errors = self.options.reset_password.errors
        token = self._text("resetToken")
        password = self._text("password")
        user = await self._user_from_reset_token(token)
        if not password:
            raise AuthError(_render(self.options.signup.errors.field_missing, field="password"))

        if not self.options.reset_password.allow_reused_password:
            reused, _ = self.user_manager.password_helper.verify_and_update(
                password, getattr(user, self.options.auth_fields.hashed_password)
            )
            if reused:
                raise AuthError(errors.reused_password)

        try:
            user = await self.user_manager.reset_password(token, password, self.request)
        except user_exceptions.InvalidResetPasswordToken:
            raise AuthError(errors.reset_token_invalid)

        if await maybe_await(self.options.reset_password.handler(user)):
            return await self._login_response(user)
        return JSONResponse(self.options.sanitize_user(user))

    # ── WebAuthn ────────────────────────────────────────────────────────

    async def webauthn_reg_options(self) -> Response:
        web_authn = self._require_webauthn()
        user = await self._session_user(self.backend.get_strategy())
        if user is None:
            raise WebAuthnError("Must be logged in to register a new credential")

        username = getattr(user, self.options.auth_fields.username)
        credentials = await self._credentials_for(user)
        return JSONResponse({
            "challenge": secrets.token_urlsafe(32),
            "rp": {"name": web_authn.name, "id": web_authn.domain},
            "user": {
                "id": str(getattr(user, self.options.auth_fields.id)),
                "name": username,
                "displayName": username,
            },
            "pubKeyCredParams": [
                {"type": "public-key", "alg": -7},
                {"type": "public-key", "alg": -257},
            ],
            "timeout": web_authn.timeout,
            "excludeCredentials": credentials,
            "authenticatorSelection": {
                "authenticatorAttachment": web_authn.type,
                "userVerification": "required",
            },
            "attestation": "none",
        })

    async def webauthn_auth_options(self) -> Response:
        web_authn = self._require_webauthn()
        user = await self._session_user(self.backend.get_strategy())
        if user is None:
            raise WebAuthnError("Log in with username and password to enable WebAuthn")

        return JSONResponse({
            "challenge": secrets.token_urlsafe(32),
            "rpId": web_authn.domain,
            "timeout": web_authn.timeout,
            "allowCredentials": await self._credentials_for(user),
            "userVerification": "required",
        })

    async def webauthn_register(self) -> Response:
        self._require_webauthn()
        raise WebAuthnError("WebAuthn verification is not supported")

    async def webauthn_authenticate(self) -> Response:
        self._require_webauthn()
        raise WebAuthnError("WebAuthn verification is not supported")

    # ── Helpers ─────────────────────────────────────────────────────────

    def _error(self, message: str, status_code: int = 400) -> Response:
        return JSONResponse({"error": message}, status_code=status_code)

    def _text(self, name: str) -> Optional[str]:
        """String value of a request param; blank or structured values read as missing."""
        value = self.params.get(name)
        if value is None or isinstance(value, (dict, list)):
            return None
        value = str(value)
        if name != "password" and not value.strip():
            return None
        return value

    async def _read_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = dict(self.request.query_params)
        body = await self.request.body()
        if body:
            try:
                payload = json.loads(body)
            except ValueError:
                raise AuthError("Request body must be JSON")
            if not isinstance(payload, dict):
                raise AuthError("Request body must be a JSON object")
            params.update(payload)
        return params

    async def _login_response(self, user: Any, status_code: int = 200) -> Response:
        strategy = self.backend.get_strategy()
        cookie_response = await self.backend.login(strategy, user)
        response = JSONResponse(self.options.sanitize_user(user), status_code=status_code)
        return _copy_cookies(cookie_response, response)

    async def _session_user(self, strategy, token: Optional[str] = None) -> Any:
        if token is None:
            token = self.request.cookies.get(self.options.cookie.name)
        if not token:
            return None
        return await strategy.read_token(token, self.user_manager)

    async def _user_from_reset_token(self, token: Optional[str]) -> Any:
        errors = self.options.reset_password.errors
        if not token:
            raise AuthError(errors.reset_token_required)

        manager = self.user_manager
        try:
            data = decode_jwt(
                token,
                manager.reset_password_token_secret,
                [manager.reset_password_token_audience],
            )
        except jwt.ExpiredSignatureError:
            raise AuthError(errors.reset_token_expired)
        except jwt.PyJWTError:
            raise AuthError(errors.reset_token_invalid)

        try:
            user = await manager.get(manager.parse_id(data["sub"]))
        except (KeyError, user_exceptions.InvalidID, user_exceptions.UserNotExists):
            raise AuthError(errors.reset_token_invalid)

        # a token issued before the last password change is spent
        fingerprint_valid, _ = manager.password_helper.verify_and_update(
            getattr(user, self.options.auth_fields.hashed_password),
            data.get(_PASSWORD_FINGERPRINT, ""),
        )
        if not fingerprint_valid:
            raise AuthError(errors.reset_token_invalid)
        return user

    def _require_webauthn(self):
        if not self.options.web_authn.enabled:
            raise WebAuthnError("WebAuthn is not enabled")
        return self.options.web_authn

    async def _credentials_for(self, user: Any) -> List[Dict[str, Any]]:
        model = self.options.credential_model
        if model is None:
            return []
        fields = self.options.web_authn.credential_fields
        result = await self.options.db.execute(
            select(model).where(getattr(model, fields.user_id) == getattr(user, self.options.auth_fields.id))
        )
        described = []
        for credential in result.scalars().all():
            transports = getattr(credential, fields.transports)
            described.append({
                "id": getattr(credential, fields.id),
                "type": "public-key",
                "transports": json.loads(transports) if transports else [],
            })
        return described

"""
Configuration objects accepted by ``DbAuthHandler``.

Each flow (forgot password, login, reset password, signup) gets a callback
plus the error strings returned to the client.  Error strings may reference
``{username}`` or ``{field}`` placeholders.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

ONE_DAY = 60 * 60 * 24
TEN_YEARS = ONE_DAY * 365 * 10


# ── Error strings ─────────────────────────────────────────────────────────


class ForgotPasswordErrors(BaseModel):
    username_not_found: str = "Username not found"
    username_required: str = "Username is required"


class LoginErrors(BaseModel):
    username_or_password_missing: str = "Both username and password are required"
    username_not_found: str = "Username {username} not found"
    incorrect_password: str = "Incorrect password for {username}"


class ResetPasswordErrors(BaseModel):
    reset_token_expired: str = "resetToken is expired"
    reset_token_invalid: str = "resetToken is invalid"
    reset_token_required: str = "resetToken is required"
    reused_password: str = "Must choose a new password"


class SignupErrors(BaseModel):
    field_missing: str = "{field} is required"
    username_taken: str = "Username `{username}` already in use"


# ── Flow options ──────────────────────────────────────────────────────────


class ForgotPasswordOptions(BaseModel):
    handler: Callable[..., Any]
    expires: int = ONE_DAY
    errors: ForgotPasswordErrors = Field(default_factory=ForgotPasswordErrors)


class LoginOptions(BaseModel):
    handler: Callable[..., Any]
    expires: int = TEN_YEARS
    errors: LoginErrors = Field(default_factory=LoginErrors)


class ResetPasswordOptions(BaseModel):
    handler: Callable[..., Any]
    allow_reused_password: bool = True
    errors: ResetPasswordErrors = Field(default_factory=ResetPasswordErrors)


class SignupOptions(BaseModel):
    handler: Callable[..., Any]
    password_validation: Optional[Callable[[str], Any]] = None
    errors: SignupErrors = Field(default_factory=SignupErrors)


# ── Storage / transport mapping ───────────────────────────────────────────


class AuthFields(BaseModel):
    """Maps what the handler calls a user field to the model attribute."""

    id: str = "id"
    username: str = "email"
    hashed_password: str = "hashed_password"
    salt: str = "salt"


class CookieAttributes(BaseModel):
    http_only: bool = True
    path: str = "/"
    same_site: str = "strict"
    secure: bool = True
    domain: Optional[str] = None


class CookieOptions(BaseModel):
    name: str
    attributes: CookieAttributes = Field(default_factory=CookieAttributes)


class CredentialFields(BaseModel):
    id: str = "id"
    user_id: str = "user_id"
    public_key: str = "public_key"
    transports: str = "transports"
    counter: str = "counter"


class WebAuthnOptions(BaseModel):
    enabled: bool = False
    # how long a platform authenticator may re-authenticate without a password
    expires: int = TEN_YEARS
    name: str = ""
    domain: str = "localhost"
    origin: str = "http://localhost:8910"
    type: str = "platform"
    timeout: int = 60000
    credential_fields: CredentialFields = Field(default_factory=CredentialFields)


class DbAuthHandlerOptions(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    db: Any
    auth_model: Any
    credential_model: Any = None
    allowed_user_fields: List[str] = Field(default_factory=lambda: ["id", "email"])
    auth_fields: AuthFields = Field(default_factory=AuthFields)
    cookie: CookieOptions
    forgot_password: ForgotPasswordOptions
    login: LoginOptions
    reset_password: ResetPasswordOptions
    signup: SignupOptions
    web_authn: WebAuthnOptions = Field(default_factory=WebAuthnOptions)
    session_secret: str
    reset_password_secret: str

    def sanitize_user(self, user: Any) -> Dict[str, Any]:
        """Return only the allowed user fields, JSON-safe."""
        data = {}
        for field in self.allowed_user_fields:
            value = getattr(user, field, None)
            data[field] = value if value is None or isinstance(value, (str, int, bool)) else str(value)
        return data

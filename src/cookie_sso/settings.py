"""SSO provider settings loaded from environment variables.

Loaded from environment variables with SSO_ prefix.

Environment Variables:
    SSO_COOKIE_NAME: Cookie set by the SSO provider
    SSO_LOGIN_URL: Provider login URL
    SSO_LOGOUT_URL: Provider logout URL
    SSO_SESSION_URL: Remote session endpoint (remote validation mode)
    SSO_JWT_SECRET: Shared HMAC secret (JWT validation mode)
    SSO_JWT_ALGORITHM: HS256, HS384 or HS512
    SSO_JWT_ISSUER: Expected ``iss`` claim
    SSO_JWT_AUDIENCE: Expected ``aud`` claim
    SSO_TIMEOUT_MS: Remote session call deadline in milliseconds
    SSO_API_PREFIX: Prefix the auth endpoints are mounted under
    SSO_ALLOWED_ORIGINS: Comma-separated Origin allow-list
    SSO_EMAIL_FIELD, SSO_NAME_FIELD, SSO_FIRST_NAME_FIELD, SSO_LAST_NAME_FIELD,
    SSO_PROFILE_PICTURE_URL_FIELD, SSO_EMAIL_VERIFIED_FIELD,
    SSO_LAST_LOGIN_AT_FIELD: Field mapping overrides (dot paths)
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cookie_sso.config import (
    DEFAULT_TIMEOUT_MS,
    FieldMapping,
    JWTValidation,
    SSOProviderConfig,
)


class SSOSettings(BaseSettings):
    """SSO provider configuration loaded from environment variables.

    Setting ``SSO_JWT_SECRET`` selects JWT validation; otherwise
    ``SSO_SESSION_URL`` is required. Validation of the combination happens in
    :meth:`to_provider_config`, which raises ``ConfigInvalidError``.

    Example:
        >>> settings = SSOSettings(
        ...     cookie_name="sso", login_url="https://sso/login",
        ...     logout_url="https://sso/logout", session_url="https://sso/session",
        ... )
        >>> settings.to_provider_config().uses_jwt
        False
    """

    model_config = SettingsConfigDict(
        env_prefix="SSO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    cookie_name: str = Field(default="", description="Cookie set by the SSO provider")
    login_url: str = Field(default="", description="Provider login URL")
    logout_url: str = Field(default="", description="Provider logout URL")
    session_url: str = Field(default="", description="Remote session endpoint")

    jwt_secret: str = Field(
        default="",
        repr=False,  # Security: never log the signing secret
        description="Shared HMAC secret for JWT cookies",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT HMAC algorithm")
    jwt_issuer: str | None = Field(default=None, description="Expected iss claim")
    jwt_audience: str | None = Field(default=None, description="Expected aud claim")

    timeout_ms: int = Field(
        default=DEFAULT_TIMEOUT_MS,
        gt=0,
        le=60000,
        description="Remote session call deadline in milliseconds",
    )
    api_prefix: str = Field(default="/api", description="Auth endpoint mount prefix")
    allowed_origins: str = Field(
        default="",
        description="Comma-separated Origin allow-list (empty disables the check)",
    )

    email_field: str = Field(default="email")
    name_field: str = Field(default="name")
    first_name_field: str = Field(default="firstName")
    last_name_field: str = Field(default="lastName")
    profile_picture_url_field: str = Field(default="profilePictureUrl")
    email_verified_field: str = Field(default="emailVerified")
    last_login_at_field: str = Field(default="lastLoginAt")

    @field_validator("jwt_algorithm", mode="before")
    @classmethod
    def normalize_algorithm(cls, v: object) -> str:
        return str(v).upper()

    @field_validator("api_prefix")
    @classmethod
    def normalize_api_prefix(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            v = f"/{v}"
        return v

    @property
    def allowed_origin_list(self) -> tuple[str, ...]:
        """Parsed allow-list with blanks dropped."""
        return tuple(
            origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()
        )

    def field_mapping(self) -> FieldMapping:
        return FieldMapping(
            email=self.email_field,
            name=self.name_field,
            first_name=self.first_name_field,
            last_name=self.last_name_field,
            profile_picture_url=self.profile_picture_url_field,
            email_verified=self.email_verified_field,
            last_login_at=self.last_login_at_field,
        )

    def to_provider_config(self) -> SSOProviderConfig:
        """Build a validated SSOProviderConfig.

        Raises:
            ConfigInvalidError: If the environment describes an incomplete
                provider.
        """
        jwt = (
            JWTValidation(
                secret=self.jwt_secret,
                algorithm=self.jwt_algorithm,  # type: ignore[arg-type]
                issuer=self.jwt_issuer or None,
                audience=self.jwt_audience or None,
            )
            if self.jwt_secret
            else None
        )
        return SSOProviderConfig.create(
            cookie_name=self.cookie_name,
            login_url=self.login_url,
            logout_url=self.logout_url,
            session_url=self.session_url or None,
            jwt=jwt,
            timeout_ms=self.timeout_ms,
            field_mapping=self.field_mapping(),
        )


@lru_cache(maxsize=1)
def get_sso_settings() -> SSOSettings:
    """Get singleton SSOSettings instance.

    Clear cache with ``get_sso_settings.cache_clear()`` for testing.
    """
    return SSOSettings()

"""Authentication schemas for JWT tokens and user context."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UserContext(BaseModel):
    """Authenticated user context extracted from JWT token.

    This model represents the authenticated user for the current request.
    It is populated by the auth middleware from the validated JWT.
    """

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID = Field(description="Unique identifier for the user (from JWT sub claim)")
    email: str | None = Field(default=None, description="User's email address if available")
    role: str | None = Field(default=None, description="User's application role (e.g., 'customer', 'admin')")

    def has_role(self, role: str) -> bool:
        return self.role == role


class TokenPayload(BaseModel):
    """JWT token payload structure for Supabase tokens.

    Represents the claims contained in a Supabase-issued JWT.
    Used for validation and extraction of user information.
    """

    model_config = ConfigDict(from_attributes=True)

    sub: str = Field(description="Subject - the user's UUID")
    email: str | None = Field(default=None, description="User's email address")
    role: str | None = Field(default=None, description="Postgres role claim")
    app_metadata: dict[str, Any] = Field(default_factory=dict, description="Server-controlled user metadata")
    user_role: str | None = Field(default=None, description="Custom access token hook role claim")
    exp: int = Field(description="Expiration timestamp (Unix epoch)")
    iat: int = Field(description="Issued at timestamp (Unix epoch)")
    aud: str | None = Field(default=None, description="Audience - intended recipient")
    iss: str | None = Field(default=None, description="Issuer - token issuer URL")

    @property
    def application_role(self) -> str | None:
        """Application role from app_metadata, then user_role, then the role claim.

        Supabase sets the top-level role claim to the Postgres role
        ("authenticated"); store roles live in app_metadata.role.
        """
        return self.app_metadata.get("role") or self.user_role or self.role

    def to_user_context(self) -> UserContext:
        """Convert token payload to UserContext.

        Returns:
            UserContext: User context derived from token claims.
        """
        return UserContext(
            user_id=UUID(self.sub),
            email=self.email,
            role=self.application_role,
        )

"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from src.api.middleware.auth import AuthError, authenticate, bearer_token
from src.api.middleware.error_handler import AuthorizationError
from src.core.config import get_settings
from src.models.notification import ADMIN, Recipient, UserRecipient
from src.schemas.auth import UserContext


def is_admin(user: UserContext) -> bool:
    return user.has_role(get_settings().admin_role)


def recipient_for(user: UserContext) -> Recipient:
    """Notification recipient addressed by a user's requests.

    Administrators share the admin inbox; shoppers have their own.
    """
    return ADMIN if is_admin(user) else UserRecipient(user.user_id)


async def get_current_user(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> UserContext:
    """Extract and validate the current user from the Authorization header.

    Args:
        authorization: The Authorization header value (Bearer token).

    Returns:
        UserContext: The authenticated user's context.

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired.
    """
    try:
        return authenticate(bearer_token(authorization))
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_admin_user(
    user: Annotated[UserContext, Depends(get_current_user)],
) -> UserContext:
    """Require the current user to be a store administrator.

    Raises:
        AuthorizationError: 403 if the user is not an admin.
    """
    if not is_admin(user):
        raise AuthorizationError("Admin access required")
    return user


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[UserContext, Depends(get_current_user)]
AdminUser = Annotated[UserContext, Depends(get_admin_user)]

"""FastAPI authentication dependencies for route protection."""

import uuid
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from cowork.auth.jwt import decode_token

# "payments" is the payment gateway's service identity.
ROLES = ("user", "admin", "payments")

# Strict bearer, raises 403 automatically if no token provided
_bearer_scheme = HTTPBearer()


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, taken from the token claims."""

    user_id: uuid.UUID
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def can_record_payments(self) -> bool:
        """Admins and the payment gateway may set prices and mark payments completed."""
        return self.role in ("admin", "payments")


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> Principal:
    """Validate the Bearer token and return the caller.

    Raises:
        HTTPException 401: If the token is invalid, expired, of the wrong type,
            or carries an unusable subject or role.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_token(credentials.credentials)
    except JWTError:
        raise credentials_exception from None

    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )

    sub: str | None = payload.get("sub")
    if sub is None:
        raise credentials_exception
    try:
        user_id = uuid.UUID(sub)
    except ValueError:
        raise credentials_exception from None

    role = payload.get("role", "user")
    if role not in ROLES:
        raise credentials_exception

    return Principal(user_id=user_id, role=role)


async def require_admin(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """Return the caller only if they hold the admin role.

    Raises:
        HTTPException 403: For non-admin callers.
    """
    if not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return principal


async def require_payment_recorder(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """Return the caller only if it may record captured payments.

    Raises:
        HTTPException 403: For callers other than admins and the payment gateway.
    """
    if not principal.can_record_payments:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the payment service can record payments",
        )
    return principal

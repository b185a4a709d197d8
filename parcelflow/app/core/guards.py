"""
Authorization policy for role-based and ownership-based access control.

Every protected operation names one capability:

- ``admin``: caller's stored role is admin
- ``rider``: caller's stored role is rider
- ``owner``: caller's email equals the resource owner's email (admins always pass)

``authorize`` only answers the question; ``enforce`` raises ``ForbiddenError``.
Endpoints get the same checks as dependencies via ``require_capability``.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends

from parcelflow.app.core.dependencies import get_caller
from parcelflow.app.core.exceptions import ForbiddenError
from parcelflow.app.core.identity import CallerContext
from parcelflow.app.models.enums import UserRole


class Capability(str, enum.Enum):
    ADMIN = "admin"
    RIDER = "rider"
    OWNER = "owner"


@dataclass(frozen=True)
class AuthorizationResult:
    allowed: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed


def authorize(
    capability: Capability,
    caller: CallerContext,
    owner_email: Optional[str] = None,
) -> AuthorizationResult:
    """
    Decide whether the caller holds a capability.

    Args:
        capability: Capability the operation requires
        caller: Verified caller
        owner_email: Owner of the resource, for the ``owner`` capability

    Returns:
        AuthorizationResult; falsy when denied, with a reason
    """
    if capability == Capability.ADMIN:
        if caller.role == UserRole.ADMIN:
            return AuthorizationResult(True)
        return AuthorizationResult(False, "Admin access required")

    if capability == Capability.RIDER:
        if caller.role == UserRole.RIDER:
            return AuthorizationResult(True)
        return AuthorizationResult(False, "Rider access required")

    if capability == Capability.OWNER:
        if caller.is_admin:
            return AuthorizationResult(True)
        if owner_email and caller.email.lower() == owner_email.lower():
            return AuthorizationResult(True)
        return AuthorizationResult(False, "You do not own this resource")

    return AuthorizationResult(False, f"Unknown capability '{capability}'")


def enforce(
    capability: Capability,
    caller: CallerContext,
    owner_email: Optional[str] = None,
    resource_name: str = "resource",
) -> CallerContext:
    """
    Enforce a capability, raise 403 if access is denied.

    Raises:
        ForbiddenError: capability not held
    """
    result = authorize(capability, caller, owner_email)
    if not result:
        raise ForbiddenError(
            f"Access denied to this {resource_name}. {result.reason}",
            details={"capability": capability.value},
        )
    return caller


def require_capability(capability: Capability):
    """
    Dependency factory for role capabilities.

    Usage:
        @router.get("/riders")
        async def list_riders(caller: CallerContext = Depends(require_capability(Capability.ADMIN))):
            ...

    ``owner`` needs the resource, so endpoints check it with ``enforce``.
    """
    if capability == Capability.OWNER:
        raise ValueError("owner capability is checked per resource with enforce()")

    async def capability_checker(caller: CallerContext = Depends(get_caller)) -> CallerContext:
        return enforce(capability, caller)

    return capability_checker


require_admin = require_capability(Capability.ADMIN)
require_rider = require_capability(Capability.RIDER)


def owner_scope(caller: CallerContext, requested_email: Optional[str] = None) -> Optional[str]:
    """
    Email to filter owned listings by.

    Admins see everything (or the email they asked for); everyone else is
    pinned to their own email and may not ask for someone else's.
    """
    if caller.is_admin:
        return requested_email
    if requested_email:
        enforce(Capability.OWNER, caller, requested_email)
    return caller.email

"""
Request context for tenant-scoped operations.

Authentication and tenant resolution happen upstream (API gateway). The
gateway forwards what it resolved as headers:

    X-Tenant-ID     UUID of the tenant every query is filtered on
    X-User-ID       id of the acting user (recorded as created_by)
    X-User-Roles    comma-separated role codes

Services never read headers themselves; they receive a RequestContext.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from fastapi import Request

from app.config import settings
from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

TENANT_HEADER = "X-Tenant-ID"
USER_HEADER = "X-User-ID"
ROLES_HEADER = "X-User-Roles"


@dataclass(frozen=True)
class RequestContext:
    """Tenant and actor an operation runs on behalf of."""
    tenant_id: uuid.UUID
    user_id: Optional[str] = None
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return bool(self.roles & settings.admin_roles)


def parse_roles(raw: Optional[str]) -> FrozenSet[str]:
    if not raw:
        return frozenset()
    return frozenset(role.strip().lower() for role in raw.split(",") if role.strip())


def get_request_context(request: Request) -> RequestContext:
    """
    Build the RequestContext from gateway headers.

    Raises:
        ValidationError: If the tenant header is missing or not a UUID
    """
    raw_tenant = request.headers.get(TENANT_HEADER)
    if not raw_tenant:
        raise ValidationError("Company context is required")

    try:
        tenant_id = uuid.UUID(raw_tenant)
    except ValueError:
        logger.warning(f"Invalid tenant id in header: {raw_tenant}")
        raise ValidationError(f"Invalid {TENANT_HEADER} header: {raw_tenant}")

    return RequestContext(
        tenant_id=tenant_id,
        user_id=request.headers.get(USER_HEADER),
        roles=parse_roles(request.headers.get(ROLES_HEADER)),
    )

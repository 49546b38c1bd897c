"""Caller identity passed explicitly to components that need it.

A Session is resolved once per request by the API layer (from headers set by
the upstream auth gateway) and handed down as a value. Nothing in the service
reads identity or role from ambient state.
"""

from pydantic import BaseModel, ConfigDict

ADMIN_ROLES = frozenset({"ADMIN", "SUPER_ADMIN", "SUPERADMIN"})


class Session(BaseModel):
    """Authenticated caller.

    Attributes:
        user_id: Identifier of the signed-in user, if known
        role: Role name as issued by the auth service (case-insensitive)
        tenant_id: Tenant the caller is acting for
        access_token: Bearer token forwarded to the backend API
    """

    model_config = ConfigDict(frozen=True)

    user_id: str | None = None
    role: str | None = None
    tenant_id: int | None = None
    access_token: str | None = None

    @property
    def is_admin(self) -> bool:
        """Whether the caller has a platform-wide admin role."""
        if not self.role:
            return False
        return self.role.strip().upper() in ADMIN_ROLES

    def backend_headers(self) -> dict[str, str]:
        """Build headers for backend API calls made on behalf of this session.

        Admins act across tenants, so the tenant header is only sent for
        regular users.
        """
        headers: dict[str, str] = {}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        if not self.is_admin and self.tenant_id is not None:
            headers["X-Tenant-ID"] = str(self.tenant_id)
        return headers

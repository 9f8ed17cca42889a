"""
Security Core - caller identity.

Authentication happens upstream; this service trusts the identity headers
set by the gateway and only checks that they are well-formed.
"""

from dataclasses import dataclass
from uuid import UUID

from ledgerflow.domain.exceptions import ValidationError

USER_HEADER = "X-User-Id"
TENANT_HEADER = "X-Tenant-Id"


@dataclass(frozen=True, slots=True)
class IdentityContext:
    user_id: str
    tenant_id: UUID

    @classmethod
    def from_headers(cls, user_id: str | None, tenant_id: str | None) -> "IdentityContext":
        if not user_id or not user_id.strip():
            raise ValidationError(f"Missing {USER_HEADER} header")
        if not tenant_id:
            raise ValidationError(f"Missing {TENANT_HEADER} header")
        try:
            tenant = UUID(tenant_id)
        except ValueError:
            raise ValidationError(f"{TENANT_HEADER} must be a UUID") from None
        return cls(user_id=user_id.strip(), tenant_id=tenant)

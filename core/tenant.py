"""
Request-scoped tenant context.

The ambient tenant is the owner partition of the current request. It is held
in a ContextVar so each request, thread or task sees its own value, and can
always be overridden by passing a TenantIdentity explicitly.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True)
class TenantIdentity:
    """
    Identity of a tenant: an opaque type tag plus an opaque id.

    Ids are always carried as strings, so ``TenantIdentity("Account", "42")``
    and ``TenantIdentity.from_parts("Account", 42)`` are equal.
    """

    type: str
    id: str

    @classmethod
    def from_parts(cls, tenant_type, tenant_id) -> TenantIdentity | None:
        """Build an identity, or None unless both parts are present."""
        if tenant_type is None or tenant_id is None:
            return None
        tenant_type = str(tenant_type).strip()
        tenant_id = str(tenant_id).strip()
        if not tenant_type or not tenant_id:
            return None
        return cls(type=tenant_type, id=tenant_id)

    def as_path(self) -> str:
        return f"{self.type}/{self.id}"


_current_tenant: ContextVar[TenantIdentity | None] = ContextVar(
    "current_tenant", default=None
)


def current_tenant() -> TenantIdentity | None:
    """Return the ambient tenant of the current context, if any."""
    return _current_tenant.get()


def set_current_tenant(tenant: TenantIdentity | None) -> Token:
    """Set the ambient tenant. Pass the returned token to reset_current_tenant."""
    return _current_tenant.set(tenant)


def reset_current_tenant(token: Token) -> None:
    _current_tenant.reset(token)


@contextmanager
def tenant_scope(tenant: TenantIdentity | None) -> Iterator[TenantIdentity | None]:
    """
    Run a block with the given ambient tenant, restoring the previous one on exit.

    Example:
        with tenant_scope(TenantIdentity("Account", "42")):
            service.download("abc123")
    """
    token = set_current_tenant(tenant)
    try:
        yield tenant
    finally:
        reset_current_tenant(token)

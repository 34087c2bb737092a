"""
Storage key layout for the shared bucket.

Current layout:   {tenant_type}/{tenant_id}/{record path}/{key}
                  e.g. Account/42/inventory/inventory_items/abc123
Tenant layout:    {tenant_type}/{tenant_id}/ActiveStorage/{key}
Root layout:      {key}

Files written under an older layout stay where they are, so reads try the
layouts newest first.
"""

import logging
from typing import NamedTuple

from api.storage.paths import sanitize_record_type
from core.tenant import TenantIdentity


logger = logging.getLogger(__name__)

FALLBACK_SEGMENT = "ActiveStorage"


class CandidateKey(NamedTuple):
    key: str
    rank: int


def key_for(
    key: str,
    tenant: TenantIdentity | None,
    record_type: str | None,
    use_fallback: bool = False,
    log_missing_tenant: bool = True,
) -> str:
    """
    Compute the storage key of a file.

    Without a tenant the bare key is returned (root layout). With a tenant,
    the record path from record_type is used, or the fallback segment when
    record_type is blank or use_fallback is set. The missing-tenant
    warning is skipped when log_missing_tenant is False.
    """
    if tenant is None or not tenant.type or not tenant.id:
        if log_missing_tenant:
            logger.warning("No tenant information available for key %s. Using root path.", key)
        return key

    segments = None
    if not use_fallback:
        record_path = sanitize_record_type(record_type)
        if record_path:
            segments = record_path.split("/")
    if segments is None:
        segments = [FALLBACK_SEGMENT]

    return "/".join([tenant.type, str(tenant.id), *segments, key])


def candidate_keys(
    key: str,
    tenant: TenantIdentity | None,
    record_type: str | None,
) -> list[CandidateKey]:
    """
    Keys a stored file may live under, in the order they should be tried.
    """
    keys = []
    if tenant is not None and record_type:
        keys.append(key_for(key, tenant, record_type))
    if tenant is not None:
        keys.append(key_for(key, tenant, None, use_fallback=True))
    keys.append(key)

    candidates = []
    for candidate in keys:
        if candidate not in (c.key for c in candidates):
            candidates.append(CandidateKey(key=candidate, rank=len(candidates)))
    return candidates

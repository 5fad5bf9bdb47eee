"""Request identity for the API.

Authentication happens upstream. The identity proxy in front of the API
sets ``X-User-Id`` for signed-in users; a request without it is
anonymous. Anonymous callers are rate limited by client address.
"""

import logging
import os

from fastapi import Request

from karat.errors.formatter import KaratError

logger = logging.getLogger(__name__)

OWNER_HEADER = "X-User-Id"

# When KARAT_TRUST_PROXY is "1" or "true", X-Forwarded-For is used for the
# client address. Otherwise only request.client.host is trusted.
_TRUST_PROXY = os.environ.get("KARAT_TRUST_PROXY", "").strip().lower() in ("1", "true")

_MAX_OWNER_ID_LENGTH = 64


def get_client_ip(request: Request) -> str:
    """Extract the client address used as the anonymous rate-limit key."""
    if _TRUST_PROXY:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_owner_id(request: Request) -> str | None:
    """Authenticated owner id, or None for anonymous requests."""
    owner_id = request.headers.get(OWNER_HEADER, "").strip()
    if not owner_id:
        return None
    if len(owner_id) > _MAX_OWNER_ID_LENGTH:
        logger.warning("Ignoring oversized %s header", OWNER_HEADER)
        return None
    return owner_id


def require_owner_id(request: Request) -> str:
    """Owner id for endpoints that need a signed-in user.

    Raises:
        KaratError: E-5001 when the request is anonymous.
    """
    owner_id = get_owner_id(request)
    if owner_id is None:
        raise KaratError.from_code("E-5001", mode="assistant")
    return owner_id

from __future__ import annotations

from fastapi import Request

from priceport.schemas.request_identity import RequestIdentity

DEFAULT_ACTOR = "system@local"


def _identity_from_header(request: Request) -> RequestIdentity:
    email = (
        request.headers.get("X-User-Email")
        or request.headers.get("X-User")
        or DEFAULT_ACTOR
    )
    return RequestIdentity(
        email=(email or "").strip().lower() or None,
        auth_source="header",
    )


def get_request_identity(request: Request) -> RequestIdentity:
    return _identity_from_header(request)


def get_request_email(request: Request) -> str:
    identity = get_request_identity(request)
    return identity.email or DEFAULT_ACTOR

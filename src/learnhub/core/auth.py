"""Caller identity resolution.

Authentication itself happens upstream (API gateway / auth middleware of the
main platform). The gateway forwards the verified identity in headers, which
this module turns into a ``CurrentUser`` for route dependencies.
"""

from dataclasses import dataclass

from fastapi import Header, HTTPException

from learnhub.core.logging import user_id_context


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller."""

    id: str


async def get_current_user(
    x_user_id: str | None = Header(default=None),
) -> CurrentUser:
    """Resolve the authenticated caller from gateway headers.

    Raises:
        HTTPException: 401 when no identity was forwarded
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Authentication required")
    user = CurrentUser(id=x_user_id.strip())
    user_id_context.set(user.id)
    return user

"""
Request Dependencies

The upstream auth gateway authenticates the caller and forwards the
identity in ``X-User-Id``. Administrative RPCs additionally require
``X-Admin-Token`` to match the configured admin token.
"""

import hmac
from typing import Optional

from fastapi import Header, HTTPException, Request

from liveops.rpc.registry import CallerContext

USER_ID_HEADER = "X-User-Id"
ADMIN_TOKEN_HEADER = "X-Admin-Token"


def get_caller_context(
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
    x_admin_token: Optional[str] = Header(default=None),
) -> CallerContext:
    """Build the caller context; 401 when no identity was forwarded"""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing caller identity")

    expected = request.app.state.admin_token
    is_admin = bool(
        x_admin_token
        and expected
        and hmac.compare_digest(x_admin_token.encode("utf-8"), expected.encode("utf-8"))
    )

    return CallerContext(user_id=user_id, is_admin=is_admin)

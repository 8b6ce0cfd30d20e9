from typing import Optional

from fastapi import Depends, Header, Query, status

from ..database import get_db  # noqa: F401  re-exported for routers and tests
from ..schemas import CallerIdentity
from ..utils import error_response

MAX_IDENTITY_LENGTH = 255


def _first(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value is not None and value.strip():
            return value.strip()
    return None


def get_caller_identity(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id", max_length=MAX_IDENTITY_LENGTH),
    x_user_name: Optional[str] = Header(default=None, alias="X-User-Name", max_length=MAX_IDENTITY_LENGTH),
    x_user_email: Optional[str] = Header(default=None, alias="X-User-Email", max_length=MAX_IDENTITY_LENGTH),
    x_user_avatar: Optional[str] = Header(default=None, alias="X-User-Avatar"),
    user_id: Optional[str] = Query(default=None, alias="userId", max_length=MAX_IDENTITY_LENGTH),
    user_name: Optional[str] = Query(default=None, alias="userName", max_length=MAX_IDENTITY_LENGTH),
    user_email: Optional[str] = Query(default=None, alias="userEmail", max_length=MAX_IDENTITY_LENGTH),
    user_avatar: Optional[str] = Query(default=None, alias="userAvatar"),
) -> Optional[CallerIdentity]:
    """Identity tuple forwarded by the upstream auth layer, if any.

    Headers win over query parameters field by field. Returns None when no
    id was supplied at all.
    """
    caller_id = _first(x_user_id, user_id)
    if caller_id is None:
        return None
    return CallerIdentity(
        id=caller_id,
        name=_first(x_user_name, user_name),
        email=_first(x_user_email, user_email),
        avatar=_first(x_user_avatar, user_avatar),
    )


def require_caller(
    caller: Optional[CallerIdentity] = Depends(get_caller_identity),
) -> CallerIdentity:
    if caller is None:
        raise error_response(
            "Caller identity is required",
            {"user_id": "required"},
            status.HTTP_400_BAD_REQUEST,
        )
    return caller

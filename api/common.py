from typing import Any, Optional

from fastapi import Header, HTTPException


async def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """Caller identity as forwarded by the auth layer in front of this service."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="No user, access denied")
    return x_user_id


def envelope(data: Any = None, message: Optional[str] = None, success: bool = True) -> dict[str, Any]:
    body: dict[str, Any] = {"success": success}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body

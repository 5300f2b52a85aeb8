import uuid

from fastapi import Header, HTTPException, status


def get_current_owner(x_user_id: str = Header(..., alias="X-User-Id")) -> uuid.UUID:
    """Owner id set by the upstream gateway after it authenticated the caller."""
    try:
        return uuid.UUID(x_user_id.strip())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-User-Id header",
        )

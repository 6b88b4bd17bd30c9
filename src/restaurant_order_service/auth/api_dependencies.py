"""FastAPI dependencies for staff authentication.

Provides dependency functions for FastAPI endpoints to resolve the staff
actor behind an API key.
"""

from typing import Annotated

from fastapi import Header, HTTPException

from restaurant_order_service.auth.api_key_validator import StaffActor, StaffKeyValidator


def get_staff_actor_from_header(
    x_api_key: Annotated[str | None, Header()] = None,
    validator: StaffKeyValidator | None = None,
) -> StaffActor:
    """Extract the X-API-Key header and resolve it to a staff actor.

    Args:
        x_api_key: API key from X-API-Key header (injected by FastAPI)
        validator: StaffKeyValidator instance

    Returns:
        StaffActor: The authenticated actor

    Raises:
        HTTPException: 401 if API key is missing or invalid
    """
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing API key")

    actor = validator.resolve(x_api_key) if validator else None
    if actor is None:
        raise HTTPException(status_code=401, detail="Invalid API key")

    return actor

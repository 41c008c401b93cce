"""
Admin authentication dependencies.
"""

import logging
from typing import Annotated

from fastapi import Header, HTTPException, status

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)


async def get_admin_id(
    x_admin_id: Annotated[str | None, Header()] = None,
) -> str:
    """
    Dependency to verify the caller is an allow-listed administrator.

    The ``X-Admin-Id`` header must match one of ``ADMIN_IDS``. An empty
    allow-list denies everyone.

    Returns:
        str: The admin id if authorized

    Raises:
        HTTPException: 403 if the id is missing or not allow-listed
    """
    admin_id = (x_admin_id or "").strip()
    allowed = settings.admin_ids_list

    if not admin_id or admin_id not in allowed:
        if admin_id:
            logger.warning("Rejected admin request from non-allow-listed id")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required. You do not have permission to access this resource.",
        )

    return admin_id

from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "Authorization"
BEARER_PREFIX = "Bearer"


def extract_subject_id(request: Request) -> str | None:
    """
    Read the subject id from `Authorization: Bearer <subject-id>`.

    Token validation happens upstream (gateway or auth middleware); by the
    time a request reaches this service the bearer value is a trusted subject
    id. Returns None when the header is absent.
    """

    raw = request.headers.get(AUTHORIZATION_HEADER)
    if not raw:
        logger.info("Missing Authorization header path=%s method=%s", request.url.path, request.method)
        return None

    prefix = f"{BEARER_PREFIX} "
    if not raw.startswith(prefix):
        logger.warning("Invalid Authorization header format path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {AUTHORIZATION_HEADER}. Expected '{BEARER_PREFIX} <subject-id>'.",
        )

    subject_id = raw[len(prefix) :].strip()
    if not subject_id:
        logger.warning("Empty bearer value path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {AUTHORIZATION_HEADER}. Missing subject id after '{BEARER_PREFIX}'.",
        )
    return subject_id

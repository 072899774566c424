from __future__ import annotations

from collections.abc import Callable
import logging

from fastapi import Depends, HTTPException, Request, status

from authz.api.auth import extract_subject_id
from authz.engine import AuthorizationService

logger = logging.getLogger(__name__)


def get_service(request: Request) -> AuthorizationService:
    service = getattr(request.app.state, "authz_service", None)
    if service is None:
        raise RuntimeError("Authorization service not initialised. Did app startup run?")
    return service


def get_current_subject(request: Request) -> str:
    subject_id = extract_subject_id(request)
    if subject_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    request.state.subject_id = subject_id
    return subject_id


def require_permission(resource: str, action: str, context_param: str | None = None) -> Callable:
    """
    Route dependency: 403 unless the caller holds (resource, action).

    `context_param` names a path (or query) parameter whose value is passed
    as the context id, e.g. a department id in the URL.

        @router.get("/departments/{department_id}/reviews",
                    dependencies=[Depends(require_permission("reviews", "read", "department_id"))])
    """

    def dependency(
        request: Request,
        subject_id: str = Depends(get_current_subject),
        service: AuthorizationService = Depends(get_service),
    ) -> str:
        context_id = None
        if context_param is not None:
            context_id = request.path_params.get(context_param) or request.query_params.get(context_param)

        if not service.has_permission(subject_id, resource, action, context_id):
            logger.info(
                "Access denied subject=%s resource=%s action=%s path=%s",
                subject_id,
                resource,
                action,
                request.url.path,
            )
            # No detail: the caller must not learn the role structure.
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return subject_id

    return dependency

"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.
"""

from __future__ import annotations

from fastapi import File, Header, HTTPException, Request, UploadFile, status

from app.domain.content_import import OperatorContext

JSON_CONTENT_TYPES = {
    "application/json",
    "text/json",
}


def get_operator_context(
    request: Request,
    x_actor_id: str | None = Header(default=None),
    x_actor_name: str | None = Header(default=None),
    user_agent: str | None = Header(default=None),
) -> OperatorContext:
    """
    Resolve the operator performing the request from identity headers set by
    the authenticating proxy.
    """

    actor_id = (x_actor_id or "").strip()
    if not actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "UNAUTHENTICATED", "message": "X-Actor-Id header is required."},
        )

    actor_name = (x_actor_name or "").strip() or actor_id
    return OperatorContext(
        actor_id=actor_id,
        actor_name=actor_name,
        ip_address=request.client.host if request.client else None,
        user_agent=user_agent,
    )


def get_json_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Validate that the uploaded file is JSON by extension or MIME type.
    """

    filename = (file.filename or "").strip().lower()
    content_type = (file.content_type or "").strip().lower()

    is_json_filename = filename.endswith(".json")
    is_json_content_type = content_type in JSON_CONTENT_TYPES

    if not is_json_filename and not is_json_content_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "NOT_IMPLEMENTED", "message": "Only JSON files are supported."},
        )

    return file

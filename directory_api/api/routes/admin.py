from fastapi import APIRouter, Depends, Query, Request

from directory_api.core.auth import verify_admin_token
from directory_api.core.dependencies import get_moderation_service
from directory_api.core.request_body import read_json_object
from directory_api.schemas.submission import StatusUpdateResponse, SubmissionListResponse
from directory_api.services.moderation_service import ModerationService

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(verify_admin_token)],
)


@router.get("/submissions", response_model=SubmissionListResponse)
async def list_submissions(
    limit: str | None = Query(None, description="Page size, clamped to [1, 50] (default 20)."),
    cursor: str | None = Query(None, description="Opaque cursor from the previous page's nextCursor."),
    q: str | None = Query(None, description="Case-insensitive text search across the record fields."),
    service: ModerationService = Depends(get_moderation_service),
) -> SubmissionListResponse:
    """List submissions newest first with keyset pagination.

    Follow ``nextCursor`` until ``complete`` is true to walk every record
    exactly once.

    Raises:
        AuthenticationAppError: 401 for a missing or wrong X-Admin-Token.
        ValidationAppError: 400 for an undecodable cursor.
    """
    page, effective_limit = await service.list_submissions(limit=limit, cursor=cursor, query=q)
    return SubmissionListResponse(
        items=page.items,
        next_cursor=page.next_cursor,
        complete=len(page.items) < effective_limit,
    )


@router.post("/submissions/update", response_model=StatusUpdateResponse)
async def update_submission(
    request: Request,
    service: ModerationService = Depends(get_moderation_service),
) -> StatusUpdateResponse:
    """Set the moderation status (and optional note) of one submission.

    Body: ``{id, status, note?}`` with status one of pending, approved, rejected.

    Raises:
        AuthenticationAppError: 401 for a missing or wrong X-Admin-Token.
        ValidationAppError: 400 for invalid JSON, missing id or invalid status.
        NotFoundAppError: 404 when the id is unknown.
    """
    payload = await read_json_object(request)
    record = await service.update_status(payload)
    return StatusUpdateResponse(id=record.id, status=record.status)

from fastapi import APIRouter, Depends, Request

from directory_api.core.cors import enforce_allowed_origin
from directory_api.core.dependencies import get_submission_service
from directory_api.core.rate_limit import get_client_ip
from directory_api.core.request_body import read_json_object
from directory_api.schemas.submission import SubmitResponse
from directory_api.services.submission_service import SubmissionService

router = APIRouter(tags=["Submissions"])


@router.post(
    "/submissions",
    response_model=SubmitResponse,
    dependencies=[Depends(enforce_allowed_origin)],
)
async def create_submission(
    request: Request,
    service: SubmissionService = Depends(get_submission_service),
) -> SubmitResponse:
    """Accept a public resource submission.

    Body: ``{name, url, description?, tags?, disciplines?, contact?, page?,
    captcha: {a, b, op, answer}}``. The origin allowlist is checked before
    the body is read.

    Returns:
        SubmitResponse: ``{"ok": true, "id": "<new id>"}``.

    Raises:
        ForbiddenAppError: 403 for a disallowed Origin.
        ValidationAppError: 400 for invalid JSON, a failing field or captcha.
        RateLimitAppError: 429 when the submitter IP is over its limit.
        InternalAppError: 500 when the record could not be stored.
    """
    payload = await read_json_object(request)
    record = await service.submit(
        payload,
        ip=get_client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
    )
    return SubmitResponse(id=record.id)

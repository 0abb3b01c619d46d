from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Request

from stall_api.deps import get_owner_email, get_submission_store
from stall_api.errors import InvalidBody, MissingFields
from stall_api.models import (
    DeleteResponse,
    ErrorResponse,
    SaveResponse,
    StallSubmission,
    SubmissionEnvelope,
    missing_fields,
)
from stall_api.submissions import SubmissionStore, public_row

_ERRORS: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}

router = APIRouter(prefix="/api/stalls", tags=["stalls"], responses=_ERRORS)


async def _read_payload(request: Request) -> dict[str, Any]:
    raw = await request.body()
    try:
        payload = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidBody() from e
    if not isinstance(payload, dict):
        raise InvalidBody()

    missing = missing_fields(payload)
    if missing:
        raise MissingFields(missing)
    return payload


@router.get("", response_model=SubmissionEnvelope)
async def get_submission(
    email: str = Depends(get_owner_email),
    submissions: SubmissionStore = Depends(get_submission_store),
) -> dict[str, Any]:
    row = await submissions.latest(email)
    return {"submission": public_row(row)}


# The body is read raw so malformed JSON maps to InvalidBody; the model only documents it.
_SAVE_BODY = {
    "requestBody": {
        "content": {"application/json": {"schema": StallSubmission.model_json_schema()}},
        "required": True,
    }
}


@router.api_route("", methods=["POST", "PUT"], response_model=SaveResponse, openapi_extra=_SAVE_BODY)
async def save_submission(
    request: Request,
    email: str = Depends(get_owner_email),
    submissions: SubmissionStore = Depends(get_submission_store),
) -> dict[str, Any]:
    """Create or replace the caller's stall submission.

    POST and PUT are the same operation. The body is the stall document;
    the slug is always derived from its ``name``.
    """
    payload = await _read_payload(request)
    row = await submissions.save(email, payload)
    return {"ok": True, "submission": public_row(row)}


@router.delete("", response_model=DeleteResponse)
async def delete_submission(
    email: str = Depends(get_owner_email),
    submissions: SubmissionStore = Depends(get_submission_store),
) -> dict[str, Any]:
    deleted = await submissions.delete_all(email)
    return {"ok": True, "deleted": deleted}

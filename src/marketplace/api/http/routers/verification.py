from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.marketplace.api.http.deps import get_verification_workflow, require_caller
from src.marketplace.core.models.session import CallerSession
from src.marketplace.core.services import VerificationWorkflow
from src.marketplace.entities.verification_request import VerificationRequest

router = APIRouter(prefix="/verification", tags=["verification"])


class VerificationSubmission(BaseModel):
    full_name: str | None = None
    phone: str | None = None
    additional_info: str | None = None
    id_document_url: str | None = None


@router.post("", status_code=201)
async def submit_verification(
    body: VerificationSubmission,
    caller: CallerSession = Depends(require_caller),
    workflow: VerificationWorkflow = Depends(get_verification_workflow),
) -> VerificationRequest:
    return await workflow.submit_verification(
        caller,
        caller.user_id,
        body.full_name,
        body.phone,
        body.additional_info,
        body.id_document_url,
    )


@router.get("")
async def latest_verification(
    caller: CallerSession = Depends(require_caller),
    workflow: VerificationWorkflow = Depends(get_verification_workflow),
) -> dict[str, Any]:
    """The caller's most recent request, if any."""
    return {"request": await workflow.latest_request(caller)}

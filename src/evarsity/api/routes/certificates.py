"""Certificate endpoints."""

from fastapi import APIRouter, Query, status

from evarsity.api.dependencies import EngineDep
from evarsity.api.models import (
    APIResponse,
    CertificateCreate,
    CertificateResponse,
    certificate_to_response,
)
from evarsity.store.models import CertificateType

router = APIRouter(prefix="/certificates", tags=["certificates"])


@router.get("", response_model=APIResponse[list[CertificateResponse]])
def list_certificates(
    engine: EngineDep,
    student_id: str | None = Query(default=None, description="Filter by student ID"),
    course_id: str | None = Query(default=None, description="Filter by course ID"),
    certificate_type: CertificateType | None = Query(default=None, description="Filter by type"),
) -> APIResponse[list[CertificateResponse]]:
    """List issued certificates."""
    certificates = engine.list_certificates(student_id, course_id, certificate_type)
    return APIResponse(data=[certificate_to_response(c) for c in certificates])


@router.post(
    "",
    response_model=APIResponse[CertificateResponse],
    status_code=status.HTTP_201_CREATED,
)
def issue_certificate(
    request: CertificateCreate, engine: EngineDep
) -> APIResponse[CertificateResponse]:
    """Grant an Excellence or Proficiency certificate.

    Completion certificates are issued automatically and are rejected here.
    """
    certificate = engine.issue_certificate(
        request.student_id, request.course_id, request.certificate_type
    )
    return APIResponse(data=certificate_to_response(certificate))

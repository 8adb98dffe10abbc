from typing import Optional

from fastapi import APIRouter, Depends

from eventra.auth import get_services, require_action
from eventra.models import (
    ApplicationRejectRequest,
    DataEnvelope,
    Identity,
    JobApplication,
    JobPosting,
    JobPostingCreate,
)
from eventra.routers.common import envelope
from eventra.services.container import Services

router = APIRouter(prefix="/provider-freelancer", tags=["provider-freelancer"])


@router.post("/jobs", response_model=DataEnvelope[JobPosting], status_code=201)
def post_job(
    payload: JobPostingCreate,
    owner: Identity = Depends(require_action("job_posting.post")),
    services: Services = Depends(get_services),
):
    return envelope("Job posted successfully", services.job_postings.post(owner, payload))


@router.get("/jobs", response_model=DataEnvelope[list[JobPosting]])
def list_posted_jobs(
    owner: Identity = Depends(require_action("job_posting.manage")),
    services: Services = Depends(get_services),
):
    return envelope("Jobs retrieved successfully", services.job_postings.list_posted(owner))


@router.delete("/jobs/{job_id}")
def delete_posted_job(
    job_id: str,
    owner: Identity = Depends(require_action("job_posting.manage")),
    services: Services = Depends(get_services),
):
    result = services.job_postings.delete_posted(owner, job_id)
    return envelope("Job and associated applications deleted successfully", result)


@router.get("/jobs/{job_id}/applications")
def list_job_applications(
    job_id: str,
    owner: Identity = Depends(require_action("job_posting.manage")),
    services: Services = Depends(get_services),
):
    return envelope("Applications retrieved successfully", services.job_postings.applications_for_job(owner, job_id))


@router.patch("/applications/{application_id}/accept", response_model=DataEnvelope[JobApplication])
def accept_application(
    application_id: str,
    owner: Identity = Depends(require_action("job_posting.manage")),
    services: Services = Depends(get_services),
):
    return envelope("Application accepted successfully", services.job_postings.accept_application(owner, application_id))


@router.patch("/applications/{application_id}/reject", response_model=DataEnvelope[JobApplication])
def reject_application(
    application_id: str,
    payload: Optional[ApplicationRejectRequest] = None,
    owner: Identity = Depends(require_action("job_posting.manage")),
    services: Services = Depends(get_services),
):
    application = services.job_postings.reject_application(owner, application_id, payload.reason if payload else None)
    return envelope("Application rejected successfully", application)


@router.get("/collaborations")
def list_collaborations(
    owner: Identity = Depends(require_action("job_posting.manage")),
    services: Services = Depends(get_services),
):
    return envelope("Collaborations retrieved successfully", services.job_postings.collaborations(owner))

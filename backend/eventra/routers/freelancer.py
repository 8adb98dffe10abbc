from typing import Optional

from fastapi import APIRouter, Depends, Query

from eventra.auth import get_services, require_action
from eventra.models import DataEnvelope, Identity, JobApplication, JobApplicationCreate, JobPosting
from eventra.routers.common import envelope
from eventra.services.container import Services

router = APIRouter(prefix="/freelancer", tags=["freelancer"])


@router.get("/jobs", response_model=DataEnvelope[list[JobPosting]])
def list_jobs(
    category: Optional[str] = Query(default=None),
    location: Optional[str] = Query(default=None),
    rate_min: Optional[float] = Query(default=None),
    rate_max: Optional[float] = Query(default=None),
    freelancer: Identity = Depends(require_action("freelancer.jobs")),
    services: Services = Depends(get_services),
):
    jobs = services.job_postings.list_jobs(category=category, location=location, rate_min=rate_min, rate_max=rate_max)
    return envelope("Jobs retrieved successfully", jobs)


@router.post("/jobs/{job_id}/apply", response_model=DataEnvelope[JobApplication], status_code=201)
def apply_to_job(
    job_id: str,
    payload: JobApplicationCreate,
    freelancer: Identity = Depends(require_action("freelancer.apply")),
    services: Services = Depends(get_services),
):
    return envelope("Application submitted successfully", services.job_postings.apply(freelancer, job_id, payload))


@router.get("/applications")
def list_applications(
    freelancer: Identity = Depends(require_action("freelancer.applications")),
    services: Services = Depends(get_services),
):
    return envelope("Applications retrieved successfully", services.job_postings.list_applications(freelancer))

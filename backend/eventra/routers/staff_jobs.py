from typing import Optional

from fastapi import APIRouter, Depends, Query

from eventra.auth import get_services, require_action
from eventra.models import DataEnvelope, Identity, StaffApplication, StaffJob, StaffJobCreate
from eventra.routers.common import envelope
from eventra.services.container import Services

router = APIRouter(prefix="/staff-jobs", tags=["staff-jobs"])


@router.post("", response_model=DataEnvelope[StaffJob], status_code=201)
def post_staff_job(
    payload: StaffJobCreate,
    provider: Identity = Depends(require_action("staff_job.post")),
    services: Services = Depends(get_services),
):
    return envelope("Staff job posted successfully", services.staff_jobs.post(provider, payload))


@router.get("", response_model=DataEnvelope[list[StaffJob]])
def list_my_staff_jobs(
    provider: Identity = Depends(require_action("staff_job.list_mine")),
    services: Services = Depends(get_services),
):
    return envelope("Staff jobs retrieved successfully", services.staff_jobs.list_mine(provider))


@router.get("/available")
def list_available_staff_jobs(
    location: Optional[str] = Query(default=None),
    jobseeker: Identity = Depends(require_action("staff_job.browse")),
    services: Services = Depends(get_services),
):
    return envelope("Available staff jobs retrieved successfully", services.staff_jobs.available(location=location))


@router.get("/my-applications")
def list_my_applications(
    jobseeker: Identity = Depends(require_action("staff_job.my_applications")),
    services: Services = Depends(get_services),
):
    return envelope("Applications retrieved successfully", services.staff_jobs.my_applications(jobseeker))


@router.post("/{job_id}/apply", response_model=DataEnvelope[StaffApplication], status_code=201)
def apply_to_staff_job(
    job_id: str,
    jobseeker: Identity = Depends(require_action("staff_job.apply")),
    services: Services = Depends(get_services),
):
    return envelope("Application submitted successfully", services.staff_jobs.apply(jobseeker, job_id))


@router.get("/{job_id}/applications")
def list_job_applications(
    job_id: str,
    provider: Identity = Depends(require_action("staff_job.applications")),
    services: Services = Depends(get_services),
):
    return envelope("Applications retrieved successfully", services.staff_jobs.applications(provider, job_id))


@router.patch("/applications/{application_id}/approve", response_model=DataEnvelope[StaffApplication])
def approve_application(
    application_id: str,
    provider: Identity = Depends(require_action("staff_job.decide")),
    services: Services = Depends(get_services),
):
    return envelope("Application approved successfully", services.staff_jobs.approve(provider, application_id))


@router.patch("/applications/{application_id}/disapprove", response_model=DataEnvelope[StaffApplication])
def disapprove_application(
    application_id: str,
    provider: Identity = Depends(require_action("staff_job.decide")),
    services: Services = Depends(get_services),
):
    return envelope("Application disapproved successfully", services.staff_jobs.disapprove(provider, application_id))


@router.delete("/{job_id}")
def delete_staff_job(
    job_id: str,
    provider: Identity = Depends(require_action("staff_job.delete")),
    services: Services = Depends(get_services),
):
    return envelope("Staff job deleted successfully", services.staff_jobs.delete(provider, job_id))

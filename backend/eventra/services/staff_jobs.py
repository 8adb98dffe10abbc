import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from eventra.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from eventra.models import Identity, StaffApplication, StaffJob, StaffJobCreate
from eventra.services.clock import parse_iso, to_iso, utc_now, utc_now_iso
from eventra.services.document_store import DocumentStore
from eventra.services.locks import KeyedLock
from eventra.services.notification_service import NotificationService
from eventra.services.pagination import newest_first

logger = logging.getLogger(__name__)

JOBS = "staff_jobs"
APPLICATIONS = "staff_applications"
MAX_SPOTS = 100
DEFAULT_SHIFT = timedelta(hours=4)


def _provider_summary(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not user:
        return None
    return {"name": user.get("name"), "businessName": user.get("businessName"), "location": user.get("location")}


def _jobseeker_summary(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not user:
        return None
    return {
        "name": user.get("name"),
        "phone": user.get("phone"),
        "email": user.get("email"),
        "location": user.get("location"),
        "skills": user.get("skills") or [],
        "experience": user.get("experience"),
    }


def has_open_spots(job: Dict[str, Any]) -> bool:
    return int(job.get("spotsApproved") or 0) < int(job.get("spotsNeeded") or 0)


class StaffJobService:
    def __init__(self, store: DocumentStore, notifications: NotificationService, locks: KeyedLock):
        self._store = store
        self._notifications = notifications
        self._locks = locks

    def post(self, provider: Identity, request: StaffJobCreate) -> StaffJob:
        if not request.job_name or not request.job_name.strip() or not request.date_time or request.pay is None or request.spots_needed is None:
            raise ValidationError("Missing required fields: jobName, dateTime, pay, spotsNeeded")
        try:
            starts_at = parse_iso(request.date_time)
        except ValueError:
            raise ValidationError("Invalid date format. Please provide a valid ISO date string.")
        if starts_at <= utc_now():
            raise ValidationError("Job date must be in the future")
        if request.pay <= 0:
            raise ValidationError("Pay must be a positive number")
        if not 1 <= request.spots_needed <= MAX_SPOTS:
            raise ValidationError(f"Spots needed must be a positive integer between 1 and {MAX_SPOTS}")

        if request.end_date_time:
            try:
                end_date_time = to_iso(parse_iso(request.end_date_time))
            except ValueError:
                raise ValidationError("Invalid date format. Please provide a valid ISO date string.")
        else:
            end_date_time = to_iso(starts_at + DEFAULT_SHIFT)

        now = utc_now_iso()
        job = {
            "providerId": provider.uid,
            "jobName": request.job_name.strip(),
            "dateTime": to_iso(starts_at),
            "endDateTime": end_date_time,
            "pay": float(request.pay),
            "spotsNeeded": request.spots_needed,
            "spotsApplied": 0,
            "spotsApproved": 0,
            "location": request.location or "",
            "status": "active",
            "createdAt": now,
            "updatedAt": now,
        }
        job_id = self._store.create(JOBS, job)
        logger.info("Staff job %s posted by %s", job_id, provider.uid)
        return StaffJob.from_document({"id": job_id, **job})

    def list_mine(self, provider: Identity) -> List[StaffJob]:
        rows = [job for job in self._store.list(JOBS) if job.get("providerId") == provider.uid]
        return [StaffJob.from_document(job) for job in newest_first(rows)]

    def available(self, *, location: Optional[str] = None) -> List[Dict[str, Any]]:
        rows = [job for job in self._store.list(JOBS) if job.get("status") == "active" and has_open_spots(job)]
        if location:
            rows = [job for job in rows if location.lower() in str(job.get("location") or "").lower()]
        return [
            {**job, "provider": _provider_summary(self._store.get("users", job.get("providerId") or ""))}
            for job in newest_first(rows)
        ]

    def apply(self, jobseeker: Identity, job_id: str) -> StaffApplication:
        with self._locks.hold(f"staff_job:{job_id}"):
            job = self._store.get(JOBS, job_id)
            if not job or job.get("status") != "active":
                raise NotFoundError("Job not found or no longer active")
            if not has_open_spots(job):
                raise InvalidStateError("No more spots available for this job")
            for application in self._store.list(APPLICATIONS):
                if application.get("jobId") == job_id and application.get("jobseekerId") == jobseeker.uid:
                    raise ConflictError("You have already applied to this job", status_code=400)

            now = utc_now_iso()
            application = {
                "jobId": job_id,
                "jobseekerId": jobseeker.uid,
                "providerId": job.get("providerId"),
                "status": "pending",
                "appliedAt": now,
                "createdAt": now,
            }
            application_id = self._store.create(APPLICATIONS, application)
            self._store.update(JOBS, job_id, {"spotsApplied": int(job.get("spotsApplied") or 0) + 1, "updatedAt": now})

        logger.info("Jobseeker %s applied to staff job %s", jobseeker.uid, job_id)
        return StaffApplication.from_document({"id": application_id, **application})

    def _owned_job(self, provider: Identity, job_id: str) -> Dict[str, Any]:
        job = self._store.get(JOBS, job_id)
        if not job:
            raise NotFoundError("Job not found")
        if job.get("providerId") != provider.uid:
            raise ForbiddenError("Unauthorized")
        return job

    def applications(self, provider: Identity, job_id: str) -> List[Dict[str, Any]]:
        self._owned_job(provider, job_id)
        rows = [a for a in self._store.list(APPLICATIONS) if a.get("jobId") == job_id]
        return [
            {**a, "jobseeker": _jobseeker_summary(self._store.get("users", a.get("jobseekerId") or ""))}
            for a in newest_first(rows, "appliedAt")
        ]

    def _owned_application(self, provider: Identity, application_id: str) -> Dict[str, Any]:
        application = self._store.get(APPLICATIONS, application_id)
        if not application:
            raise NotFoundError("Application not found")
        if application.get("providerId") != provider.uid:
            raise ForbiddenError("Unauthorized")
        return application

    def approve(self, provider: Identity, application_id: str) -> StaffApplication:
        application = self._owned_application(provider, application_id)
        job_id = application.get("jobId") or ""
        with self._locks.hold(f"staff_job:{job_id}"):
            job = self._store.get(JOBS, job_id)
            if not job:
                raise NotFoundError("Job not found")
            if not has_open_spots(job):
                raise InvalidStateError("No more spots available for this job")
            current = self._store.get(APPLICATIONS, application_id) or application
            if current.get("status") == "approved":
                raise InvalidStateError("Application is already approved")

            now = utc_now_iso()
            update = {"status": "approved", "approvedAt": now, "updatedAt": now}
            self._store.update(APPLICATIONS, application_id, update)
            self._store.update(JOBS, job_id, {"spotsApproved": int(job.get("spotsApproved") or 0) + 1, "updatedAt": now})

        self._notifications.notify(
            application.get("jobseekerId"),
            type="job_approved",
            title="Job Application Approved",
            message="You're in.",
            data={"jobId": job_id, "applicationId": application_id},
        )
        return StaffApplication.from_document({**current, **update})

    def disapprove(self, provider: Identity, application_id: str) -> StaffApplication:
        application = self._owned_application(provider, application_id)
        now = utc_now_iso()
        update = {"status": "disapproved", "disapprovedAt": now, "updatedAt": now}
        self._store.update(APPLICATIONS, application_id, update)
        self._notifications.notify(
            application.get("jobseekerId"),
            type="job_disapproved",
            title="Job Application Update",
            message="Your application was not selected this time.",
            data={"jobId": application.get("jobId"), "applicationId": application_id},
        )
        return StaffApplication.from_document({**application, **update})

    def my_applications(self, jobseeker: Identity) -> List[Dict[str, Any]]:
        rows = []
        for application in self._store.list(APPLICATIONS):
            if application.get("jobseekerId") != jobseeker.uid:
                continue
            job = self._store.get(JOBS, application.get("jobId") or "")
            provider = self._store.get("users", job.get("providerId") or "") if job else None
            rows.append({**application, "job": job, "provider": _provider_summary(provider)})
        return newest_first(rows, "appliedAt")

    def delete(self, provider: Identity, job_id: str) -> Dict[str, Any]:
        """Deletes the job first, then each application in turn.

        The cascade is not transactional: a failed application delete stops the
        loop and the ids still on disk are reported back.
        """
        self._owned_job(provider, job_id)
        application_ids = [a["id"] for a in self._store.list(APPLICATIONS) if a.get("jobId") == job_id]
        self._store.delete(JOBS, job_id)
        logger.info("staff_job_delete step=job_deleted job=%s applications=%d", job_id, len(application_ids))

        deleted = 0
        for application_id in application_ids:
            try:
                self._store.delete(APPLICATIONS, application_id)
            except Exception:
                logger.exception("staff_job_delete step=application_failed job=%s application=%s", job_id, application_id)
                break
            deleted += 1
            logger.info("staff_job_delete step=application_deleted job=%s application=%s", job_id, application_id)
        return {"id": job_id, "deletedApplications": deleted, "remainingApplications": application_ids[deleted:]}

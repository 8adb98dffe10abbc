import logging
from typing import Any, Dict, List, Optional

from eventra.errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from eventra.models import Identity, JobApplication, JobApplicationCreate, JobPosting, JobPostingCreate
from eventra.services.clock import utc_now_iso
from eventra.services.document_store import DocumentStore
from eventra.services.locks import KeyedLock
from eventra.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

POSTINGS = "job_postings"
APPLICATIONS = "job_applications"
COLLABORATIONS = "collaborations"


def posting_from_bid_request(bid_request: Dict[str, Any], request_id: str) -> Dict[str, Any]:
    event_type = bid_request.get("eventType")
    now = utc_now_iso()
    return {
        # The customer who posted the opportunity; no provider is attached yet.
        "providerId": bid_request.get("customerId"),
        "title": bid_request.get("eventName") or f"{event_type} Event",
        "description": bid_request.get("requirements") or f"{event_type} event on {bid_request.get('eventDate')}",
        "category": event_type or "other",
        "location": bid_request.get("location") or "",
        "hourlyRate": None,
        "duration": "Per event",
        "requirements": [],
        "startDate": bid_request.get("eventDate"),
        "endDate": None,
        "status": "active",
        "bidRequestId": request_id,
        "createdAt": now,
        "updatedAt": now,
    }


def _rate(job: Dict[str, Any]) -> float:
    try:
        return float(job.get("hourlyRate") or 0)
    except (TypeError, ValueError):
        return 0.0


def _freelancer_summary(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not user:
        return None
    return {
        "name": user.get("name"),
        "email": user.get("email"),
        "location": user.get("location"),
        "skills": user.get("skills") or [],
        "rating": user.get("rating"),
    }


class JobPostingService:
    def __init__(self, store: DocumentStore, locks: KeyedLock, notifications: Optional[NotificationService] = None):
        self._store = store
        self._locks = locks
        self._notifications = notifications

    def ensure_for_bid_request(self, bid_request: Dict[str, Any], request_id: str) -> str:
        """Creates the posting linked to a bid request unless one already exists."""
        with self._locks.hold(f"job_posting:{request_id}"):
            for job in self._store.list(POSTINGS):
                if job.get("bidRequestId") == request_id:
                    return job["id"]
            posting_id = self._store.create(POSTINGS, posting_from_bid_request(bid_request, request_id))
        logger.info("Created freelancer job posting %s for bid request %s", posting_id, request_id)
        return posting_id

    def _backfill(self, jobs: List[Dict[str, Any]]) -> None:
        linked = {job.get("bidRequestId") for job in jobs if job.get("bidRequestId")}
        for bid_request in self._store.list("bidRequests"):
            if bid_request.get("status") != "open" or bid_request.get("needWholeTeam") is not False:
                continue
            if bid_request["id"] in linked:
                continue
            posting_id = self.ensure_for_bid_request(bid_request, bid_request["id"])
            created = self._store.get(POSTINGS, posting_id)
            if created:
                jobs.append(created)
            linked.add(bid_request["id"])

    def list_jobs(
        self,
        *,
        category: Optional[str] = None,
        location: Optional[str] = None,
        rate_min: Optional[float] = None,
        rate_max: Optional[float] = None,
    ) -> List[JobPosting]:
        jobs = self._store.list(POSTINGS)
        try:
            self._backfill(jobs)
        except Exception:
            logger.exception("Backfill of freelancer jobs from bid requests failed")

        rows = [job for job in jobs if job.get("status") == "active"]
        if category:
            rows = [job for job in rows if category.lower() in str(job.get("category") or "").lower()]
        if location:
            rows = [job for job in rows if location.lower() in str(job.get("location") or "").lower()]
        if rate_min is not None:
            rows = [job for job in rows if _rate(job) >= rate_min]
        if rate_max is not None:
            rows = [job for job in rows if _rate(job) <= rate_max]
        return [JobPosting.from_document(job) for job in rows]

    def apply(self, freelancer: Identity, job_id: str, request: JobApplicationCreate) -> JobApplication:
        job = self._store.get(POSTINGS, job_id)
        if not job:
            raise NotFoundError("Job not found")
        if job.get("status") != "active":
            raise InvalidStateError("This job is no longer accepting applications")
        with self._locks.hold(f"job_application:{job_id}:{freelancer.uid}"):
            for application in self._store.list(APPLICATIONS):
                if application.get("jobId") == job_id and application.get("freelancerId") == freelancer.uid:
                    raise ConflictError("You have already applied to this job", status_code=400)
            now = utc_now_iso()
            application = {
                "jobId": job_id,
                "freelancerId": freelancer.uid,
                "coverLetter": request.cover_letter,
                "proposedRate": request.proposed_rate,
                "availability": request.availability,
                "status": "pending",
                "appliedAt": now,
                "createdAt": now,
            }
            application_id = self._store.create(APPLICATIONS, application)
        return JobApplication.from_document({"id": application_id, **application})

    def list_applications(self, freelancer: Identity) -> List[Dict[str, Any]]:
        rows = []
        for application in self._store.list(APPLICATIONS):
            if application.get("freelancerId") != freelancer.uid:
                continue
            rows.append({**application, "job": self._store.get(POSTINGS, application["jobId"])})
        return rows

    # Posting owners

    def post(self, owner: Identity, request: JobPostingCreate) -> JobPosting:
        if not request.title or not request.title.strip():
            raise ValidationError("Title is required")
        now = utc_now_iso()
        job = {
            "providerId": owner.uid,
            "title": request.title.strip(),
            "description": request.description or "",
            "category": request.category or "other",
            "location": request.location or "",
            "hourlyRate": request.hourly_rate,
            "monthlyPay": request.monthly_pay,
            "duration": request.duration or "",
            "requirements": request.requirements,
            "startDate": request.start_date,
            "endDate": request.end_date,
            "startHour": request.start_hour,
            "endHour": request.end_hour,
            "status": "active",
            "createdAt": now,
            "updatedAt": now,
        }
        job_id = self._store.create(POSTINGS, job)
        logger.info("Job posting %s created by %s", job_id, owner.uid)
        return JobPosting.from_document({"id": job_id, **job})

    def list_posted(self, owner: Identity) -> List[JobPosting]:
        return [JobPosting.from_document(job) for job in self._store.list(POSTINGS) if job.get("providerId") == owner.uid]

    def _owned_posting(self, owner: Identity, job_id: str) -> Dict[str, Any]:
        job = self._store.get(POSTINGS, job_id)
        if not job or job.get("providerId") != owner.uid:
            raise NotFoundError("Job not found")
        return job

    def delete_posted(self, owner: Identity, job_id: str) -> Dict[str, Any]:
        job = self._store.get(POSTINGS, job_id)
        if not job:
            raise NotFoundError("Job not found")
        if job.get("providerId") != owner.uid:
            raise ForbiddenError("You can only delete your own jobs")
        self._store.delete(POSTINGS, job_id)
        deleted = 0
        for application in self._store.list(APPLICATIONS):
            if application.get("jobId") == job_id:
                self._store.delete(APPLICATIONS, application["id"])
                deleted += 1
        logger.info("Job posting %s deleted with %d applications", job_id, deleted)
        return {"id": job_id, "deletedApplications": deleted}

    def applications_for_job(self, owner: Identity, job_id: str) -> List[Dict[str, Any]]:
        self._owned_posting(owner, job_id)
        return [
            {**application, "freelancer": _freelancer_summary(self._store.get("users", application.get("freelancerId")))}
            for application in self._store.list(APPLICATIONS)
            if application.get("jobId") == job_id
        ]

    def _decide(self, owner: Identity, application_id: str, status: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        with self._locks.hold(f"job_review:{application_id}"):
            application = self._store.get(APPLICATIONS, application_id)
            if not application:
                raise NotFoundError("Application not found")
            job = self._store.get(POSTINGS, application.get("jobId"))
            if not job or job.get("providerId") != owner.uid:
                raise ForbiddenError("Unauthorized")
            if application.get("status") != "pending":
                raise InvalidStateError("Only pending applications can be accepted or rejected")
            update = {"status": status, **fields, "updatedAt": utc_now_iso()}
            self._store.update(APPLICATIONS, application_id, update)
        return {**application, **update, "job": job}

    def accept_application(self, owner: Identity, application_id: str) -> JobApplication:
        now = utc_now_iso()
        decided = self._decide(owner, application_id, "accepted", {"acceptedAt": now})
        job = decided.pop("job")
        collaboration_id = self._store.create(
            COLLABORATIONS,
            {
                "providerId": owner.uid,
                "freelancerId": decided["freelancerId"],
                "jobId": decided["jobId"],
                "status": "active",
                "startDate": now,
                "createdAt": now,
            },
        )
        logger.info("Application %s accepted; collaboration %s started", application_id, collaboration_id)
        self._notify(
            decided["freelancerId"],
            type="application_accepted",
            title="Application Accepted!",
            message=f"Your application for {job.get('title')} has been accepted",
            data={"jobId": decided["jobId"], "applicationId": application_id, "collaborationId": collaboration_id},
        )
        return JobApplication.from_document(decided)

    def reject_application(self, owner: Identity, application_id: str, reason: Optional[str] = None) -> JobApplication:
        decided = self._decide(
            owner,
            application_id,
            "rejected",
            {"rejectedAt": utc_now_iso(), "rejectionReason": reason or "Application rejected"},
        )
        job = decided.pop("job")
        self._notify(
            decided["freelancerId"],
            type="application_rejected",
            title="Application Update",
            message=f"Your application for {job.get('title')} was not selected",
            data={"jobId": decided["jobId"], "applicationId": application_id},
        )
        return JobApplication.from_document(decided)

    def collaborations(self, owner: Identity) -> List[Dict[str, Any]]:
        return [
            {
                **collaboration,
                "freelancer": _freelancer_summary(self._store.get("users", collaboration.get("freelancerId"))),
                "job": self._store.get(POSTINGS, collaboration.get("jobId")),
            }
            for collaboration in self._store.list(COLLABORATIONS)
            if collaboration.get("providerId") == owner.uid
        ]

    def _notify(self, user_id: str, **notification: Any) -> None:
        if self._notifications is not None:
            self._notifications.notify(user_id, **notification)

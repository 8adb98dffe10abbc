from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")

UserRole = Literal[
    "customer",
    "event_company",
    "caterer",
    "transport",
    "photographer",
    "freelancer",
    "jobseeker",
    "admin",
]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentModel(CamelModel):
    """Stored documents are loosely typed; unknown fields pass through untouched."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    @classmethod
    def from_document(cls, doc: Dict[str, Any]):
        return cls.model_validate(doc)


# Requests


class AuthLoginRequest(CamelModel):
    user_id: str
    password: str = "eventra-demo"


class UserProfileCreate(CamelModel):
    name: str
    email: str = ""
    role: UserRole
    categories: List[str] = Field(default_factory=list)
    business_name: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    skills: List[str] = Field(default_factory=list)


class BookNowRequest(CamelModel):
    service_id: Optional[str] = None
    provider_id: Optional[str] = None
    event_date: Optional[str] = None
    event_time: Optional[str] = None
    location: Optional[str] = None
    budget: Optional[float] = None
    guest_count: Optional[int] = None
    requirements: Optional[str] = None
    event_name: Optional[str] = None
    event_type: Optional[str] = None


class BookingStatusRequest(CamelModel):
    status: Optional[str] = None
    notes: Optional[str] = None


class BidRequestCreate(CamelModel):
    event_name: Optional[str] = None
    event_type: Optional[str] = None
    event_date: Optional[str] = None
    location: Optional[str] = None
    budget: Optional[float] = None
    guest_count: Optional[int] = None
    requirements: Optional[str] = None
    services_needed: List[str] = Field(default_factory=list)
    preferred_categories: List[str] = Field(default_factory=list)
    need_whole_team: bool = False


class BidSubmitRequest(CamelModel):
    price: Optional[float] = None
    description: Optional[str] = None
    estimated_time: Optional[str] = None
    additional_services: List[str] = Field(default_factory=list)


class BidActionRequest(CamelModel):
    action: Optional[str] = None


class StaffJobCreate(CamelModel):
    job_name: Optional[str] = None
    date_time: Optional[str] = None
    end_date_time: Optional[str] = None
    pay: Optional[float] = None
    spots_needed: Optional[int] = None
    location: Optional[str] = None


class JobApplicationCreate(CamelModel):
    cover_letter: Optional[str] = None
    proposed_rate: Optional[float] = None
    availability: Optional[str] = None


class JobPostingCreate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    hourly_rate: Optional[float] = None
    monthly_pay: Optional[float] = None
    duration: Optional[str] = None
    requirements: List[str] = Field(default_factory=list)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    start_hour: Optional[str] = None
    end_hour: Optional[str] = None


class ApplicationRejectRequest(CamelModel):
    reason: Optional[str] = None


class ServiceCreate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    duration: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)


class ServiceStatusRequest(CamelModel):
    is_active: bool


class NotificationCreate(CamelModel):
    user_id: Optional[str] = None
    type: Optional[str] = None
    title: Optional[str] = None
    message: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class DeviceTokenRegisterRequest(CamelModel):
    device_token: str
    platform: Literal["android", "ios", "web"] = "android"


# Stored documents


class UserProfile(DocumentModel):
    id: str
    name: str = ""
    email: str = ""
    role: str
    approved: bool = False
    categories: List[str] = Field(default_factory=list)


class ServiceListing(DocumentModel):
    id: str
    provider_id: str
    name: str
    description: str = ""
    price: float
    duration: str = ""
    category: str
    features: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    is_active: bool = True
    bookings: int = 0
    rating: float = 0
    reviews: int = 0
    created_at: str
    updated_at: str


class ScheduleEntry(CamelModel):
    id: str
    status: str
    event_date: Optional[str] = None
    event_time: Optional[str] = None
    location: Optional[str] = None
    guest_count: Optional[int] = None
    budget: Optional[float] = None
    event_name: Optional[str] = None
    created_at: Optional[str] = None


class Booking(DocumentModel):
    id: str
    customer_id: str
    provider_id: str
    service_id: Optional[str] = None
    event_name: str = ""
    event_type: str = ""
    event_date: str
    event_time: Optional[str] = None
    location: str = ""
    budget: Optional[float] = None
    guest_count: int = 0
    requirements: str = ""
    price: Optional[float] = None
    status: str
    created_at: str
    updated_at: str


class Bid(DocumentModel):
    bid_id: str
    provider_id: str
    provider_name: str = ""
    provider_role: str = ""
    price: float
    description: str
    estimated_time: str = ""
    additional_services: List[str] = Field(default_factory=list)
    status: str
    submitted_at: str
    updated_at: Optional[str] = None


class BidRequestSummary(DocumentModel):
    id: str
    customer_id: str
    event_name: str
    event_type: str
    event_date: str
    location: str
    budget: Optional[float] = None
    guest_count: int = 0
    requirements: str = ""
    services_needed: List[str] = Field(default_factory=list)
    preferred_categories: List[str] = Field(default_factory=list)
    need_whole_team: bool = False
    status: str
    created_at: str
    updated_at: str


class BidRequest(BidRequestSummary):
    bids: List[Bid] = Field(default_factory=list)


class ProviderBidRequest(BidRequest):
    provider_bid: Optional[Bid] = None
    has_provider_bid: bool = False
    bid_count: int = 0


class JobPosting(DocumentModel):
    id: str
    provider_id: str
    title: str
    description: str = ""
    category: str = "other"
    location: str = ""
    hourly_rate: Optional[float] = None
    duration: str = ""
    requirements: List[str] = Field(default_factory=list)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    status: str
    bid_request_id: Optional[str] = None


class JobApplication(DocumentModel):
    id: str
    job_id: str
    freelancer_id: str
    status: str
    applied_at: str


class StaffJob(DocumentModel):
    id: str
    provider_id: str
    job_name: str
    date_time: str
    end_date_time: str
    pay: float
    spots_needed: int
    spots_applied: int = 0
    spots_approved: int = 0
    status: str
    created_at: str
    updated_at: str


class StaffApplication(DocumentModel):
    id: str
    job_id: str
    jobseeker_id: str
    provider_id: str
    status: str
    applied_at: str


class NotificationRecord(DocumentModel):
    id: str
    user_id: str
    type: str
    title: str
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    read: bool = False
    created_at: str
    read_at: Optional[str] = None


# Envelopes


class Pagination(BaseModel):
    page: int
    limit: int
    total: int


class DataEnvelope(BaseModel, Generic[T]):
    message: str
    data: T


class PageEnvelope(BaseModel, Generic[T]):
    message: str
    data: List[T]
    pagination: Pagination


class AuthLoginResponse(CamelModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    user_id: str
    expires_at: str


class Identity(CamelModel):
    uid: str
    email: str = ""
    name: str = ""
    role: str
    approved: bool = False

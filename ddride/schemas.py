"""
Pydantic Schemas for the DDRide API.
Request and Response models shared across routers.
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime
from enum import Enum


# ============================================
# ENUMS
# ============================================
class TrustStatus(str, Enum):
    none = "none"
    active = "active"
    revoked = "revoked"


class RideStatus(str, Enum):
    accepted = "accepted"
    picked_up = "picked_up"
    completed = "completed"
    cancelled = "cancelled"


# ============================================
# GROUP SCHEMAS
# ============================================
class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    access_code: str = Field(..., min_length=1, max_length=50)


class GroupJoin(BaseModel):
    access_code: str = Field(..., min_length=1, description="Code shared by the group's admins")


class GroupOut(BaseModel):
    id: int
    name: str
    access_code: str
    created_at: datetime

    class Config:
        from_attributes = True


# ============================================
# EVENT SCHEMAS
# ============================================
class EventCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    location_text: str = Field(..., min_length=1)
    date_time: datetime
    description: Optional[str] = None


class EventOut(BaseModel):
    id: int
    group_id: int
    name: str
    description: Optional[str] = None
    location_text: str
    date_time: datetime
    status: str
    created_by_user_id: int

    class Config:
        from_attributes = True


# ============================================
# DRIVER SCHEMAS
# ============================================
class OptInRequest(BaseModel):
    car_make: Optional[str] = Field(None, max_length=100)
    car_model: Optional[str] = Field(None, max_length=100)
    car_plate: Optional[str] = Field(None, max_length=20)


class DriverProfileOut(BaseModel):
    user_id: int
    trust_status: str
    car_make: Optional[str] = None
    car_model: Optional[str] = None
    car_plate: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DriverRequestCreate(BaseModel):
    event_id: int


class DriverRequestOut(BaseModel):
    id: int
    event_id: int
    user_id: int
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class AssignmentOut(BaseModel):
    id: int
    event_id: int
    user_id: int
    status: str
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AvailableDriver(BaseModel):
    user_id: int
    name: str
    phone_number: Optional[str] = None
    car_make: Optional[str] = None
    car_model: Optional[str] = None
    car_plate: Optional[str] = None
    session_id: int
    session_started_at: datetime


# ============================================
# VERIFICATION SCHEMAS
# ============================================
class BaselineCreate(BaseModel):
    reaction_latency_ms: float = Field(..., gt=0)
    phrase_duration_sec: float = Field(..., gt=0)
    image_base64: str = Field(..., description="Base64-encoded photo")
    content_type: str = "image/jpeg"
    phrase_audio_base64: Optional[str] = Field(None, description="Base64-encoded recording of the spoken phrase")
    audio_content_type: str = "audio/m4a"


class BaselineOut(BaseModel):
    id: int
    user_id: int
    reaction_latency_ms: float
    phrase_duration_sec: float
    image_ref: str
    phrase_audio_ref: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AttemptCreate(BaseModel):
    event_id: Optional[int] = None
    reaction_latency_ms: float = Field(..., gt=0)
    phrase_duration_sec: float = Field(..., gt=0)
    image_base64: str = Field(..., description="Base64-encoded photo")
    content_type: str = "image/jpeg"
    phrase_audio_base64: Optional[str] = Field(None, description="Base64-encoded recording of the spoken phrase")
    audio_content_type: str = "audio/m4a"

    class Config:
        json_schema_extra = {
            "example": {
                "event_id": 12,
                "reaction_latency_ms": 480,
                "phrase_duration_sec": 3.1,
                "image_base64": "<base64>",
                "content_type": "image/jpeg"
            }
        }


class AttemptOut(BaseModel):
    id: int
    user_id: int
    event_id: Optional[int] = None
    reaction_latency_ms: float
    phrase_duration_sec: float
    image_ref: str
    phrase_audio_ref: Optional[str] = None
    outcome: str
    created_at: datetime

    class Config:
        from_attributes = True


class EvaluationOut(BaseModel):
    passed: bool
    reaction_ok: bool
    phrase_ok: bool
    reaction_delta: float
    phrase_delta: float
    measured: Dict[str, float]
    baseline: Dict[str, float]
    tolerance: Dict[str, float]


class AttemptResult(BaseModel):
    attempt: AttemptOut
    evaluation: EvaluationOut
    trust_status: TrustStatus


# ============================================
# SESSION SCHEMAS
# ============================================
class SessionStart(BaseModel):
    attempt_id: int


class SessionOut(BaseModel):
    id: int
    user_id: int
    event_id: int
    attempt_id: Optional[int] = None
    started_at: datetime
    ended_at: Optional[datetime] = None
    is_active: bool

    class Config:
        from_attributes = True


# ============================================
# RIDE SCHEMAS
# ============================================
class RideRequestCreate(BaseModel):
    driver_user_id: int
    event_id: int
    pickup_text: str
    pickup_latitude: Optional[float] = None
    pickup_longitude: Optional[float] = None


class RideAdvance(BaseModel):
    status: RideStatus


class RideRequestOut(BaseModel):
    id: int
    driver_user_id: int
    rider_user_id: int
    event_id: int
    pickup_text: str
    pickup_latitude: Optional[float] = None
    pickup_longitude: Optional[float] = None
    status: str
    created_at: datetime
    accepted_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QueuedRide(RideRequestOut):
    distance_miles: Optional[float] = None


class DriverQueue(BaseModel):
    pending: List[QueuedRide]
    accepted: List[RideRequestOut]
    active_ride: Optional[RideRequestOut] = None


# ============================================
# ADMIN SCHEMAS
# ============================================
class AdjudicationRequest(BaseModel):
    event_id: int


class ApprovalOut(BaseModel):
    request: DriverRequestOut
    assignment: AssignmentOut


class ReinstateOut(BaseModel):
    user_id: int
    trust_status: TrustStatus
    assignment: AssignmentOut
    alerts_resolved: int


class FinalizeOut(BaseModel):
    user_id: int
    trust_status: TrustStatus
    alerts_resolved: int


class AlertOut(BaseModel):
    id: int
    type: str
    user_id: int
    user_name: str
    event_id: Optional[int] = None
    attempt_id: int
    created_at: datetime
    measured: Dict[str, float]
    baseline: Optional[Dict[str, float]] = None


class ReconcileOut(BaseModel):
    task_id: str
    status: str = "queued"

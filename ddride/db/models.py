"""
SQLAlchemy ORM Models for the DDRide service
"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, Float, Boolean, DateTime,
    ForeignKey, UniqueConstraint, Index, text
)
from sqlalchemy.orm import relationship
from ddride.db.database import Base


# Trust status values (driver_profiles.trust_status)
TRUST_NONE = "none"
TRUST_ACTIVE = "active"
TRUST_REVOKED = "revoked"

# Ride request statuses that still hold the rider's per-event slot
RIDE_ACTIVE_STATUSES = ("pending", "accepted", "picked_up")
RIDE_TERMINAL_STATUSES = ("completed", "cancelled")

ALERT_VERIFY_FAIL = "VERIFY_FAIL"


class Group(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    access_code = Column(String(50), unique=True, nullable=False)  # stored upper-case
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    members = relationship("User", back_populates="group")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="member")  # admin, member
    phone_number = Column(String(50))
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="SET NULL"), index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    driver_profile = relationship("DriverProfile", back_populates="user", uselist=False)
    group = relationship("Group", back_populates="members")


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    location_text = Column(Text, nullable=False)
    date_time = Column(DateTime, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="upcoming")  # upcoming, active, completed
    created_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class DriverProfile(Base):
    __tablename__ = "driver_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    trust_status = Column(String(20), nullable=False, default=TRUST_NONE, index=True)
    car_make = Column(String(100))
    car_model = Column(String(100))
    car_plate = Column(String(20))
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="driver_profile")


class Baseline(Base):
    __tablename__ = "verification_baselines"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    reaction_latency_ms = Column(Float, nullable=False)
    phrase_duration_sec = Column(Float, nullable=False)
    image_ref = Column(Text, nullable=False)
    phrase_audio_ref = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)


class Attempt(Base):
    __tablename__ = "verification_attempts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"))
    reaction_latency_ms = Column(Float, nullable=False)
    phrase_duration_sec = Column(Float, nullable=False)
    image_ref = Column(Text, nullable=False)
    phrase_audio_ref = Column(Text)
    outcome = Column(String(10), nullable=False)  # pass, fail
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class Assignment(Base):
    __tablename__ = "driver_assignments"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="assigned")  # assigned, revoked
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="unique_event_user_assignment"),
    )


class DriverRequest(Base):
    __tablename__ = "driver_requests"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending")  # pending, approved, rejected
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="unique_event_user_request"),
    )


class DriverSession(Base):
    __tablename__ = "driver_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    attempt_id = Column(Integer, ForeignKey("verification_attempts.id"), unique=True)
    started_at = Column(DateTime, default=datetime.utcnow)
    ended_at = Column(DateTime)
    is_active = Column(Boolean, nullable=False, default=True, index=True)


class RideRequest(Base):
    __tablename__ = "ride_requests"

    id = Column(Integer, primary_key=True, index=True)
    driver_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    rider_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    pickup_text = Column(Text, nullable=False)
    pickup_latitude = Column(Float)
    pickup_longitude = Column(Float)
    status = Column(String(20), nullable=False, default="pending", index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    accepted_at = Column(DateTime)
    picked_up_at = Column(DateTime)
    completed_at = Column(DateTime)

    # One non-terminal request per rider per event; history rows are exempt
    __table_args__ = (
        Index(
            "unique_active_ride_request",
            "rider_user_id",
            "event_id",
            unique=True,
            postgresql_where=text("status IN ('pending', 'accepted', 'picked_up')"),
            sqlite_where=text("status IN ('pending', 'accepted', 'picked_up')"),
        ),
    )


class AdminAlert(Base):
    __tablename__ = "admin_alerts"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(50), nullable=False, default=ALERT_VERIFY_FAIL)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), index=True)
    attempt_id = Column(Integer, ForeignKey("verification_attempts.id"), unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    resolved_by_admin_id = Column(Integer, ForeignKey("users.id"))
    resolved_at = Column(DateTime, index=True)

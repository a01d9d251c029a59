"""
Services package - Business logic layer
"""
from ddride.services.storage_service import storage_service
from ddride.services.event_service import event_service
from ddride.services.trust_service import trust_service
from ddride.services.verification_service import verification_service
from ddride.services.adjudication_service import adjudication_service
from ddride.services.session_service import session_service
from ddride.services.ride_service import ride_service

__all__ = [
    "storage_service",
    "event_service",
    "trust_service",
    "verification_service",
    "adjudication_service",
    "session_service",
    "ride_service"
]

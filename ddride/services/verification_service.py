"""
Verification Service - baseline enrollment and pre-session attempts

Flow for an attempt:
1. Validate input and load the baseline (nothing is written on failure)
2. Evaluate against the baseline
3. Store the photo (and phrase recording, if sent) and append the Attempt
4. On fail, run the revocation cascade; an incomplete cascade is logged for
   operators and never hides the fail result from the driver
"""
import base64
import binascii
import logging
import math
from typing import Dict, Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ddride.db.models import Attempt, Baseline
from ddride.errors import ValidationError, ConflictError, PartialCascadeError
from ddride.services.evaluator import evaluate
from ddride.services.event_service import event_service
from ddride.services.storage_service import storage_service
from ddride.services.trust_service import trust_service

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")
MAX_IMAGE_BYTES = 5 * 1024 * 1024
ALLOWED_AUDIO_TYPES = ("audio/m4a", "audio/mpeg", "audio/wav")
MAX_AUDIO_BYTES = 10 * 1024 * 1024


def _validate_measurements(reaction_latency_ms: float, phrase_duration_sec: float) -> None:
    for name, value in (
        ("reaction_latency_ms", reaction_latency_ms),
        ("phrase_duration_sec", phrase_duration_sec),
    ):
        if value is None or not math.isfinite(value) or value <= 0:
            raise ValidationError(f"{name} must be a positive number", details={"field": name})


def _decode_upload(payload: str, content_type: str, field: str, allowed, max_bytes: int) -> bytes:
    if content_type not in allowed:
        raise ValidationError(
            f"Unsupported {field} type: {content_type}",
            details={"field": field, "allowed": list(allowed)},
        )
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError(f"{field} is not valid base64", details={"field": field})
    if not data:
        raise ValidationError(f"{field} is empty", details={"field": field})
    if len(data) > max_bytes:
        raise ValidationError(f"{field} too large", details={"field": field, "max_bytes": max_bytes})
    return data


def _decode_image(image_base64: str, content_type: str) -> bytes:
    return _decode_upload(image_base64, content_type, "image_base64", ALLOWED_IMAGE_TYPES, MAX_IMAGE_BYTES)


def _decode_audio(audio_base64: Optional[str], content_type: str) -> Optional[bytes]:
    """The phrase recording is optional; only its duration is evaluated"""
    if audio_base64 is None:
        return None
    return _decode_upload(audio_base64, content_type, "phrase_audio_base64", ALLOWED_AUDIO_TYPES, MAX_AUDIO_BYTES)


class VerificationService:
    """Service for baseline enrollment and verification attempts"""

    def get_baseline(self, db: Session, user_id: int) -> Optional[Baseline]:
        return db.query(Baseline).filter(Baseline.user_id == user_id).first()

    def enroll_baseline(
        self,
        db: Session,
        user_id: int,
        reaction_latency_ms: float,
        phrase_duration_sec: float,
        image_base64: str,
        content_type: str,
        phrase_audio_base64: Optional[str] = None,
        audio_content_type: str = "audio/m4a"
    ) -> Baseline:
        """Create the driver's one-time baseline. Baselines are immutable."""
        _validate_measurements(reaction_latency_ms, phrase_duration_sec)
        image = _decode_image(image_base64, content_type)
        audio = _decode_audio(phrase_audio_base64, audio_content_type)

        if self.get_baseline(db, user_id) is not None:
            raise ConflictError("Baseline already enrolled and cannot be replaced")

        image_ref = storage_service.store(image, content_type)
        audio_ref = storage_service.store(audio, audio_content_type) if audio is not None else None

        baseline = Baseline(
            user_id=user_id,
            reaction_latency_ms=reaction_latency_ms,
            phrase_duration_sec=phrase_duration_sec,
            image_ref=image_ref,
            phrase_audio_ref=audio_ref
        )
        db.add(baseline)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Baseline already enrolled and cannot be replaced")
        db.refresh(baseline)

        logger.info(f"Baseline enrolled for user {user_id}")
        return baseline

    def record_attempt(
        self,
        db: Session,
        user_id: int,
        reaction_latency_ms: float,
        phrase_duration_sec: float,
        image_base64: str,
        content_type: str,
        event_id: Optional[int] = None,
        phrase_audio_base64: Optional[str] = None,
        audio_content_type: str = "audio/m4a",
        group_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Evaluate and record a verification attempt.

        Returns:
            {
                "attempt": Attempt,
                "evaluation": {...evaluator output...},
                "trust_status": "active" | "revoked" | "none"
            }
        """
        _validate_measurements(reaction_latency_ms, phrase_duration_sec)
        image = _decode_image(image_base64, content_type)
        audio = _decode_audio(phrase_audio_base64, audio_content_type)

        if event_id is not None:
            event_service.get_event(db, event_id, group_id)

        attempt = Attempt(
            user_id=user_id,
            event_id=event_id,
            reaction_latency_ms=reaction_latency_ms,
            phrase_duration_sec=phrase_duration_sec
        )
        evaluation = evaluate(self.get_baseline(db, user_id), attempt)

        attempt.image_ref = storage_service.store(image, content_type)
        if audio is not None:
            attempt.phrase_audio_ref = storage_service.store(audio, audio_content_type)
        attempt.outcome = "pass" if evaluation["passed"] else "fail"
        db.add(attempt)
        db.commit()
        db.refresh(attempt)

        logger.info(
            f"Attempt {attempt.id} by user {user_id}: {attempt.outcome} "
            f"(reaction {evaluation['reaction_delta']:+.0f}ms, "
            f"phrase {evaluation['phrase_delta']:+.2f}s)"
        )

        if not evaluation["passed"]:
            try:
                trust_service.revoke(db, user_id, event_id=event_id, attempt_id=attempt.id)
            except PartialCascadeError as e:
                logger.error(f"Verification fail for user {user_id} left cascade incomplete: {e.details}")

        return {
            "attempt": attempt,
            "evaluation": evaluation,
            "trust_status": trust_service.current_trust_status(db, user_id),
        }


# Singleton instance
verification_service = VerificationService()

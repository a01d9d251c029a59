"""
Threshold Evaluator - compares a verification attempt to the driver's baseline

This is a numeric heuristic, not a biometric or liveness check.
"""
from typing import Any, Dict, Optional

from ddride.errors import ValidationError

# Tolerances above baseline
REACTION_TOLERANCE_MS = 150
PHRASE_TOLERANCE_SEC = 2.0


def evaluate(baseline: Optional[Any], attempt: Any) -> Dict[str, Any]:
    """
    Evaluate an attempt against a baseline.

    Both arguments only need `reaction_latency_ms` and `phrase_duration_sec`
    attributes. Deltas are attempt minus baseline, so a faster attempt has a
    negative delta and always satisfies its bound.

    Returns:
        {
            "passed": bool,
            "reaction_ok": bool,
            "phrase_ok": bool,
            "reaction_delta": float,
            "phrase_delta": float,
            "measured": {...}, "baseline": {...}, "tolerance": {...}
        }

    Raises:
        ValidationError: the driver never enrolled a baseline
    """
    if baseline is None:
        raise ValidationError(
            "Verification enrollment incomplete: no baseline on file",
            details={"reason": "enrollment_incomplete"},
        )

    reaction_delta = attempt.reaction_latency_ms - baseline.reaction_latency_ms
    phrase_delta = attempt.phrase_duration_sec - baseline.phrase_duration_sec

    reaction_ok = reaction_delta <= REACTION_TOLERANCE_MS
    phrase_ok = phrase_delta <= PHRASE_TOLERANCE_SEC

    return {
        "passed": reaction_ok and phrase_ok,
        "reaction_ok": reaction_ok,
        "phrase_ok": phrase_ok,
        "reaction_delta": reaction_delta,
        "phrase_delta": phrase_delta,
        "measured": {
            "reaction_latency_ms": attempt.reaction_latency_ms,
            "phrase_duration_sec": attempt.phrase_duration_sec,
        },
        "baseline": {
            "reaction_latency_ms": baseline.reaction_latency_ms,
            "phrase_duration_sec": baseline.phrase_duration_sec,
        },
        "tolerance": {
            "reaction_latency_ms": REACTION_TOLERANCE_MS,
            "phrase_duration_sec": PHRASE_TOLERANCE_SEC,
        },
    }

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from bank_profiles import ALL_PROFILES, BankProfile

DEFAULT_CONFIDENCE_THRESHOLD = 0.5
DEFAULT_PARTIAL_MATCH_WEIGHT = 0.5


@dataclass(frozen=True)
class DetectionResult:
    profile: BankProfile
    confidence: float


def _normalize(headers: Iterable[str]) -> list[str]:
    return [h.strip().lower() for h in headers]


def match_confidence(
    actual: Sequence[str],
    expected: Sequence[str],
    *,
    partial_weight: float = DEFAULT_PARTIAL_MATCH_WEIGHT,
) -> float:
    """Score normalized `actual` headers against one expected header pattern.

    Each expected header counts 1 for an exact match, `partial_weight` when it
    is a substring of an actual header (or the other way round), 0 otherwise.
    The sum is divided by the number of expected headers.
    """
    candidates = [h for h in actual if h]
    if not candidates or not expected:
        return 0.0

    score = 0.0
    for wanted in expected:
        if wanted in candidates:
            score += 1
        elif any(wanted in h or h in wanted for h in candidates):
            score += partial_weight
    return score / len(expected)


def detect_bank_profile(
    headers: Sequence[str],
    *,
    profiles: Sequence[BankProfile] = ALL_PROFILES,
    threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    partial_weight: float = DEFAULT_PARTIAL_MATCH_WEIGHT,
) -> Optional[DetectionResult]:
    actual = _normalize(headers)

    best: Optional[DetectionResult] = None
    for profile in profiles:
        for pattern in profile.patterns:
            confidence = match_confidence(
                actual, _normalize(pattern.headers), partial_weight=partial_weight
            )
            # strictly greater: ties keep the first profile in registry order
            if confidence > 0 and (best is None or confidence > best.confidence):
                best = DetectionResult(profile=profile, confidence=confidence)

    if best is None or best.confidence < threshold:
        return None
    return best

"""Header reconciliation: pick the incoming column that best fits each canonical field."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from roster_doctor.schema import field_alternatives, fields_for, required_fields
from roster_doctor.similarity import CONTAINMENT_SCORE, EXACT_SCORE, canonical_text, similarity

DEFAULT_MATCH_THRESHOLD = 0.6


@dataclass
class HeaderReconciliation:
    kind: str
    mapping: dict[str, str]
    unmapped_canonical_fields: list[str]
    passthrough_headers: list[str]
    missing_required_fields: list[str]
    scores: dict[str, float] = field(default_factory=dict)
    confidence: int = 0

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "mapping": dict(self.mapping),
            "unmapped_canonical_fields": list(self.unmapped_canonical_fields),
            "passthrough_headers": list(self.passthrough_headers),
            "missing_required_fields": list(self.missing_required_fields),
            "scores": {name: round(score, 4) for name, score in self.scores.items()},
            "confidence": self.confidence,
        }


def _score_header(
    header: str,
    alternatives: Sequence[str],
    containment_score: float,
) -> float:
    normalized = canonical_text(header)
    if any(normalized == canonical_text(alt) for alt in alternatives):
        return EXACT_SCORE
    return max(
        (similarity(header, alt, containment_score=containment_score) for alt in alternatives),
        default=0.0,
    )


def _map_with_scores(
    headers: Sequence[str],
    alternatives_by_field: Mapping[str, Sequence[str]],
    threshold: float,
    containment_score: float,
) -> tuple[dict[str, str], dict[str, float]]:
    mapping: dict[str, str] = {}
    scores: dict[str, float] = {}
    claimed: set[str] = set()

    for canonical_field, alternatives in alternatives_by_field.items():
        best_header: str | None = None
        best_score = 0.0
        for header in headers:
            if header in claimed:
                continue
            score = _score_header(header, alternatives, containment_score)
            if score > best_score:
                best_header = header
                best_score = score
        if best_header is not None and best_score > threshold:
            mapping[canonical_field] = best_header
            scores[canonical_field] = best_score
            claimed.add(best_header)

    return mapping, scores


def map_headers(
    headers: Sequence[str],
    alternatives_by_field: Mapping[str, Sequence[str]],
    *,
    threshold: float = DEFAULT_MATCH_THRESHOLD,
    containment_score: float = CONTAINMENT_SCORE,
) -> dict[str, str]:
    """Map canonical field -> incoming header.

    Fields are visited in the mapping's iteration order. A header is claimed by
    at most one field, and only scores strictly above ``threshold`` count.
    """
    mapping, _ = _map_with_scores(headers, alternatives_by_field, threshold, containment_score)
    return mapping


def reconcile_headers(
    raw_headers: Sequence[str],
    kind: str,
    *,
    threshold: float = DEFAULT_MATCH_THRESHOLD,
    containment_score: float = CONTAINMENT_SCORE,
) -> HeaderReconciliation:
    headers = [str(header) for header in raw_headers]
    mapping, scores = _map_with_scores(
        headers, field_alternatives(kind), threshold, containment_score
    )
    canonical = [spec.name for spec in fields_for(kind)]
    claimed = set(mapping.values())
    unmapped = [name for name in canonical if name not in mapping]
    return HeaderReconciliation(
        kind=kind,
        mapping=mapping,
        unmapped_canonical_fields=unmapped,
        passthrough_headers=[header for header in headers if header not in claimed],
        missing_required_fields=[name for name in required_fields(kind) if name not in mapping],
        scores=scores,
        confidence=round(100 * len(mapping) / len(canonical)) if canonical else 100,
    )

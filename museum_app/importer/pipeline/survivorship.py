"""
Helpers for determining field-level survivorship during entity merges.

This module evaluates incoming normalized values against an existing catalog
row and decides which value should win for each field in a profile. It
produces structured decision metadata the resolvers log and report.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Mapping, MutableMapping, Sequence

from config.survivorship import FieldRule, SurvivorshipProfile

SourceTier = str


def _normalize_value(value: Any) -> Any:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, (list, dict)) and not value:
        return None
    return value


def _is_effectively_null(value: Any) -> bool:
    return _normalize_value(value) is None


@dataclass(frozen=True)
class FieldCandidate:
    tier: SourceTier
    value: Any


@dataclass(frozen=True)
class FieldDecision:
    field_name: str
    group_name: str
    winner: FieldCandidate
    changed: bool


@dataclass(frozen=True)
class SurvivorshipResult:
    resolved_values: Mapping[str, Any]
    decisions: Sequence[FieldDecision]
    stats: Mapping[str, int]

    @property
    def changed_fields(self) -> tuple[str, ...]:
        return tuple(decision.field_name for decision in self.decisions if decision.changed)


def _select_winner(rule: FieldRule, candidates: Sequence[FieldCandidate]) -> FieldCandidate:
    if not candidates:
        raise ValueError(f"Expected at least one candidate for field {rule.field_name}.")
    if rule.prefer_non_null:
        for candidate in candidates:
            if not _is_effectively_null(candidate.value):
                return candidate
    return candidates[0]


def apply_survivorship(
    *,
    profile: SurvivorshipProfile,
    incoming_payload: Mapping[str, Any],
    core_snapshot: Mapping[str, Any],
) -> SurvivorshipResult:
    """
    Resolve every field in ``profile``.

    Fields absent from ``incoming_payload`` keep the core value untouched.
    """
    resolved: MutableMapping[str, Any] = {}
    decisions: list[FieldDecision] = []
    stats: Counter[str] = Counter()

    for group in profile.field_groups:
        for rule in group.fields:
            field_name = rule.field_name
            if field_name not in incoming_payload:
                continue
            sources = {"existing_core": core_snapshot.get(field_name), "incoming": incoming_payload.get(field_name)}
            candidates = [
                FieldCandidate(tier=tier, value=_normalize_value(sources.get(tier))) for tier in rule.tier_order
            ]
            winner = _select_winner(rule, candidates)
            existing_value = _normalize_value(core_snapshot.get(field_name))
            changed = winner.value != existing_value and not _is_effectively_null(winner.value)
            resolved[field_name] = winner.value if changed else core_snapshot.get(field_name)

            if winner.tier == "incoming":
                stats["incoming_wins"] += 1
            else:
                stats["core_wins"] += 1
            stats["fields_changed" if changed else "fields_unchanged"] += 1
            decisions.append(
                FieldDecision(field_name=field_name, group_name=group.name, winner=winner, changed=changed)
            )

    return SurvivorshipResult(resolved_values=dict(resolved), decisions=tuple(decisions), stats=dict(stats))


__all__ = [
    "FieldCandidate",
    "FieldDecision",
    "SurvivorshipResult",
    "apply_survivorship",
]

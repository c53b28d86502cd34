from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from gridnum.contracts import (
    DefensivePlaybook,
    OffensivePlaybook,
    OutcomeRow,
    PlayCall,
    ValidationError,
    ValidationIssue,
)
from gridnum.football.resources import load_bundle

WILDCARD = "*"
OUTCOME_RANGES_FILE = "outcome_ranges.json"
OUTCOME_RANGES_TYPE = "outcome_range"


class OutcomeTable(Protocol):
    def lookup_normal(
        self,
        call: PlayCall,
        offensive_playbook: OffensivePlaybook,
        defensive_playbook: DefensivePlaybook,
        closeness: int,
    ) -> OutcomeRow | None: ...

    def lookup_field_goal(self, distance: int, closeness: int) -> OutcomeRow | None: ...

    def lookup_punt(self, ball_location: int, closeness: int) -> OutcomeRow | None: ...

    def lookup_non_normal(self, call: PlayCall, closeness: int) -> OutcomeRow | None: ...


@dataclass(slots=True)
class _Band:
    low: int
    high: int
    result: str
    play_time: int

    def covers(self, value: int) -> bool:
        return self.low <= value <= self.high


@dataclass(slots=True)
class _RangeSet:
    range_id: str
    kind: str
    play_call: str
    offensive_playbook: str
    defensive_playbook: str
    key_low: int
    key_high: int
    bands: list[_Band]

    @property
    def specificity(self) -> int:
        return int(self.offensive_playbook != WILDCARD) + int(self.defensive_playbook != WILDCARD)

    def find(self, closeness: int) -> OutcomeRow | None:
        for band in self.bands:
            if band.covers(closeness):
                return OutcomeRow(result=band.result, play_time=band.play_time)
        return None


class JsonOutcomeTable:
    """Outcome ranges backed by the `outcome_range` resource bundle."""

    def __init__(self, bundle_overrides: dict[str, dict[str, Any]] | None = None, max_difference: int = 750) -> None:
        self._max_difference = max_difference
        bundle = load_bundle(OUTCOME_RANGES_FILE, OUTCOME_RANGES_TYPE, bundle_overrides)
        self.resource_version = bundle.manifest.resource_version
        self._sets = [self._parse(entry) for entry in bundle.entries()]
        self._sets.sort(key=lambda s: s.specificity, reverse=True)
        issues = self._validate_coverage()
        if issues:
            raise ValidationError(issues)

    def lookup_normal(
        self,
        call: PlayCall,
        offensive_playbook: OffensivePlaybook,
        defensive_playbook: DefensivePlaybook,
        closeness: int,
    ) -> OutcomeRow | None:
        for range_set in self._sets:
            if range_set.kind != "normal" or range_set.play_call != call.value:
                continue
            if range_set.offensive_playbook not in (WILDCARD, offensive_playbook.value):
                continue
            if range_set.defensive_playbook not in (WILDCARD, defensive_playbook.value):
                continue
            return range_set.find(closeness)
        return None

    def lookup_field_goal(self, distance: int, closeness: int) -> OutcomeRow | None:
        return self._keyed("field_goal", distance, closeness)

    def lookup_punt(self, ball_location: int, closeness: int) -> OutcomeRow | None:
        return self._keyed("punt", ball_location, closeness)

    def lookup_non_normal(self, call: PlayCall, closeness: int) -> OutcomeRow | None:
        for range_set in self._sets:
            if range_set.kind == "non_normal" and range_set.play_call == call.value:
                return range_set.find(closeness)
        return None

    def _keyed(self, kind: str, key: int, closeness: int) -> OutcomeRow | None:
        for range_set in self._sets:
            if range_set.kind == kind and range_set.key_low <= key <= range_set.key_high:
                return range_set.find(closeness)
        return None

    def _parse(self, entry: dict[str, Any]) -> _RangeSet:
        key_low, key_high = entry.get("distance") or entry.get("ball_location") or (0, 0)
        return _RangeSet(
            range_id=str(entry["id"]),
            kind=str(entry.get("kind", "")),
            play_call=str(entry.get("play_call", "")),
            offensive_playbook=str(entry.get("offensive_playbook", WILDCARD)),
            defensive_playbook=str(entry.get("defensive_playbook", WILDCARD)),
            key_low=int(key_low),
            key_high=int(key_high),
            bands=[
                _Band(low=int(r["difference"][0]), high=int(r["difference"][1]), result=str(r["result"]), play_time=int(r["play_time"]))
                for r in entry.get("rows", [])
            ],
        )

    def _validate_coverage(self) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for range_set in self._sets:
            if range_set.kind not in {"normal", "field_goal", "punt", "non_normal"}:
                issues.append(_coverage_issue(range_set.range_id, f"unknown range kind '{range_set.kind}'"))
                continue
            expected = 0
            for band in sorted(range_set.bands, key=lambda b: b.low):
                if band.low != expected:
                    issues.append(_coverage_issue(range_set.range_id, f"difference gap or overlap at {expected}"))
                    break
                expected = band.high + 1
            else:
                if expected != self._max_difference + 1:
                    issues.append(_coverage_issue(range_set.range_id, f"difference coverage ends at {expected - 1}"))
        return issues


def _coverage_issue(range_id: str, message: str) -> ValidationIssue:
    return ValidationIssue(
        code="OUTCOME_RANGE_COVERAGE",
        severity="blocking",
        field_path=f"{OUTCOME_RANGES_FILE}.{range_id}",
        entity_id=range_id,
        message=message,
    )

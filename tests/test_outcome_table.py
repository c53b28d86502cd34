from __future__ import annotations

import pytest

from gridnum.contracts import DefensivePlaybook, OffensivePlaybook, PlayCall, ValidationError
from gridnum.football import JsonOutcomeTable, load_bundle


def _bundle(resources, resource_type="outcome_range", schema_version="1.0"):
    return {
        "outcome_ranges.json": {
            "manifest": {
                "resource_type": resource_type,
                "schema_version": schema_version,
                "resource_version": "test",
                "generated_at": "2026-01-01T00:00:00Z",
            },
            "resources": resources,
        }
    }


def _full_range(result="5", play_time=5):
    return [{"difference": [0, 750], "result": result, "play_time": play_time}]


def test_default_table_answers_every_family():
    table = JsonOutcomeTable()
    pro, four_three = OffensivePlaybook.PRO, DefensivePlaybook.FOUR_THREE

    assert table.lookup_normal(PlayCall.RUN, pro, four_three, 0).result == "TOUCHDOWN"
    assert table.lookup_normal(PlayCall.PASS, pro, four_three, 750).result == "TURNOVER TOUCHDOWN"
    assert table.lookup_field_goal(25, 100).result == "GOOD"
    assert table.lookup_punt(20, 10).result == "45 YARD PUNT"
    assert table.lookup_punt(70, 10).result == "TOUCHBACK"
    assert table.lookup_non_normal(PlayCall.KICKOFF_NORMAL, 10).result == "TOUCHBACK"
    assert table.lookup_non_normal(PlayCall.PAT, 0).play_time == 0
    for closeness in range(0, 751):
        assert table.lookup_non_normal(PlayCall.TWO_POINT, closeness) is not None


def test_playbook_specific_rows_win_over_wildcards():
    table = JsonOutcomeTable()
    generic = table.lookup_normal(PlayCall.RUN, OffensivePlaybook.PRO, DefensivePlaybook.FOUR_THREE, 12)
    flexbone = table.lookup_normal(PlayCall.RUN, OffensivePlaybook.FLEXBONE, DefensivePlaybook.FOUR_THREE, 12)

    assert generic.result != "TOUCHDOWN"
    assert flexbone.result == "TOUCHDOWN"


def test_unknown_key_returns_none():
    table = JsonOutcomeTable(
        bundle_overrides=_bundle([{"id": "fg", "kind": "field_goal", "distance": [0, 40], "rows": _full_range("GOOD")}])
    )
    assert table.lookup_field_goal(30, 10).result == "GOOD"
    assert table.lookup_field_goal(60, 10) is None
    assert table.lookup_punt(30, 10) is None


def test_gaps_in_difference_coverage_are_rejected():
    rows = [
        {"difference": [0, 100], "result": "5", "play_time": 5},
        {"difference": [102, 750], "result": "2", "play_time": 5},
    ]
    with pytest.raises(ValidationError) as exc:
        JsonOutcomeTable(bundle_overrides=_bundle([{"id": "gappy", "kind": "normal", "play_call": "run", "rows": rows}]))
    assert exc.value.issues[0].code == "OUTCOME_RANGE_COVERAGE"


def test_short_coverage_is_rejected():
    rows = [{"difference": [0, 700], "result": "5", "play_time": 5}]
    with pytest.raises(ValidationError):
        JsonOutcomeTable(bundle_overrides=_bundle([{"id": "short", "kind": "normal", "play_call": "run", "rows": rows}]))


def test_manifest_checks():
    with pytest.raises(ValidationError) as wrong_type:
        load_bundle("outcome_ranges.json", "outcome_range", _bundle([{"id": "a"}], resource_type="other"))
    assert wrong_type.value.issues

    with pytest.raises(ValidationError):
        load_bundle("outcome_ranges.json", "outcome_range", _bundle([{"id": "a"}], schema_version="2.0"))

    with pytest.raises(ValidationError) as duplicate:
        load_bundle("outcome_ranges.json", "outcome_range", _bundle([{"id": "a"}, {"id": "a"}]))
    assert duplicate.value.issues[0].code == "DUPLICATE_RESOURCE_ID"

    with pytest.raises(ValidationError) as empty:
        load_bundle("outcome_ranges.json", "outcome_range", _bundle([]))
    assert empty.value.issues[0].code == "EMPTY_RESOURCE_SET"


def test_packaged_bundle_has_manifest():
    bundle = load_bundle("outcome_ranges.json", "outcome_range")
    assert bundle.manifest.schema_version == "1.0"
    assert "normal_run" in bundle.resources_by_id

from __future__ import annotations

from dataclasses import dataclass, field

from gridnum.contracts import OffensivePlaybook


def _default_playbook_runoff() -> dict[OffensivePlaybook, int]:
    return {
        OffensivePlaybook.PRO: 15,
        OffensivePlaybook.AIR_RAID: 10,
        OffensivePlaybook.FLEXBONE: 20,
        OffensivePlaybook.SPREAD: 13,
        OffensivePlaybook.WEST_COAST: 17,
    }


@dataclass(frozen=True, slots=True)
class GameRules:
    quarter_seconds: int = 420
    max_difference: int = 750
    number_range: int = 1500
    regulation_timeouts: int = 3
    overtime_timeouts: int = 1
    kickoff_spot: int = 35
    overtime_spot: int = 75
    touchback_spot: int = 20
    pat_spot: int = 97
    spike_runoff: int = 3
    spike_stopped_runoff: int = 1
    kneel_runoff: int = 40
    hurry_runoff: int = 7
    chew_runoff: int = 30
    final_runoff_cap: int = 30
    final_runoff_floor: int = 7
    playbook_runoff: dict[OffensivePlaybook, int] = field(default_factory=_default_playbook_runoff)
    close_game_margin: int = 8
    close_game_clock: int = 210
    delay_of_game_points: int = 8
    delay_of_game_limit: int = 3
    elo_k_factor: float = 32.0
    upset_alert_enabled: bool = False

    def validate(self) -> None:
        missing = [pb.value for pb in OffensivePlaybook if pb not in self.playbook_runoff]
        if missing:
            raise ValueError(f"playbook runoff missing for: {', '.join(missing)}")
        if any(v <= 0 for v in self.playbook_runoff.values()):
            raise ValueError("playbook runoff must be positive")
        if self.max_difference * 2 != self.number_range:
            raise ValueError("max_difference must be half of number_range")


def default_rules() -> GameRules:
    rules = GameRules()
    rules.validate()
    return rules

"""
Per-player state for the Galaxy AI decision engine.

This module defines PlayerState, the counters and flags the decision engine
reads and writes for each seat: points, prestige, chosen actions, hidden
card bookkeeping used during hypothetical play, and the decision controller
that answers choices for the seat.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List

from galaxy_ai.core.constants import MAX_GOAL


def _no_actions() -> List[int]:
    return [-1, -1]


def _no_goals() -> List[bool]:
    return [False] * MAX_GOAL


@dataclass
class PlayerState:
    """
    Represents one seat at the table.

    ``fake_hand`` and ``fake_discards`` track anonymous cards gained and
    discarded in hypothetical play, where the real identities are unknown.
    """
    name: str = ""
    vp: int = 0  # Victory point chips
    end_vp: int = 0  # Total score, filled in by the rules engine
    prestige: int = 0
    prestige_action_used: bool = False
    drawn_round: int = 0  # Cards drawn this round
    fake_hand: int = 0
    fake_discards: int = 0
    low_hand: int = 0  # Hand size when the last real decision was made
    skip_develop: bool = False
    skip_settle: bool = False
    goal_claimed: List[bool] = field(default_factory=_no_goals)
    action: List[int] = field(default_factory=_no_actions)
    prev_action: List[int] = field(default_factory=_no_actions)
    placing: int = -1  # Card being placed this phase
    winner: bool = False
    temp: Dict[str, int] = field(default_factory=dict)  # Rules-engine scratch counters
    control: Any = None  # Object answering make_choice() for this seat

    def clone(self) -> 'PlayerState':
        """
        Copy this player's state.

        The controller is shared by reference; everything else is copied.
        """
        return PlayerState(
            name=self.name,
            vp=self.vp,
            end_vp=self.end_vp,
            prestige=self.prestige,
            prestige_action_used=self.prestige_action_used,
            drawn_round=self.drawn_round,
            fake_hand=self.fake_hand,
            fake_discards=self.fake_discards,
            low_hand=self.low_hand,
            skip_develop=self.skip_develop,
            skip_settle=self.skip_settle,
            goal_claimed=list(self.goal_claimed),
            action=list(self.action),
            prev_action=list(self.prev_action),
            placing=self.placing,
            winner=self.winner,
            temp=dict(self.temp),
            control=self.control,
        )

    def __str__(self) -> str:
        return f"{self.name or 'Player'} ({self.vp} VP chips, {self.prestige} prestige)"

"""
Action (role) tables.

The action predictor has one output per entry of these tables: single
actions in the basic game, and ordered action pairs in the two-player
advanced game, where each player selects two actions per round.
"""
from typing import List, Sequence, Tuple

from galaxy_ai.core.constants import ACT_MASK, ACT_PRESTIGE, PRESTIGE_EXPANSION, Action
from galaxy_ai.core.game import GameState

# Single actions, then Search and the prestige versions (third expansion)
ROLE_OUT: Tuple[int, ...] = (
    Action.EXPLORE_5_0,
    Action.EXPLORE_1_1,
    Action.DEVELOP,
    Action.SETTLE,
    Action.CONSUME_TRADE,
    Action.CONSUME_X2,
    Action.PRODUCE,
    Action.SEARCH,
    ACT_PRESTIGE | Action.EXPLORE_5_0,
    ACT_PRESTIGE | Action.EXPLORE_1_1,
    ACT_PRESTIGE | Action.DEVELOP,
    ACT_PRESTIGE | Action.SETTLE,
    ACT_PRESTIGE | Action.CONSUME_TRADE,
    ACT_PRESTIGE | Action.CONSUME_X2,
    ACT_PRESTIGE | Action.PRODUCE,
)

ROLE_OUT_BASIC = 7
ROLE_OUT_PRESTIGE = 15
ADV_COMBO_BASIC = 23
ADV_COMBO_PRESTIGE = 76

_SECOND_ONLY = (Action.DEVELOP2, Action.SETTLE2)


def _pairs() -> List[Tuple[int, int]]:
    pairs = []
    for a1 in range(Action.EXPLORE_5_0, Action.PRODUCE + 1):
        if a1 in _SECOND_ONLY:
            continue
        for a2 in range(a1 + 1, Action.PRODUCE + 1):
            if a2 == Action.DEVELOP2 and a1 != Action.DEVELOP:
                continue
            if a2 == Action.SETTLE2 and a1 != Action.SETTLE:
                continue
            pairs.append((a1, a2))
    return pairs


def build_advanced_combos() -> List[Tuple[int, int]]:
    """
    Build the table of two-action combinations.

    The first 23 entries are ordinary pairs (a second Develop or Settle only
    together with the first), followed by Search with each other action and
    then both prestige variants of every ordinary pair.

    Returns:
        List of 76 (first action, second action) pairs
    """
    pairs = _pairs()
    combos = list(pairs)

    for a2 in range(Action.EXPLORE_5_0, Action.PRODUCE + 1):
        if a2 in _SECOND_ONLY:
            continue
        combos.append((int(Action.SEARCH), a2))

    for a1, a2 in pairs:
        combos.append((a1 | ACT_PRESTIGE, a2))
        combos.append((a1, a2 | ACT_PRESTIGE))

    return combos


ADV_COMBO: Tuple[Tuple[int, int], ...] = tuple(build_advanced_combos())


def num_role_outputs(expanded: int, advanced: bool) -> int:
    """Number of predictor outputs for a ruleset."""
    prestige = expanded == PRESTIGE_EXPANSION
    if advanced:
        return ADV_COMBO_PRESTIGE if prestige else ADV_COMBO_BASIC
    return ROLE_OUT_PRESTIGE if prestige else ROLE_OUT_BASIC


def role_actions(index: int, advanced: bool) -> Tuple[int, int]:
    """The (first, second) actions of a predictor output; second is -1 in the basic game."""
    if advanced:
        return ADV_COMBO[index]
    return ROLE_OUT[index], -1


def uses_prestige(actions: Sequence[int]) -> bool:
    return any(a >= 0 and a & ACT_PRESTIGE for a in actions)


def uses_search(actions: Sequence[int]) -> bool:
    return any(a >= 0 and (a & ACT_MASK) == Action.SEARCH for a in actions)


def actions_legal(state: GameState, who: int, actions: Sequence[int]) -> bool:
    """
    Check whether a player may select the given actions.

    Search and prestige actions share the once-per-game prestige/search
    action; a prestige action also needs prestige to spend.
    """
    wants_prestige = uses_prestige(actions)
    if not (wants_prestige or uses_search(actions)):
        return True
    player = state.players[who]
    if not state.uses_prestige or player.prestige_action_used:
        return False
    return not wants_prestige or player.prestige > 0

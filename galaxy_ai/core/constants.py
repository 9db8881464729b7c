"""
Constants for the Galaxy AI decision engine.

This module defines the game-level enumerations shared by the state model,
the rules interface and the decision engine: card locations, card and good
types, action (role) codes, decision kinds, search categories, and the
numeric limits the engine relies on.
"""
from enum import IntEnum
from typing import Dict, Final, Tuple


class Where(IntEnum):
    """Location of a physical card."""
    DECK = 0
    DISCARD = 1
    HAND = 2
    ACTIVE = 3
    GOOD = 4
    SAVED = 5
    ASIDE = 6
    CAMPAIGN = 7


class CardType(IntEnum):
    """Kind of card design."""
    WORLD = 1
    DEVELOPMENT = 2


class GoodType(IntEnum):
    """Good kinds produced by worlds (ANY is only used by wildcard powers)."""
    NONE = 0
    ANY = 1
    NOVELTY = 2
    RARE = 3
    GENE = 4
    ALIEN = 5


# Good kinds that can be held on a world
REAL_GOODS: Final[Tuple[GoodType, ...]] = (
    GoodType.NOVELTY,
    GoodType.RARE,
    GoodType.GENE,
    GoodType.ALIEN,
)


class Phase(IntEnum):
    """Phases of a round."""
    ACTION = 0
    EXPLORE = 1
    DEVELOP = 2
    SETTLE = 3
    CONSUME = 4
    PRODUCE = 5
    DISCARD = 6


class Action(IntEnum):
    """
    Action (role) codes.

    The numeric order is the order in which the corresponding phases are
    resolved during a round. ``ROUND_START`` and ``ROUND_END`` are markers
    stored in ``GameState.cur_action`` and are never chosen by a player.
    """
    ROUND_START = -1
    SEARCH = 0
    EXPLORE_5_0 = 1
    EXPLORE_1_1 = 2
    DEVELOP = 3
    DEVELOP2 = 4
    SETTLE = 5
    SETTLE2 = 6
    CONSUME_TRADE = 7
    CONSUME_X2 = 8
    PRODUCE = 9
    ROUND_END = 10


# Number of selectable action codes (SEARCH..PRODUCE)
MAX_ACTION: Final[int] = 10

# Flag or-ed into an action code when the prestige version is chosen
ACT_PRESTIGE: Final[int] = 0x80

# Mask that strips the prestige flag
ACT_MASK: Final[int] = 0x7F

ACTION_NAMES: Final[Dict[int, str]] = {
    Action.SEARCH: "Search",
    Action.EXPLORE_5_0: "Explore +5",
    Action.EXPLORE_1_1: "Explore +1,+1",
    Action.DEVELOP: "Develop",
    Action.DEVELOP2: "Develop (2nd)",
    Action.SETTLE: "Settle",
    Action.SETTLE2: "Settle (2nd)",
    Action.CONSUME_TRADE: "Consume-Trade",
    Action.CONSUME_X2: "Consume-x2",
    Action.PRODUCE: "Produce",
}


def action_name(code: int) -> str:
    """
    Get a printable name for an action code (prestige flag included).

    Args:
        code: Action code, possibly or-ed with ``ACT_PRESTIGE``

    Returns:
        Human-readable action name
    """
    if code < 0:
        return "None"
    name = ACTION_NAMES.get(code & ACT_MASK, f"Action {code & ACT_MASK}")
    if code & ACT_PRESTIGE:
        return f"Prestige {name}"
    return name


class ChoiceKind(IntEnum):
    """Decision kinds the rules engine can delegate to the decision engine."""
    ACTION = 0
    START = 1
    DISCARD = 2
    SAVE = 3
    DISCARD_PRESTIGE = 4
    PLACE = 5
    PAYMENT = 6
    SETTLE = 7
    TAKEOVER = 8
    DEFEND = 9
    TAKEOVER_PREVENT = 10
    UPGRADE = 11
    TRADE = 12
    CONSUME = 13
    CONSUME_HAND = 14
    GOOD = 15
    LUCKY = 16
    ANTE = 17
    KEEP = 18
    WINDFALL = 19
    PRODUCE = 20
    DISCARD_PRODUCE = 21
    SEARCH_TYPE = 22
    SEARCH_KEEP = 23
    OORT_KIND = 24


class SearchCategory(IntEnum):
    """Categories a player may name when using the Search action."""
    DEV_MILITARY = 0
    MILITARY_WINDFALL = 1
    PEACEFUL_WINDFALL = 2
    CHROMO_WORLD = 3
    ALIEN_WORLD = 4
    CONSUME_TWO = 5
    MILITARY_5 = 6
    SIX_DEV = 7
    TAKEOVER = 8


class Completion(IntEnum):
    """How much of the current round ``complete_turn`` resolves."""
    ROUND = 0
    CHECK = 1
    DEVSET = 2


class Leader(IntEnum):
    """Categories in which the distance behind the leader is encoded."""
    VP = 0
    PRESTIGE = 1
    BUILT = 2
    CARDS = 3
    GOODS = 4


# Player limits
MIN_PLAYERS: Final[int] = 2
MAX_PLAYERS: Final[int] = 6

# Number of goal slots across all expansions
MAX_GOAL: Final[int] = 20

# Active cards needed to end the game (and with the "ends at 14" flag)
GAME_END_CARDS: Final[int] = 12
GAME_END_CARDS_EXTENDED: Final[int] = 14

# Prestige needed to end the game
GAME_END_PRESTIGE: Final[int] = 15

# Expansion level that introduces prestige and the Search action
PRESTIGE_EXPANSION: Final[int] = 3

# Round after which the game clock is considered run out
CLOCK_ROUND_LIMIT: Final[int] = 20

# Goals are used by expansion levels 1..3
GOAL_EXPANSIONS: Final[Tuple[int, ...]] = (1, 2, 3)

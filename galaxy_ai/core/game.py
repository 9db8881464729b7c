"""
Game state for the Galaxy AI decision engine.

The state is an arena: every physical card lives in one list and is
addressed by index, players are a fixed list, and all shared pools are plain
values. Copying a state for lookahead is therefore a bulk copy of those
arrays with no aliasing between the copy and the original.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from galaxy_ai.core.cards import Card, CardDesign
from galaxy_ai.core.constants import (
    Action, GoodType, MAX_ACTION, MAX_GOAL, GOAL_EXPANSIONS,
    PRESTIGE_EXPANSION, Where,
)
from galaxy_ai.core.player import PlayerState


@dataclass(frozen=True)
class Takeover:
    """A pending takeover attempt."""
    target: int  # Card index of the world under attack
    player: int  # Attacking player
    power_card: int  # Card providing the takeover power
    power: int = 0  # Power index on that card


def _no_goals() -> List[bool]:
    return [False] * MAX_GOAL


def _no_selection() -> List[bool]:
    return [False] * MAX_ACTION


@dataclass
class GameState:
    """
    Complete observable and hidden state of one game.

    The rules engine owns the real instance. The decision engine works on
    copies whose ``simulation`` flag is set; ``sim_who`` then names the
    player whose search created the copy.
    """
    designs: List[CardDesign]
    cards: List[Card]
    players: List[PlayerState]
    expanded: int = 0  # Expansion level (0 = base game)
    advanced: bool = False  # Two-player advanced game (two actions each)
    simulation: bool = False
    sim_who: int = -1
    random_seed: int = 0
    vp_pool: int = 0
    goal_active: List[bool] = field(default_factory=_no_goals)
    goal_avail: List[bool] = field(default_factory=_no_goals)
    cur_action: int = Action.ROUND_START
    action_selected: List[bool] = field(default_factory=_no_selection)
    turn: int = 0  # Player currently resolving a phase
    round: int = 0
    game_over: bool = False
    takeovers: List[Takeover] = field(default_factory=list)
    takeover_disabled: bool = False
    oort_kind: GoodType = GoodType.ANY

    @property
    def num_players(self) -> int:
        return len(self.players)

    @property
    def uses_goals(self) -> bool:
        return self.expanded in GOAL_EXPANSIONS

    @property
    def uses_prestige(self) -> bool:
        return self.expanded == PRESTIGE_EXPANSION

    def clone(self) -> 'GameState':
        """
        Snapshot this state.

        Designs are immutable and controllers are shared; cards, players and
        pools are copied by value.
        """
        return GameState(
            designs=self.designs,
            cards=[card.copy() for card in self.cards],
            players=[player.clone() for player in self.players],
            expanded=self.expanded,
            advanced=self.advanced,
            simulation=self.simulation,
            sim_who=self.sim_who,
            random_seed=self.random_seed,
            vp_pool=self.vp_pool,
            goal_active=list(self.goal_active),
            goal_avail=list(self.goal_avail),
            cur_action=self.cur_action,
            action_selected=list(self.action_selected),
            turn=self.turn,
            round=self.round,
            game_over=self.game_over,
            takeovers=list(self.takeovers),
            takeover_disabled=self.takeover_disabled,
            oort_kind=self.oort_kind,
        )

    def random_int(self, n: int) -> int:
        """
        Draw a pseudo-random integer in [0, n) from the state's own stream.

        The stream lives in the state so that copies replay it identically.
        """
        self.random_seed = (self.random_seed * 1103515245 + 12345) & 0xFFFFFFFF
        return ((self.random_seed >> 16) & 0x7FFF) % n

    def move_card(self, index: int, owner: int, where: Where) -> None:
        """
        Move a card to a new owner and location.

        Cards entering the tableau or discard pile become public; cards
        entering a hand are known only to the new owner.
        """
        card = self.cards[index]
        card.owner = owner
        card.where = where
        if where in (Where.ACTIVE, Where.DISCARD, Where.SAVED, Where.ASIDE):
            card.known = (1 << self.num_players) - 1
        elif where == Where.HAND and owner >= 0:
            card.known |= 1 << owner
        elif where == Where.DECK:
            card.known = 0
        if where == Where.ACTIVE:
            card.order = 1 + max(
                (c.order for c in self.cards if c.owner == owner and c.where == Where.ACTIVE),
                default=0
            )

    def cards_in(self, who: int, where: Where) -> List[int]:
        """Get the indices of a player's cards in a location, in arena order."""
        return [
            i for i, card in enumerate(self.cards)
            if card.owner == who and card.where == where
        ]

    def count_area(self, who: int, where: Where) -> int:
        """Count a player's cards in a location."""
        return sum(1 for card in self.cards if card.owner == who and card.where == where)

    def hand_size(self, who: int) -> int:
        """Hand size including anonymous cards gained or lost in hypothetical play."""
        player = self.players[who]
        return self.count_area(who, Where.HAND) + player.fake_hand - player.fake_discards

    def is_known(self, index: int, who: int) -> bool:
        return self.cards[index].is_known(who)

    def mark_known(self, index: int, who: int, only: bool = False) -> None:
        """Mark a card known to a player (optionally to that player only)."""
        if only:
            self.cards[index].known = 1 << who
        else:
            self.cards[index].known |= 1 << who

    def goods_of(self, who: int) -> List[int]:
        """Get the world cards of a player that hold at least one good."""
        return [
            i for i, card in enumerate(self.cards)
            if card.owner == who and card.where == Where.ACTIVE and card.num_goods > 0
        ]

    def count_goods(self, who: int) -> int:
        return sum(self.cards[i].num_goods for i in self.goods_of(who))

    def find_design(self, name: str) -> Optional[CardDesign]:
        for design in self.designs:
            if design.name == name:
                return design
        return None

    def active_count_max(self) -> Tuple[int, int]:
        """
        Get the largest tableau size and the player holding it.

        Returns:
            Tuple of (largest tableau size, first player with that size)
        """
        best, best_who = -1, -1
        for who in range(self.num_players):
            count = self.count_area(who, Where.ACTIVE)
            if count > best:
                best, best_who = count, who
        return best, best_who

    def __str__(self) -> str:
        return (
            f"Round {self.round}, action {self.cur_action}, "
            f"{self.vp_pool} VP left{' (simulated)' if self.simulation else ''}"
        )

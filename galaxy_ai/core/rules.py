"""
Rules engine interface consumed by the decision engine.

The decision engine never implements game rules itself. It drives a
concrete RulesEngine through four groups of entry points:

1. Phase resolution: finish the current phase or round on a copied state
2. Scoring: final points and winner flags
3. Inspection: pure queries used to build evaluation features
4. Apply-callbacks: apply one candidate choice to a copied state and report
   whether it was legal

Apply-callbacks return False for an illegal candidate instead of raising;
the decision engine skips such candidates. Decisions that arise while a
phase is being resolved are routed back to ``state.players[who].control``.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import FrozenSet, List, Sequence

from galaxy_ai.core.constants import (
    GAME_END_CARDS, GAME_END_CARDS_EXTENDED, GoodType, REAL_GOODS,
    CardType, Where,
)
from galaxy_ai.core.game import GameState


@dataclass(frozen=True)
class PowerSpec:
    """
    Summary of a consume or produce power, as far as choice ordering needs it.

    Two powers with equal ``signature`` (and equal value/times) are
    interchangeable; the decision engine uses this to prune dominated
    consume powers before searching.
    """
    bonus: bool = False  # Granted by a prestige bonus, not printed on a card
    always_first: bool = False  # Free draw/VP powers, used before anything else
    optional: bool = False  # Discard-from-hand and consume-prestige powers
    discard_hand: bool = False  # Consumes cards from hand instead of goods
    unusual: bool = False  # Never compared for dominance
    trade: bool = False
    trade_no_bonus: bool = False
    goods: FrozenSet[GoodType] = field(default_factory=frozenset)  # Kinds accepted
    goods_needed: int = 1  # Goods consumed per use
    cards: int = 0  # Cards drawn per value unit
    vp: bool = False  # Awards VP per value unit
    prestige: bool = False  # Awards prestige
    value: int = 0
    times: int = 1
    needs_discard: bool = False  # Produce power that costs a card from hand
    windfall_specific: bool = False  # Produces on a windfall world of one kind
    windfall_any: bool = False  # Produces on any windfall world

    @property
    def signature(self) -> tuple:
        """Effect identity without the reward amounts."""
        return (
            self.goods, self.goods_needed, self.cards, self.vp, self.prestige,
            self.trade, self.trade_no_bonus, self.optional,
        )

    @property
    def consumes_any(self) -> bool:
        return GoodType.ANY in self.goods


class RulesEngine(ABC):
    """
    Abstract rules engine.

    Subclasses must implement the abstract methods; the remaining methods
    have conservative defaults suitable for rulesets without the matching
    feature (no takeovers, no prestige, no goals).
    """

    # ------------------------------------------------------------------
    # Phase resolution
    # ------------------------------------------------------------------

    @abstractmethod
    def note_actions(self, state: GameState) -> None:
        """Reveal every player's chosen actions and mark selected phases."""

    @abstractmethod
    def run_phase(self, state: GameState, action: int) -> None:
        """Resolve the phase belonging to an action code for every player."""

    @abstractmethod
    def finish_phase(self, state: GameState) -> None:
        """Resolve the current phase for players after ``state.turn``."""

    @abstractmethod
    def discard_phase(self, state: GameState) -> None:
        """Perform the end-of-round discard for every player."""

    def resolve_takeovers(self, state: GameState) -> None:
        state.takeovers.clear()

    def produce_end(self, state: GameState) -> None:
        pass

    def clear_temp(self, state: GameState) -> None:
        for player in state.players:
            player.temp.clear()

    def check_goals(self, state: GameState) -> None:
        pass

    def check_prestige(self, state: GameState) -> None:
        pass

    def start_prestige(self, state: GameState) -> None:
        pass

    def game_end_target(self, state: GameState) -> int:
        """Number of tableau cards that ends the game."""
        for card in state.cards:
            if card.where == Where.ACTIVE and card.design.game_end_14:
                return GAME_END_CARDS_EXTENDED
        return GAME_END_CARDS

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    @abstractmethod
    def score_game(self, state: GameState) -> None:
        """Fill in ``end_vp`` for every player."""

    def declare_winner(self, state: GameState) -> None:
        """
        Mark the winners of a finished game.

        Highest score wins; ties are broken by hand size plus goods.
        """
        best = None
        for who in range(state.num_players):
            key = (
                state.players[who].end_vp,
                state.hand_size(who) + state.count_goods(who),
            )
            if best is None or key > best:
                best = key
        for who, player in enumerate(state.players):
            key = (player.end_vp, state.hand_size(who) + state.count_goods(who))
            player.winner = key == best

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def military_strength(self, state: GameState, who: int) -> int:
        return sum(
            card.design.extra_military for card in state.cards
            if card.owner == who and card.where == Where.ACTIVE
        )

    def develop_discount(self, state: GameState, who: int) -> int:
        return 0

    def settle_legal(self, state: GameState, who: int, index: int) -> bool:
        """Check whether a world could be placed with current resources."""
        design = state.cards[index].design
        if design.card_type != CardType.WORLD:
            return False
        if design.military:
            return self.military_strength(state, who) >= design.cost
        return state.hand_size(who) - 1 >= design.cost

    def consume_ability(self, state: GameState, who: int, produce: bool) -> List[bool]:
        """
        Six flags describing goods available to consume.

        The first four flag each good kind, the last two flag holding at
        least two and at least three goods. With ``produce`` set, goods the
        player's worlds would produce this round are counted as well.
        """
        kinds = []
        for index, card in enumerate(state.cards):
            if card.owner != who or card.where != Where.ACTIVE:
                continue
            if card.num_goods > 0:
                kinds.extend([card.design.good_type] * card.num_goods)
            elif produce and not card.design.windfall and card.design.good_type in REAL_GOODS:
                kinds.append(card.design.good_type)
        flags = [kind in kinds for kind in REAL_GOODS]
        flags.append(len(kinds) >= 2)
        flags.append(len(kinds) >= 3)
        return flags

    def search_match(self, state: GameState, index: int, category: int) -> bool:
        return False

    def describe_power(self, state: GameState, who: int, power: int) -> PowerSpec:
        return PowerSpec()

    # ------------------------------------------------------------------
    # Card movement
    # ------------------------------------------------------------------

    def draw_card(self, state: GameState, who: int) -> int:
        """
        Draw a random card from the deck into a player's hand.

        Returns:
            Index of the drawn card, or -1 if the deck and discards are empty
        """
        deck = [i for i, card in enumerate(state.cards) if card.where == Where.DECK]
        if not deck:
            for i, card in enumerate(state.cards):
                if card.where == Where.DISCARD:
                    state.move_card(i, -1, Where.DECK)
            deck = [i for i, card in enumerate(state.cards) if card.where == Where.DECK]
            if not deck:
                return -1
        index = deck[state.random_int(len(deck))]
        state.move_card(index, who, Where.HAND)
        state.players[who].drawn_round += 1
        return index

    def claim_card(self, state: GameState, who: int, index: int) -> bool:
        """
        Move a specific card into a player's hand for a hypothetical line.

        If another player owns the card, a replacement is drawn from the deck
        and put where the card was. Only the claiming player learns where
        the card went.

        Returns:
            True if the card was moved
        """
        card = state.cards[index]
        if card.owner == who and card.where == Where.HAND:
            return False

        if card.owner != -1:
            deck = [i for i, c in enumerate(state.cards) if c.where == Where.DECK and i != index]
            if not deck:
                return False
            replace = deck[0]
            if card.where == Where.GOOD:
                state.cards[replace].covering = card.covering
            state.move_card(replace, card.owner, card.where)

        state.move_card(index, who, Where.HAND)
        state.mark_known(index, who, only=True)
        return True

    def gain_prestige(self, state: GameState, who: int, amount: int) -> None:
        state.players[who].prestige += amount

    # ------------------------------------------------------------------
    # Apply-callbacks
    # ------------------------------------------------------------------

    @abstractmethod
    def apply_start(self, state: GameState, who: int, world: int,
                    discards: Sequence[int]) -> bool:
        """Place a start world and discard down to the opening hand."""

    def apply_discard(self, state: GameState, who: int, cards: Sequence[int]) -> None:
        for index in cards:
            state.move_card(index, -1, Where.DISCARD)

    @abstractmethod
    def apply_place(self, state: GameState, who: int, index: int) -> bool:
        """
        Place a card in the current develop or settle phase (-1 skips).

        Includes paying for the card and finishing the placement.
        """

    @abstractmethod
    def payment_needed(self, state: GameState, who: int, index: int,
                       special: Sequence[int]) -> int:
        """Cards needed to pay for a card with the given abilities (-1 if illegal)."""

    @abstractmethod
    def apply_payment(self, state: GameState, who: int, index: int,
                      cards: Sequence[int], special: Sequence[int]) -> bool:
        """Pay for a card; -1 entries in ``cards`` are anonymous cards."""

    def apply_takeover(self, state: GameState, who: int, target: int, power: int) -> bool:
        return False

    def apply_defend(self, state: GameState, who: int, index: int, opponent: int,
                     deficit: int, cards: Sequence[int], special: Sequence[int]) -> bool:
        return False

    def defeat_takeover(self, state: GameState, who: int, takeover: int) -> None:
        del state.takeovers[takeover]

    def apply_upgrade(self, state: GameState, who: int, replacement: int, old: int) -> bool:
        return False

    @abstractmethod
    def apply_trade(self, state: GameState, who: int, world: int, no_bonus: bool) -> bool:
        """Trade the good on a world for cards."""

    @abstractmethod
    def apply_consume(self, state: GameState, who: int, power: int) -> bool:
        """Use one consume power (goods are chosen through further decisions)."""

    @abstractmethod
    def continue_consume(self, state: GameState, who: int) -> None:
        """Use a player's remaining consume powers for this phase."""

    def apply_consume_hand(self, state: GameState, who: int, power: int,
                           cards: Sequence[int]) -> bool:
        return False

    def apply_goods(self, state: GameState, who: int, power: int,
                    goods: Sequence[int]) -> bool:
        return False

    def apply_discard_produce(self, state: GameState, who: int, world: int,
                              discard: int, power: int) -> bool:
        """Discard a card from hand to produce a good on a world."""
        state.move_card(discard, -1, Where.DISCARD)
        return self.produce_world(state, who, world)

    @abstractmethod
    def produce_world(self, state: GameState, who: int, world: int) -> bool:
        """Place a good on a world."""

    @abstractmethod
    def apply_produce(self, state: GameState, who: int, power: int) -> bool:
        """Use one produce power."""

    @abstractmethod
    def continue_produce(self, state: GameState, who: int) -> None:
        """Use a player's remaining produce powers for this phase."""

"""
Card designs and physical cards.

A design describes what is printed on a card and is shared by every copy of
it. A physical card is a small mutable record (owner, location, goods) kept
in the game state's card arena and addressed by its index, so copying a
state is a plain value copy of these records.
"""
from dataclasses import dataclass, field
from typing import FrozenSet, List

from galaxy_ai.core.constants import CardType, GoodType, Where


@dataclass(frozen=True)
class CardDesign:
    """
    Printed properties of a card.

    The decision engine only reads the properties it uses as features; any
    further rules data (powers, costs of abilities) belongs to the rules
    engine and can be carried in ``tags``.
    """
    index: int  # Position in the design table
    name: str
    card_type: CardType
    cost: int
    vp: int = 0
    good_type: GoodType = GoodType.NONE  # Good produced (worlds only)
    windfall: bool = False  # Starts with a good, never produces
    military: bool = False  # Conquered with military instead of paid
    extra_military: int = 0  # Military modifier when active
    explore_mix: bool = False  # Allows mixing explored cards with the hand
    trade_bonus: int = 0  # Extra cards when trading
    draw_if_produced: int = 0  # Cards drawn when this world produces
    game_end_14: bool = False  # Raises the game-end card count to 14
    select_last: bool = False  # Chooses actions after seeing the others
    tags: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        """Validate the design."""
        if self.cost < 0:
            raise ValueError(f"Card cost cannot be negative ({self.name})")
        if self.card_type == CardType.DEVELOPMENT and self.good_type != GoodType.NONE:
            raise ValueError(f"Developments cannot produce goods ({self.name})")

    @property
    def is_world(self) -> bool:
        return self.card_type == CardType.WORLD

    @property
    def is_development(self) -> bool:
        return self.card_type == CardType.DEVELOPMENT

    def __str__(self) -> str:
        return self.name


@dataclass
class Card:
    """
    One physical card in the arena.

    ``known`` is a bitmask of players who know which design this card is;
    a card in a player's hand is normally known only to its owner.
    """
    design: CardDesign
    owner: int = -1
    where: Where = Where.DECK
    num_goods: int = 0  # Goods currently stored on this world
    covering: int = -1  # For a good: the world card it sits on
    known: int = 0
    order: int = 0  # Play order on the tableau

    def is_known(self, who: int) -> bool:
        """Check whether a player knows this card's design."""
        return bool(self.known & (1 << who))

    def copy(self) -> 'Card':
        return Card(
            self.design, self.owner, self.where, self.num_goods,
            self.covering, self.known, self.order
        )


def create_cards(designs: List[CardDesign], copies: List[int]) -> List[Card]:
    """
    Create the physical cards for a design table.

    Args:
        designs: Design table
        copies: Number of copies of each design

    Returns:
        List of cards, all in the deck
    """
    if len(designs) != len(copies):
        raise ValueError("One copy count is needed per design")

    cards = []
    for design, count in zip(designs, copies):
        for _ in range(count):
            cards.append(Card(design))
    return cards

"""
A small deterministic ruleset used by the tests.

MiniGalaxyRules implements the RulesEngine interface for a 16-design deck:
worlds that produce goods, developments that consume them, a military
track and a shared VP pool. Phases are resolved automatically (each player
places their best affordable card unless ``placing`` names one); only the
end-of-round discard is routed back to the seat's controller, which is how
the simulator hands decisions to the decision engine.

Hypothetical states draw anonymous cards (``fake_hand``) instead of real
ones, so lookahead never peeks at the deck order.
"""
from typing import List, Optional, Sequence

from galaxy_ai.core.cards import CardDesign, create_cards
from galaxy_ai.core.constants import (
    ACT_MASK, MAX_ACTION, REAL_GOODS, Action, CardType, ChoiceKind, GoodType,
    SearchCategory, Where,
)
from galaxy_ai.core.game import GameState
from galaxy_ai.core.player import PlayerState
from galaxy_ai.core.rules import PowerSpec, RulesEngine

HAND_LIMIT = 10
START_HAND = 6
VP_PER_PLAYER = 12

TRADE_PRICE = {
    GoodType.NOVELTY: 2,
    GoodType.RARE: 3,
    GoodType.GENE: 4,
    GoodType.ALIEN: 5,
}

W, D = CardType.WORLD, CardType.DEVELOPMENT


def make_designs() -> List[CardDesign]:
    """The toy design table."""
    rows = [
        ("Landing Site", W, 0, 1, dict(good_type=GoodType.NOVELTY, tags=frozenset({"start"}))),
        ("Rebel Base", W, 0, 1, dict(good_type=GoodType.GENE, tags=frozenset({"start"}))),
        ("Ore Moon", W, 1, 1, dict(good_type=GoodType.RARE)),
        ("Spice World", W, 2, 1, dict(good_type=GoodType.NOVELTY, trade_bonus=1)),
        ("Gene Vault", W, 3, 2, dict(good_type=GoodType.GENE, draw_if_produced=1)),
        ("Alien Ruins", W, 5, 4, dict(good_type=GoodType.ALIEN, military=True)),
        ("Lost Colony", W, 2, 1, dict(good_type=GoodType.RARE, windfall=True)),
        ("Comet Shard", W, 1, 1, dict(good_type=GoodType.ALIEN, windfall=True)),
        ("Frontier Outpost", W, 2, 2, dict(military=True)),
        ("Survey Team", D, 1, 0, dict(extra_military=1, explore_mix=True)),
        ("Trade Guild", D, 2, 1, dict(tags=frozenset({"consume", "vp"}))),
        ("Market Hub", D, 3, 2, dict(tags=frozenset({"consume", "cards"}))),
        ("Fleet Yard", D, 4, 2, dict(extra_military=2)),
        ("Galactic Senate", D, 6, 3, dict(game_end_14=True, tags=frozenset({"consume", "vp2"}))),
        ("Research Lab", D, 5, 3, dict()),
        ("Refinery", D, 2, 1, dict(tags=frozenset({"discount"}))),
    ]
    return [
        CardDesign(index=i, name=name, card_type=kind, cost=cost, vp=vp, **extra)
        for i, (name, kind, cost, vp, extra) in enumerate(rows)
    ]


def new_game(num_players: int = 2, seed: int = 7, expanded: int = 0,
             advanced: bool = False, hand: int = START_HAND) -> GameState:
    """
    Deal a fresh game.

    Every player gets two start worlds set aside and ``hand`` cards.
    """
    designs = make_designs()
    copies = [2 * num_players if "start" in d.tags else 3 for d in designs]
    state = GameState(
        designs=designs,
        cards=create_cards(designs, copies),
        players=[PlayerState(name=f"Player {i}") for i in range(num_players)],
        expanded=expanded,
        advanced=advanced,
        random_seed=seed,
        vp_pool=VP_PER_PLAYER * num_players,
    )

    rules = MiniGalaxyRules()
    for who in range(num_players):
        starts = [
            i for i, card in enumerate(state.cards)
            if "start" in card.design.tags and card.where == Where.DECK
        ]
        for index in (starts[0], starts[-1]):
            state.move_card(index, who, Where.ASIDE)
        for _ in range(hand):
            rules.draw_card(state, who)
        state.players[who].drawn_round = 0
    return state


def start_worlds(state: GameState, who: int) -> List[int]:
    return state.cards_in(who, Where.ASIDE)


class MiniGalaxyRules(RulesEngine):
    """Rules of the toy game."""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def chose(state: GameState, who: int, action: int) -> bool:
        return any(a >= 0 and (a & ACT_MASK) == action for a in state.players[who].action)

    def draw(self, state: GameState, who: int, count: int) -> None:
        """Draw cards; hypothetical states draw anonymous ones."""
        if count <= 0:
            return
        if state.simulation:
            state.players[who].fake_hand += count
            state.players[who].drawn_round += count
            return
        for _ in range(count):
            self.draw_card(state, who)

    def gain_vp(self, state: GameState, who: int, amount: int) -> None:
        state.players[who].vp += amount
        state.vp_pool -= amount

    def pay(self, state: GameState, who: int, amount: int) -> None:
        """Discard the cheapest hand cards, then anonymous ones."""
        hand = sorted(state.cards_in(who, Where.HAND), key=lambda i: state.cards[i].design.cost)
        for index in hand[:amount]:
            state.move_card(index, -1, Where.DISCARD)
        state.players[who].fake_discards += max(amount - len(hand), 0)

    def place_cost(self, state: GameState, who: int, index: int) -> int:
        """Cards needed to place a card (-1 if it cannot be placed)."""
        design = state.cards[index].design
        if design.is_development:
            owned = any(
                c.design.index == design.index for c in state.cards
                if c.owner == who and c.where == Where.ACTIVE
            )
            if owned:
                return -1
            discount = self.develop_discount(state, who)
            if self.chose(state, who, Action.DEVELOP):
                discount += 1
            return max(design.cost - discount, 0)
        if design.military:
            return 0 if self.military_strength(state, who) >= design.cost else -1
        return design.cost

    def auto_place(self, state: GameState, who: int, card_type: CardType) -> int:
        """Most valuable affordable card of a type in hand (-1 for none)."""
        best, best_key = -1, None
        for index in state.cards_in(who, Where.HAND):
            design = state.cards[index].design
            if design.card_type != card_type:
                continue
            need = self.place_cost(state, who, index)
            if need < 0 or state.hand_size(who) - 1 < need:
                continue
            key = (design.vp, -design.cost)
            if best_key is None or key > best_key:
                best, best_key = index, key
        return best

    def consume_good(self, state: GameState, who: int, world: int, spec: PowerSpec) -> None:
        state.cards[world].num_goods -= 1
        if spec.vp:
            gain = spec.value * (2 if self.chose(state, who, Action.CONSUME_X2) else 1)
            self.gain_vp(state, who, gain)
        if spec.cards:
            self.draw(state, who, spec.value * spec.cards)

    def consume_powers(self, state: GameState, who: int) -> List[int]:
        return [
            i for i, card in enumerate(state.cards)
            if card.owner == who and card.where == Where.ACTIVE and "consume" in card.design.tags
        ]

    # ------------------------------------------------------------------
    # Phase resolution
    # ------------------------------------------------------------------

    def note_actions(self, state: GameState) -> None:
        state.action_selected = [False] * MAX_ACTION
        for player in state.players:
            for action in player.action:
                if action >= 0:
                    state.action_selected[action & ACT_MASK] = True

    def run_phase(self, state: GameState, action: int) -> None:
        for who in range(state.num_players):
            self.resolve(state, who, action)

    def finish_phase(self, state: GameState) -> None:
        for who in range(state.turn + 1, state.num_players):
            self.resolve(state, who, state.cur_action)

    def resolve(self, state: GameState, who: int, action: int) -> None:
        """Resolve one player's part of a phase."""
        if action in (Action.EXPLORE_5_0, Action.EXPLORE_1_1):
            extra = 0
            if self.chose(state, who, Action.EXPLORE_5_0):
                extra += 2
            if self.chose(state, who, Action.EXPLORE_1_1):
                extra += 1
            self.draw(state, who, 1 + extra)
        elif action in (Action.DEVELOP, Action.DEVELOP2, Action.SETTLE, Action.SETTLE2):
            develop = action in (Action.DEVELOP, Action.DEVELOP2)
            player = state.players[who]
            index = player.placing
            if index < 0:
                index = self.auto_place(state, who, CardType.DEVELOPMENT if develop else CardType.WORLD)
            self.apply_place(state, who, index)
            player.placing = -1
        elif action in (Action.CONSUME_TRADE, Action.CONSUME_X2):
            if self.chose(state, who, Action.CONSUME_TRADE):
                goods = state.goods_of(who)
                if goods:
                    self.apply_trade(state, who, goods[0], False)
            self.continue_consume(state, who)
        elif action == Action.PRODUCE:
            if self.chose(state, who, Action.PRODUCE):
                for index in state.cards_in(who, Where.ACTIVE):
                    card = state.cards[index]
                    if card.design.windfall and card.num_goods == 0:
                        self.produce_world(state, who, index)
                        break
            self.continue_produce(state, who)

    def discard_phase(self, state: GameState) -> None:
        for who, player in enumerate(state.players):
            excess = state.hand_size(who) - HAND_LIMIT
            if excess > 0:
                hand = state.cards_in(who, Where.HAND)
                if player.control is not None:
                    choice = player.control.make_choice(
                        state, who, ChoiceKind.DISCARD, hand, [], excess
                    )
                    discards = choice.items
                else:
                    discards = hand[-excess:]
                self.apply_discard(state, who, discards)

        for player in state.players:
            player.prev_action = list(player.action)
            player.action = [-1, -1]
            player.drawn_round = 0
            player.placing = -1
        state.action_selected = [False] * MAX_ACTION
        state.round += 1

    # ------------------------------------------------------------------
    # Scoring and inspection
    # ------------------------------------------------------------------

    def score_game(self, state: GameState) -> None:
        for who, player in enumerate(state.players):
            player.end_vp = player.vp + sum(
                card.design.vp for card in state.cards
                if card.owner == who and card.where == Where.ACTIVE
            )

    def develop_discount(self, state: GameState, who: int) -> int:
        return sum(
            1 for card in state.cards
            if card.owner == who and card.where == Where.ACTIVE and "discount" in card.design.tags
        )

    def search_match(self, state: GameState, index: int, category: int) -> bool:
        design = state.cards[index].design
        if category == SearchCategory.SIX_DEV:
            return design.is_development and design.cost == 6
        if category == SearchCategory.DEV_MILITARY:
            return design.is_development and design.extra_military > 0
        if category == SearchCategory.MILITARY_WINDFALL:
            return design.is_world and design.military and design.windfall
        if category == SearchCategory.PEACEFUL_WINDFALL:
            return design.is_world and not design.military and design.windfall
        if category == SearchCategory.ALIEN_WORLD:
            return design.is_world and design.good_type == GoodType.ALIEN
        return False

    def describe_power(self, state: GameState, who: int, power: int) -> PowerSpec:
        tags = state.cards[power].design.tags
        any_good = frozenset({GoodType.ANY})
        if "vp2" in tags:
            return PowerSpec(goods=any_good, vp=True, value=2, times=1)
        if "vp" in tags:
            return PowerSpec(goods=any_good, vp=True, value=1, times=2)
        if "cards" in tags:
            return PowerSpec(goods=any_good, cards=1, value=1, times=1)
        if state.cards[power].design.windfall:
            return PowerSpec(windfall_any=True)
        return PowerSpec(unusual=True)

    # ------------------------------------------------------------------
    # Apply-callbacks
    # ------------------------------------------------------------------

    def apply_start(self, state: GameState, who: int, world: int,
                    discards: Sequence[int]) -> bool:
        card = state.cards[world]
        if card.owner != who or card.where != Where.ASIDE or "start" not in card.design.tags:
            return False
        for index in discards:
            if state.cards[index].owner != who or state.cards[index].where != Where.HAND:
                return False
        state.move_card(world, who, Where.ACTIVE)
        for index in state.cards_in(who, Where.ASIDE):
            state.move_card(index, -1, Where.DISCARD)
        self.apply_discard(state, who, discards)
        return True

    def apply_place(self, state: GameState, who: int, index: int) -> bool:
        if index < 0:
            return True
        card = state.cards[index]
        if card.owner != who or card.where != Where.HAND:
            return False
        need = self.place_cost(state, who, index)
        if need < 0 or state.hand_size(who) - 1 < need:
            return False

        state.move_card(index, who, Where.ACTIVE)
        if card.design.windfall:
            card.num_goods = 1
        self.pay(state, who, need)
        state.players[who].placing = -1
        if card.design.is_world and self.chose(state, who, Action.SETTLE):
            self.draw(state, who, 1)
        return True

    def payment_needed(self, state: GameState, who: int, index: int,
                       special: Sequence[int]) -> int:
        need = self.place_cost(state, who, index)
        if need < 0:
            return -1
        return max(need - len(special), 0)

    def apply_payment(self, state: GameState, who: int, index: int,
                      cards: Sequence[int], special: Sequence[int]) -> bool:
        if len(cards) != self.payment_needed(state, who, index, special):
            return False
        for paid in cards:
            if paid == index:
                return False
            if paid >= 0 and (state.cards[paid].owner != who or state.cards[paid].where != Where.HAND):
                return False
        for paid in cards:
            if paid < 0:
                state.players[who].fake_discards += 1
            else:
                state.move_card(paid, -1, Where.DISCARD)
        state.move_card(index, who, Where.ACTIVE)
        return True

    def apply_trade(self, state: GameState, who: int, world: int, no_bonus: bool) -> bool:
        card = state.cards[world]
        if card.owner != who or card.where != Where.ACTIVE or card.num_goods <= 0:
            return False
        card.num_goods -= 1
        price = TRADE_PRICE.get(card.design.good_type, 1)
        if not no_bonus:
            price += card.design.trade_bonus
        self.draw(state, who, price)
        return True

    def apply_consume(self, state: GameState, who: int, power: int) -> bool:
        card = state.cards[power]
        if card.owner != who or card.where != Where.ACTIVE or "consume" not in card.design.tags:
            return False
        player = state.players[who]
        key = f"consumed {power}"
        goods = state.goods_of(who)
        if player.temp.get(key) or not goods:
            return False

        player.temp[key] = 1
        spec = self.describe_power(state, who, power)
        for world in goods[:spec.times]:
            self.consume_good(state, who, world, spec)
        return True

    def continue_consume(self, state: GameState, who: int) -> None:
        for power in self.consume_powers(state, who):
            self.apply_consume(state, who, power)

    def apply_consume_hand(self, state: GameState, who: int, power: int,
                           cards: Sequence[int]) -> bool:
        for index in cards:
            if state.cards[index].owner != who or state.cards[index].where != Where.HAND:
                return False
        self.apply_discard(state, who, cards)
        self.gain_vp(state, who, len(cards))
        return True

    def apply_goods(self, state: GameState, who: int, power: int,
                    goods: Sequence[int]) -> bool:
        spec = self.describe_power(state, who, power) if power >= 0 else PowerSpec(vp=True, value=1)
        for world in goods:
            card = state.cards[world]
            if card.owner != who or card.where != Where.ACTIVE or card.num_goods <= 0:
                return False
        for world in goods:
            self.consume_good(state, who, world, spec)
        return True

    def produce_world(self, state: GameState, who: int, world: int) -> bool:
        card = state.cards[world]
        if card.owner != who or card.where != Where.ACTIVE:
            return False
        if card.design.good_type not in REAL_GOODS or card.num_goods > 0:
            return False
        card.num_goods = 1
        self.draw(state, who, card.design.draw_if_produced)
        return True

    def apply_produce(self, state: GameState, who: int, power: int) -> bool:
        if not state.cards[power].design.windfall:
            return False
        return self.produce_world(state, who, power)

    def continue_produce(self, state: GameState, who: int) -> None:
        for index in state.cards_in(who, Where.ACTIVE):
            if not state.cards[index].design.windfall:
                self.produce_world(state, who, index)


def run_round(rules: RulesEngine, state: GameState,
              actions: Optional[List[List[int]]] = None) -> None:
    """
    Play one real round.

    Actions are asked from each seat's controller unless given.
    """
    for who, player in enumerate(state.players):
        if actions is not None:
            player.action = list(actions[who])
        else:
            choice = player.control.make_choice(state, who, ChoiceKind.ACTION)
            player.action = list(choice.items)

    rules.note_actions(state)
    for action in range(Action.SEARCH, Action.PRODUCE + 1):
        state.cur_action = action
        if state.action_selected[action]:
            rules.run_phase(state, action)
        rules.clear_temp(state)
    state.cur_action = Action.ROUND_END
    rules.discard_phase(state)
    state.cur_action = Action.ROUND_START

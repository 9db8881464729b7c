"""
Decision handlers.

One handler per decision kind. Almost every handler follows the same shape:

1. Enumerate candidate choices, pruning or capping very large candidate sets
2. Apply each candidate to a hypothetical copy through the rules engine,
   skipping candidates the rules engine rejects
3. Finish the turn (or phase) on the copy and score it with the evaluator
4. Keep the best candidate, where "at least as good" tolerates a small
   epsilon of network noise

Hypothetical play (deciding for a copy during someone else's lookahead) is
cheaper: hidden cards are tracked as anonymous counts and opponents of the
searching player are modelled with rough heuristics.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from galaxy_ai.core.constants import (
    ACT_MASK, REAL_GOODS, Action, CardType, ChoiceKind, Completion, Phase,
    SearchCategory, Where,
)
from galaxy_ai.core.game import GameState, Takeover
from galaxy_ai.core.rules import PowerSpec, RulesEngine
from galaxy_ai.engine.actions import ActionSelector
from galaxy_ai.engine.cache import EvalCache, placement_key
from galaxy_ai.engine.config import EngineConfig
from galaxy_ai.engine.evaluator import Evaluator
from galaxy_ai.engine.roles import num_role_outputs, role_actions, uses_prestige
from galaxy_ai.engine.simulator import Simulator
from galaxy_ai.engine.subsets import SubsetSearch, choose
from galaxy_ai.errors import SampleCapacityError, SearchExhaustedError

logger = logging.getLogger(__name__)

# Cards kept in the opening hand
OPENING_HAND = 4

# Cards opponents are assumed to discard from their opening hands
OPENING_DISCARDS = 2

# Candidate-set limits for predicted opponent placements
PLACE_SAMPLE_CAP = 20
PLACE_FORCE_RETRIES = 20
PLACE_SKIP_WEIGHT = 5
PLACE_RANK = 3

# Costs a player may name for a lucky draw
LUCKY_COSTS = range(1, 8)


@dataclass
class Choice:
    """
    Result of a decision.

    Attributes:
        value: Chosen index or value, for kinds that return one
        items: Resulting candidate list (chosen cards, worlds, powers)
        special: Resulting special list (abilities, start worlds)
    """
    value: int = 0
    items: List[int] = field(default_factory=list)
    special: List[int] = field(default_factory=list)


def simple_rand(seed: int) -> Tuple[int, int]:
    """Small linear congruential generator used for placement sampling."""
    seed = (seed * 1664525 + 1013904223) & 0xFFFFFFFF
    return seed, (seed // 65536) % 32768


def good_better(state: GameState, good1: int, good2: int) -> int:
    """
    Compare two worlds holding goods for trading or consuming.

    Returns:
        0 if not comparable, 1 if interchangeable, 2 if the second is better
    """
    d1 = state.cards[good1].design
    d2 = state.cards[good2].design
    if d1.good_type != d2.good_type:
        return 0
    if d1.windfall == d2.windfall and d2.draw_if_produced > d1.draw_if_produced:
        return 2
    if (d1.windfall and not d2.windfall
            and d1.draw_if_produced <= d2.draw_if_produced
            and d1.trade_bonus == d2.trade_bonus):
        return 2
    if (d1.windfall != d2.windfall or d1.trade_bonus != d2.trade_bonus
            or d1.draw_if_produced != d2.draw_if_produced):
        return 0
    return 1


def condense_goods(state: GameState, goods: Sequence[int]) -> List[int]:
    """Remove goods identical to an earlier one or inferior to another one."""
    keep = []
    for i, good in enumerate(goods):
        skip = False
        for j, other in enumerate(goods):
            if i == j:
                continue
            result = good_better(state, good, other)
            if result == 2 or (i > j and result == 1):
                skip = True
                break
        if not skip:
            keep.append(good)
    return keep


def _effect(power: PowerSpec) -> tuple:
    return (power.goods_needed, power.vp, power.prestige, power.trade,
            power.trade_no_bonus, power.optional)


def power_dominated(p1: PowerSpec, p2: PowerSpec) -> bool:
    """Check whether consume power ``p1`` is never better than ``p2``."""
    if p1.signature == p2.signature and p1.value == p2.value and p1.times == p2.times:
        return True
    if p1.trade and p2.trade and p1.trade_no_bonus:
        return True
    if p1.trade or p2.trade:
        return False

    same = p1.signature == p2.signature
    if same and p1.times == p2.times and p1.value < p2.value:
        return True
    if same and p1.value == p2.value and p1.times > p2.times:
        return True
    if p1.times != p2.times or p1.value != p2.value:
        return False

    if p1.goods == p2.goods and _effect(p1) == _effect(p2) and p1.cards < p2.cards:
        return True
    return (
        replace(p1, vp=True).signature == p2.signature
        or replace(p1, prestige=True).signature == p2.signature
    )


def _never_compared(power: PowerSpec) -> bool:
    return power.bonus or power.unusual or power.optional or power.discard_hand


def chose_action(state: GameState, who: int, action: int) -> bool:
    """Check whether a player selected an action this round (prestige or not)."""
    return any(a >= 0 and (a & ACT_MASK) == action for a in state.players[who].action)


def score_consume(state: GameState, who: int, power: PowerSpec) -> int:
    """Rough value of a consume power, used to model opponents in lookahead."""
    if power.bonus or power.discard_hand:
        return 0
    vp = power.value if power.vp else 0
    cards = power.value * power.cards
    if power.trade:
        cards += 4
    if power.trade_no_bonus:
        cards -= 1
    if chose_action(state, who, Action.CONSUME_X2):
        vp *= 2
    score = int((vp * 110 + cards * 50) / max(power.goods_needed, 1))
    if not power.consumes_any:
        score += 6 * power.times
    if power.times > 1:
        score -= 5 * power.times
    return score


def _subsets(items: Sequence[int]) -> List[List[int]]:
    """All subsets of a (short) list, the empty one first."""
    result: List[List[int]] = [[]]
    for item in items:
        result = result + [subset + [item] for subset in result]
    return result


class ChoiceHandlers:
    """
    Decision handlers for every ChoiceKind.

    Attributes:
        rules: Rules engine
        evaluator: State evaluator
        simulator: Hypothetical-state simulator
        actions: Action selector
        place_cache: Cached values of predicted opponent placements
        config: Engine configuration
    """

    def __init__(
        self,
        rules: RulesEngine,
        evaluator: Evaluator,
        simulator: Simulator,
        actions: ActionSelector,
        place_cache: EvalCache,
        config: EngineConfig
    ):
        self.rules = rules
        self.evaluator = evaluator
        self.simulator = simulator
        self.actions = actions
        self.place_cache = place_cache
        self.config = config

        self._handlers: Dict[ChoiceKind, Callable[..., Choice]] = {
            ChoiceKind.ACTION: self.choose_action,
            ChoiceKind.START: self.choose_start,
            ChoiceKind.DISCARD: self.choose_discard,
            ChoiceKind.SAVE: self.choose_save,
            ChoiceKind.DISCARD_PRESTIGE: self.choose_discard_prestige,
            ChoiceKind.PLACE: self.choose_place,
            ChoiceKind.PAYMENT: self.choose_payment,
            ChoiceKind.SETTLE: self.choose_settle,
            ChoiceKind.TAKEOVER: self.choose_takeover,
            ChoiceKind.DEFEND: self.choose_defend,
            ChoiceKind.TAKEOVER_PREVENT: self.choose_takeover_prevent,
            ChoiceKind.UPGRADE: self.choose_upgrade,
            ChoiceKind.TRADE: self.choose_trade,
            ChoiceKind.CONSUME: self.choose_consume,
            ChoiceKind.CONSUME_HAND: self.choose_consume_hand,
            ChoiceKind.GOOD: self.choose_good,
            ChoiceKind.LUCKY: self.choose_lucky,
            ChoiceKind.ANTE: self.choose_ante,
            ChoiceKind.KEEP: self.choose_keep,
            ChoiceKind.WINDFALL: self.choose_windfall,
            ChoiceKind.PRODUCE: self.choose_produce,
            ChoiceKind.DISCARD_PRODUCE: self.choose_discard_produce,
            ChoiceKind.SEARCH_TYPE: self.choose_search_type,
            ChoiceKind.SEARCH_KEEP: self.choose_search_keep,
            ChoiceKind.OORT_KIND: self.choose_oort_kind,
        }

    def handle(
        self,
        state: GameState,
        who: int,
        kind: int,
        items: List[int],
        special: List[int],
        arg1: int = 0,
        arg2: int = 0,
        arg3: int = 0
    ) -> Choice:
        """
        Dispatch a decision to its handler.

        Raises:
            ValueError: If the decision kind is unknown
        """
        try:
            handler = self._handlers[ChoiceKind(kind)]
        except ValueError:
            raise ValueError(f"Unknown decision kind: {kind}") from None
        return handler(state, who, list(items), list(special), arg1, arg2, arg3)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def better(self, score: float, best: Optional[float]) -> bool:
        """At least as good as the best so far, within network noise."""
        return best is None or score >= best - self.config.score_epsilon

    def sim(self, state: GameState, who: int) -> GameState:
        return self.simulator.simulate(state, who)

    def score(self, state: GameState, who: int) -> float:
        return self.evaluator.evaluate(state, who)

    def finish(self, trial: GameState, who: int,
               partial: Completion = Completion.ROUND) -> float:
        """Finish the round (or phase) on a hypothetical state and score it."""
        self.simulator.complete_turn(trial, partial)
        return self.evaluator.evaluate(trial, who)

    def current(self, state: GameState, who: int) -> float:
        """Score of a state as it stands, without touching it."""
        return self.score(self.sim(state, who), who)

    def unknown_cards(self, state: GameState, who: int) -> List[int]:
        return [i for i, card in enumerate(state.cards) if not card.is_known(who)]

    def opening_score(self, state: GameState, who: int) -> Optional[float]:
        """Best score over first-round action choices (prestige actions excluded)."""
        best = None
        for i in range(num_role_outputs(state.expanded, state.advanced)):
            actions = role_actions(i, state.advanced)
            if uses_prestige(actions):
                continue
            trial = self.sim(state, who)
            trial.players[who].action = list(actions)
            self.simulator.play_round(trial)
            score = self.score(trial, who)
            if best is None or score > best:
                best = score
        return best

    def _exhausted(self, message: str, kind: ChoiceKind, state: GameState,
                   who: int, **context) -> SearchExhaustedError:
        context.update(player=who, round=state.round, phase=int(state.cur_action))
        logger.warning(f"{message} ({kind.name}, player {who})")
        return SearchExhaustedError(message, kind=kind, context=context)

    # ------------------------------------------------------------------
    # Actions and the opening
    # ------------------------------------------------------------------

    def choose_action(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        first, second = self.actions.choose(state, who, arg1)
        return Choice(value=first, items=[first, second])

    def choose_start(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """
        Choose a start world and the opening discards.

        Every start world is tried with every set of discards that leaves
        the opening hand; each combination is scored by its best first-round
        action, assuming opponents discard the usual two cards.
        """
        count = max(len(items) - OPENING_HAND, 0)
        best_world, best_discards, b_s = -1, None, None

        for world in special:
            self.place_cache.clear()

            def materialize(discards: List[int], world=world) -> Optional[float]:
                trial = self.sim(state, who)
                if not self.rules.apply_start(trial, who, world, discards):
                    return None
                for i, player in enumerate(trial.players):
                    if i != who:
                        player.fake_discards = OPENING_DISCARDS
                return self.opening_score(trial, who)

            search = SubsetSearch(materialize)
            search.run(items, count)
            if search.found and (b_s is None or search.best_score > b_s):
                best_world, best_discards, b_s = world, search.best, search.best_score

        if best_discards is None:
            raise self._exhausted("No legal start world", ChoiceKind.START, state, who)
        return Choice(value=best_world, items=best_discards, special=[best_world])

    # ------------------------------------------------------------------
    # Discards
    # ------------------------------------------------------------------

    def choose_discard(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """
        Choose ``arg1`` cards to discard.

        Very large hands are reduced greedily one card at a time. Moderately
        large ones drop their worst card repeatedly until the remaining
        subset search is small. Discards before the first round are scored
        over the first-round actions.
        """
        count = arg1
        player = state.players[who]
        config = self.config

        if state.simulation:
            player.fake_discards += count
            return Choice()

        if len(items) > config.discard_greedy_cap:
            per_card = []
            for index in items:
                trial = self.sim(state, who)
                self.rules.apply_discard(trial, who, [index])
                per_card.append(self.score(trial, who))
            pool = list(items)
            chosen = []
            for _ in range(count):
                b_i = max(range(len(pool)), key=lambda i: per_card[i])
                chosen.append(pool[b_i])
                pool[b_i] = pool[-1]
                per_card[b_i] = per_card[-1]
                pool.pop()
                per_card.pop()
            return Choice(items=chosen)

        pool = list(items)
        chosen: List[int] = []
        while len(pool) > 5 and count > 2 and len(pool) - count > 2:
            b_i, b_s = -1, None
            for i, index in enumerate(pool):
                trial = self.sim(state, who)
                self.rules.apply_discard(trial, who, chosen)
                self.rules.apply_discard(trial, who, [index])
                trial.players[who].fake_discards += count - 1
                if trial.cur_action == Action.EXPLORE_5_0:
                    self.simulator.complete_turn(trial, Completion.ROUND)
                score = self.score(trial, who)
                if self.better(score, b_s):
                    b_i, b_s = i, score
            chosen.append(pool[b_i])
            pool[b_i] = pool[-1]
            pool.pop()
            count -= 1

        base = self.sim(state, who)
        self.rules.apply_discard(base, who, chosen)
        opening = state.cur_action == Action.ROUND_START and state.round == 0
        if opening:
            self.place_cache.clear()

        def materialize(discards: List[int]) -> Optional[float]:
            trial = self.sim(base, who)
            self.rules.apply_discard(trial, who, discards)
            if opening:
                for i, other in enumerate(trial.players):
                    if i != who:
                        other.fake_discards = OPENING_DISCARDS
                return self.opening_score(trial, who)
            if trial.cur_action == Action.EXPLORE_5_0:
                self.simulator.complete_turn(trial, Completion.ROUND)
            return self.score(trial, who)

        search = SubsetSearch(materialize)
        search.run(pool, count)
        if not search.found:
            raise self._exhausted("Failed to find good discard set",
                                  ChoiceKind.DISCARD, state, who, count=arg1)
        return Choice(items=chosen + search.best)

    def choose_save(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        if state.simulation:
            return Choice(items=[-1])

        best, b_s = -1, None
        for index in items:
            trial = self.sim(state, who)
            trial.move_card(index, who, Where.SAVED)
            score = self.finish(trial, who)
            if self.better(score, b_s):
                best, b_s = index, score
        return Choice(items=[best])

    def choose_discard_prestige(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """Optionally discard a card for a prestige (anonymously in lookahead)."""
        b_s = self.finish(self.sim(state, who), who)

        if state.simulation:
            trial = self.sim(state, who)
            trial.players[who].fake_discards += 1
            self.rules.gain_prestige(trial, who, 1)
            if self.better(self.finish(trial, who), b_s):
                state.players[who].fake_discards += 1
                self.rules.gain_prestige(state, who, 1)
            return Choice()

        best = -1
        for index in items:
            trial = self.sim(state, who)
            trial.move_card(index, -1, Where.DISCARD)
            self.rules.gain_prestige(trial, who, 1)
            score = self.finish(trial, who)
            if self.better(score, b_s):
                best, b_s = index, score
        return Choice(items=[best] if best >= 0 else [])

    # ------------------------------------------------------------------
    # Placement and payment
    # ------------------------------------------------------------------

    def choose_place(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """
        Choose a card to develop or settle (-1 for none).

        ``arg1`` is the phase, ``arg2`` the settle power in use (-1 for
        none) and ``arg3`` is set for an additional placement in the same
        phase, in which case opponents have already placed.
        """
        phase, power, additional = arg1, arg2, arg3

        if not state.simulation:
            self.place_cache.clear()
        if state.simulation and state.sim_who != who:
            return Choice(value=self.place_opponent(state, who, phase, power))
        if state.simulation and state.players[state.sim_who].low_hand == 0:
            return Choice(value=-1)
        if not items:
            return Choice(value=-1)

        base = self.sim(state, who)
        if not additional:
            for i in range(state.num_players):
                if i == who:
                    continue
                if state.simulation:
                    which = state.players[i].placing
                else:
                    which = self.place_opponent(base, i, phase, power)
                    base.players[i].placing = which
                self.rules.apply_place(base, i, which)

        trial = self.sim(base, who)
        self.rules.apply_place(trial, who, -1)
        b_s = self.finish(trial, who)

        best = -1
        for index in items:
            trial = self.sim(base, who)
            trial.players[who].placing = index
            if not self.rules.apply_place(trial, who, index):
                continue
            score = self.finish(trial, who)
            if self.better(score, b_s):
                best, b_s = index, score
        return Choice(value=best)

    def place_opponent(self, state: GameState, who: int, phase: int, power: int) -> int:
        """
        Predict the card an opponent places during lookahead.

        Cards the searching player has not seen are sampled in proportion to
        the opponent's hand and draws, each is tried (claiming it into the
        opponent's hand first), and the opponent is assumed to make a
        reasonable rather than perfect choice: the fourth-worst outcome for
        the searching player, or the worst if the opponent chose this phase.

        Returns:
            Card placed, or -1 for none
        """
        player = state.players[who]
        chose = chose_action(state, who, state.cur_action)
        sim_who = state.sim_who

        if phase == Phase.DEVELOP and player.skip_develop and not chose:
            return -1
        if phase == Phase.SETTLE and player.skip_settle:
            return -1

        force = windfall_only = False
        if (phase == Phase.SETTLE and chose_action(state, who, Action.CONSUME_TRADE)
                and state.count_goods(who) == 0):
            force = windfall_only = True

        hand = state.hand_size(who)
        if hand <= 0:
            return -1

        card_type = CardType.DEVELOPMENT if phase == Phase.DEVELOP else CardType.WORLD
        max_cost = hand + self.rules.develop_discount(state, who) - 1
        owned = {
            card.design.index for card in state.cards
            if card.owner == who and card.where == Where.ACTIVE
        }

        unknown = [
            i for i, card in enumerate(state.cards)
            if not card.is_known(sim_who)
            and card.design.card_type == card_type
            and (not windfall_only or card.design.windfall)
        ]
        if not unknown:
            return -1

        draws = state.count_area(who, Where.HAND) + player.drawn_round
        if draws == 0:
            return -1
        if chose:
            draws += 2
            force = True
        draws = min(draws, PLACE_SAMPLE_CAP)

        scores: List[Tuple[float, int]] = []
        seed = 0
        attempts = retries = 0
        while attempts < draws:
            if force and not scores and retries < PLACE_FORCE_RETRIES:
                retries += 1
            else:
                attempts += 1

            seed, value = simple_rand(seed)
            index = unknown[value % len(unknown)]
            design = state.cards[index].design
            if phase == Phase.DEVELOP and (design.cost > max_cost or design.index in owned):
                continue
            if phase == Phase.SETTLE and not self.rules.settle_legal(state, who, index):
                continue

            entry = self.place_cache.lookup(placement_key(state, sim_who, who, index, power))
            if not entry.valid:
                trial = self.sim(state, who)
                if self.rules.claim_card(trial, who, index):
                    trial.players[who].fake_discards += 1
                entry.value = self._place_value(trial, who, index)
            scores.append((entry.value, index))

        if not scores:
            return -1

        entry = self.place_cache.lookup(placement_key(state, sim_who, who, -1, power))
        if not entry.valid:
            entry.value = self._place_value(self.sim(state, who), who, -1)
        if not force:
            scores.extend([(entry.value, -1)] * PLACE_SKIP_WEIGHT)

        scores.sort(key=lambda item: item[0])
        rank = 0 if chose else PLACE_RANK
        chosen = scores[min(rank, len(scores) - 1)][1]

        if chosen != -1:
            if self.rules.claim_card(state, who, chosen):
                player.fake_discards += 1
            state.cards[chosen].known = (1 << state.num_players) - 1
        return chosen

    def _place_value(self, trial: GameState, who: int, index: int) -> float:
        trial.players[who].placing = index
        self.rules.apply_place(trial, who, index)
        return self.finish(trial, trial.sim_who, Completion.CHECK)

    def choose_payment(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """
        Choose abilities and cards to pay for card ``arg1``.

        Every subset of the offered abilities is tried; for each, every set
        of hand cards of the needed size. In lookahead the payment is made
        with anonymous cards, so only the ability subsets are compared.
        """
        which = arg1
        cards = items[:self.config.payment_cap]

        legal: List[Tuple[List[int], int]] = []
        best: Optional[Tuple[List[int], List[int]]] = None
        b_s = None

        for used in _subsets(special):
            need = self.rules.payment_needed(state, who, which, used)
            if need < 0 or need > len(cards):
                continue

            if state.simulation:
                if len(legal) >= self.config.payment_table_size:
                    raise SampleCapacityError(
                        "Legal payment table overflowed",
                        context={"player": who, "card": which,
                                 "capacity": self.config.payment_table_size}
                    )
                legal.append((used, need))
                continue

            base = self.sim(state, who)
            for i in range(who + 1, state.num_players):
                placing = state.players[i].placing
                if placing != -1:
                    self.rules.apply_place(base, i, placing)

            def materialize(payment: List[int], used=used, base=base) -> Optional[float]:
                trial = self.sim(base, who)
                if not self.rules.apply_payment(trial, who, which, payment, used):
                    return None
                return self.finish(trial, who)

            search = SubsetSearch(materialize)
            search.run(cards, need)
            if search.found and self.better(search.best_score, b_s):
                best, b_s = (search.best, used), search.best_score

        if best is None and len(legal) == 1:
            used, need = legal[0]
            best = ([-1] * need, used)
        elif best is None:
            for used, need in legal:
                trial = self.sim(state, who)
                payment = [-1] * need
                if not self.rules.apply_payment(trial, who, which, payment, used):
                    raise self._exhausted("Payment failed", ChoiceKind.PAYMENT,
                                          state, who, card=which)
                score = self.finish(trial, who, Completion.CHECK)
                if self.better(score, b_s):
                    best, b_s = (payment, used), score

        if best is None:
            raise self._exhausted("Couldn't find valid payment", ChoiceKind.PAYMENT,
                                  state, who, card=which)
        return Choice(items=list(best[0]), special=list(best[1]))

    def choose_settle(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        return Choice(items=items[:1], special=special[:1])

    # ------------------------------------------------------------------
    # Takeovers
    # ------------------------------------------------------------------

    def choose_takeover(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """Choose a (power, target world) takeover, or none (value -1)."""
        b_s = self.finish(self.sim(state, who), who)
        targeted = {takeover.target for takeover in state.takeovers}
        best, best_power = -1, None

        for power in special:
            for target in items:
                if target in targeted:
                    continue
                trial = self.sim(state, who)
                if not self.rules.apply_takeover(trial, who, target, power):
                    continue
                trial.takeovers.append(Takeover(target=target, player=who, power_card=power))
                score = self.finish(trial, who)
                if self.better(score, b_s):
                    best, best_power, b_s = target, power, score

        return Choice(value=best, special=[best_power] if best_power is not None else [])

    def choose_defend(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """
        Choose abilities and cards to defend world ``arg1`` against player
        ``arg2``, who leads in military by ``arg3``.
        """
        which, opponent, deficit = arg1, arg2, arg3
        cards = items[:self.config.defend_cap]
        best: Optional[Tuple[List[int], List[int]]] = None
        b_s = None

        for used in _subsets(special):
            if state.simulation:
                for count in range(len(cards) + 1):
                    trial = self.sim(state, who)
                    payment = [-1] * count
                    if not self.rules.apply_defend(trial, who, which, opponent,
                                                   deficit, payment, used):
                        continue
                    score = self.score(trial, who)
                    if self.better(score, b_s):
                        best, b_s = (payment, used), score
                continue

            def materialize(payment: List[int], used=used) -> Optional[float]:
                trial = self.sim(state, who)
                if not self.rules.apply_defend(trial, who, which, opponent,
                                               deficit, payment, used):
                    return None
                return self.score(trial, who)

            search = SubsetSearch(materialize)
            search.run_range(cards, 0, len(cards))
            if search.found and self.better(search.best_score, b_s):
                best, b_s = (search.best, used), search.best_score

        if best is None:
            raise self._exhausted("Couldn't find valid defense", ChoiceKind.DEFEND,
                                  state, who, world=which, opponent=opponent)
        return Choice(items=list(best[0]), special=list(best[1]))

    def choose_takeover_prevent(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """Choose a pending takeover to defeat for a prestige, or none."""
        trial = self.sim(state, who)
        self.rules.resolve_takeovers(trial)
        b_s = self.score(trial, who)

        best = -1
        for i, takeover in enumerate(items):
            trial = self.sim(state, who)
            self.rules.defeat_takeover(trial, who, takeover)
            trial.players[who].prestige -= 1
            self.rules.resolve_takeovers(trial)
            score = self.score(trial, who)
            if self.better(score, b_s):
                best, b_s = i, score

        if best < 0:
            return Choice()
        return Choice(items=[items[best]], special=special[best:best + 1])

    def choose_upgrade(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        b_s = self.current(state, who)
        best = None
        for old in special:
            for replacement in items:
                trial = self.sim(state, who)
                if not self.rules.apply_upgrade(trial, who, replacement, old):
                    continue
                score = self.score(trial, who)
                if self.better(score, b_s):
                    best, b_s = (replacement, old), score

        if best is None:
            return Choice()
        return Choice(items=[best[0]], special=[best[1]])

    # ------------------------------------------------------------------
    # Consume
    # ------------------------------------------------------------------

    def choose_trade(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """Choose the good to trade (``arg1`` set: no trade bonuses)."""
        goods = condense_goods(state, items)
        opponent = state.simulation and state.sim_who != who

        best, b_s = -1, None
        for world in goods:
            trial = self.sim(state, who)
            if not self.rules.apply_trade(trial, who, world, bool(arg1)):
                continue
            if opponent:
                score = float(trial.players[who].fake_hand)
            else:
                if not state.simulation:
                    self.rules.continue_consume(trial, who)
                    self.simulator.complete_turn(trial, Completion.ROUND)
                score = self.score(trial, who)
            if self.better(score, b_s):
                best, b_s = world, score

        if best < 0:
            raise self._exhausted("Could not find trade", ChoiceKind.TRADE, state, who)
        return Choice(items=[best])

    def choose_consume(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """
        Choose a consume power to use next (``arg1`` set: using none is allowed).

        Free draw and VP powers are always used first. Opponents in lookahead
        use the power with the best rough value. Otherwise dominated powers
        are pruned, and optional powers are only considered when nothing else
        could be used.
        """
        powers = [self.rules.describe_power(state, who, power) for power in items]

        def chosen(i: int) -> Choice:
            return Choice(items=[items[i]], special=special[i:i + 1])

        for i, power in enumerate(powers):
            if not power.bonus and power.always_first:
                return chosen(i)

        if state.simulation and who != state.sim_who:
            best, b_s = -1, -1
            for i, power in enumerate(powers):
                score = score_consume(state, who, power)
                if score > b_s:
                    best, b_s = i, score
            if best < 0:
                return Choice()
            return chosen(best)

        skip = [False] * len(items)
        if not state.simulation:
            for i, power in enumerate(powers):
                if _never_compared(power):
                    continue
                for j, other in enumerate(powers):
                    if i == j or skip[j] or _never_compared(other):
                        continue
                    if power_dominated(power, other):
                        skip[i] = True
                        break

        def consume(i: int) -> Optional[float]:
            trial = self.sim(state, who)
            if not self.rules.apply_consume(trial, who, items[i]):
                return None
            if not state.simulation:
                self.rules.continue_consume(trial, who)
                self.simulator.complete_turn(trial, Completion.ROUND)
            return self.score(trial, who)

        best, b_s = -1, None
        for i, power in enumerate(powers):
            if skip[i] or power.bonus or power.optional or power.discard_hand:
                continue
            score = consume(i)
            if score is not None and self.better(score, b_s):
                best, b_s = i, score

        if b_s is None:
            trial = self.sim(state, who)
            if not state.simulation:
                self.simulator.complete_turn(trial, Completion.ROUND)
            b_s = self.score(trial, who)
            for i in range(len(items)):
                score = consume(i)
                if score is not None and self.better(score, b_s):
                    best, b_s = i, score

        if best < 0:
            if not arg1:
                raise self._exhausted("Selected no power, but some are mandatory",
                                      ChoiceKind.CONSUME, state, who, powers=len(items))
            return Choice()
        return chosen(best)

    def choose_consume_hand(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """Choose cards from hand to consume with power ``arg1``."""
        power = self.rules.describe_power(state, who, arg1)

        if state.simulation:
            player = state.players[who]
            n = max(min(state.hand_size(who), power.times), 0)
            player.fake_discards += n
            if power.vp:
                player.vp += n
                state.vp_pool -= n
            elif power.cards:
                for _ in range(n):
                    self.rules.draw_card(state, who)
            return Choice()

        if len(items) > self.config.consume_hand_cap:
            return Choice(items=items[:power.times])

        def materialize(cards: List[int]) -> Optional[float]:
            trial = self.sim(state, who)
            if not self.rules.apply_consume_hand(trial, who, arg1, cards):
                return None
            self.rules.continue_consume(trial, who)
            return self.finish(trial, who)

        search = SubsetSearch(materialize)
        search.run_range(items, 0, power.times)
        if not search.found:
            raise self._exhausted("Failed to find good discard set",
                                  ChoiceKind.CONSUME_HAND, state, who, power=arg1)
        return Choice(items=search.best)

    def choose_good(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """Choose between ``arg1`` and ``arg2`` goods to consume with power ``special[0]``."""
        low, high = arg1, arg2
        if state.simulation and who != state.sim_who:
            return Choice(items=items[:high], special=special)

        goods = condense_goods(state, items) if high == 1 else list(items)
        if len(goods) == low == high:
            return Choice(items=goods, special=special)

        power = special[0] if special else -1

        def materialize(chosen: List[int]) -> Optional[float]:
            trial = self.sim(state, who)
            if not self.rules.apply_goods(trial, who, power, chosen):
                return None
            return self.score(trial, who)

        search = SubsetSearch(materialize)
        search.run_range(goods, low, high)
        if not search.found:
            raise self._exhausted("Failed to find consume set", ChoiceKind.GOOD,
                                  state, who, low=low, high=high)
        return Choice(items=search.best, special=special)

    # ------------------------------------------------------------------
    # Gambles
    # ------------------------------------------------------------------

    def choose_lucky(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """Name the cost most likely to pay off for a lucky draw."""
        if state.simulation:
            return Choice(value=1)

        unknown = self.unknown_cards(state, who)
        if not unknown:
            return Choice(value=1)
        count = len(unknown)
        base = self.current(state, who)

        best, b_s = -1, None
        for cost in LUCKY_COSTS:
            score = 0.0
            for index in unknown:
                if state.cards[index].design.cost != cost:
                    score += base / count
                    continue
                trial = self.sim(state, who)
                trial.move_card(index, who, Where.HAND)
                score += self.score(trial, who) / count
            if self.better(score, b_s):
                best, b_s = cost, score
        return Choice(value=best)

    def choose_ante(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """
        Choose a card to ante, or none (-1).

        The ante is lost unless a drawn card costs more; the chance of
        losing is the chance that all ``cost`` unknown cards drawn are no
        more expensive.
        """
        if state.simulation:
            return Choice(value=-1)

        unknown = self.unknown_cards(state, who)
        count = len(unknown)
        best, b_s = -1, self.current(state, who)

        for index in items:
            cost = state.cards[index].design.cost
            num_win = sum(1 for i in unknown if state.cards[i].design.cost > cost)
            total = choose(count, cost)
            chance = choose(count - num_win, cost) / total if total else 1.0

            trial = self.sim(state, who)
            trial.move_card(index, -1, Where.DISCARD)
            score = chance * self.score(trial, who)

            trial = self.sim(state, who)
            self.rules.draw_card(trial, who)
            score += (1.0 - chance) * self.score(trial, who)

            if self.better(score, b_s):
                best, b_s = index, score
        return Choice(value=best)

    def choose_keep(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        best, b_s = -1, None
        for index in items:
            trial = self.sim(state, who)
            trial.move_card(index, who, Where.HAND)
            score = self.score(trial, who)
            if self.better(score, b_s):
                best, b_s = index, score
        return Choice(value=best)

    # ------------------------------------------------------------------
    # Produce
    # ------------------------------------------------------------------

    def choose_windfall(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """Choose the windfall world to produce on."""
        worlds = condense_goods(state, items)
        if len(worlds) == 1:
            return Choice(items=worlds)

        best, b_s = -1, None
        for world in worlds:
            trial = self.sim(state, who)
            self.rules.produce_world(trial, who, world)
            self.rules.continue_produce(trial, who)
            score = self.finish(trial, who)
            if self.better(score, b_s):
                best, b_s = world, score

        if best < 0:
            raise self._exhausted("Could not find windfall production",
                                  ChoiceKind.WINDFALL, state, who)
        return Choice(items=[best])

    def choose_produce(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """Choose a produce power to use next."""
        powers = [self.rules.describe_power(state, who, power) for power in items]

        def chosen(i: int) -> Choice:
            return Choice(items=[items[i]], special=special[i:i + 1])

        for i, power in enumerate(powers):
            if power.bonus or power.needs_discard:
                continue
            if power.windfall_specific:
                return chosen(i)

        for i, power in enumerate(powers):
            if power.bonus:
                return chosen(i)
            if power.needs_discard:
                continue
            if power.windfall_any:
                return chosen(i)

        best, b_s = -1, None
        for i, power in enumerate(items):
            trial = self.sim(state, who)
            if not self.rules.apply_produce(trial, who, power):
                continue
            self.rules.continue_produce(trial, who)
            score = self.finish(trial, who)
            if self.better(score, b_s):
                best, b_s = i, score

        if best < 0:
            raise self._exhausted("Could not find production", ChoiceKind.PRODUCE,
                                  state, who, powers=len(items))
        return chosen(best)

    def choose_discard_produce(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """Choose a (hand card, world) pair to discard for a good, or none."""
        trial = self.sim(state, who)
        self.rules.continue_produce(trial, who)
        b_s = self.finish(trial, who)

        worlds = condense_goods(state, special)

        if state.simulation:
            if state.hand_size(who) <= 0:
                return Choice()
            best = -1
            for world in worlds:
                trial = self.sim(state, who)
                trial.players[who].fake_discards += 1
                self.rules.produce_world(trial, who, world)
                score = self.finish(trial, who)
                if self.better(score, b_s):
                    best, b_s = world, score
            if best < 0:
                return Choice()
            state.players[who].fake_discards += 1
            self.rules.produce_world(state, who, best)
            return Choice(special=[best])

        best_pair = None
        for world in worlds:
            for card in items:
                trial = self.sim(state, who)
                if not self.rules.apply_discard_produce(trial, who, world, card, arg1):
                    continue
                self.rules.continue_produce(trial, who)
                score = self.finish(trial, who)
                if self.better(score, b_s):
                    best_pair, b_s = (card, world), score

        if best_pair is None:
            return Choice()
        return Choice(items=[best_pair[0]], special=[best_pair[1]])

    # ------------------------------------------------------------------
    # Search action
    # ------------------------------------------------------------------

    def _category_average(self, state: GameState, who: int, category: int,
                          partial: Optional[Completion]) -> Optional[float]:
        """Average score over claiming each matching card the player has not seen."""
        total, num = 0.0, 0
        for index in self.unknown_cards(state, who):
            if not self.rules.search_match(state, index, category):
                continue
            trial = self.sim(state, who)
            self.rules.claim_card(trial, who, index)
            if partial is not None:
                self.simulator.complete_turn(trial, partial)
            total += self.score(trial, who)
            num += 1
        return total / num if num else None

    def choose_search_type(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        best, b_s = -1, None
        for category in SearchCategory:
            if state.takeover_disabled and category == SearchCategory.TAKEOVER:
                continue
            score = self._category_average(state, who, category, None)
            if score is None:
                continue
            if self.better(score, b_s):
                best, b_s = int(category), score

        if best < 0:
            best = int(SearchCategory.SIX_DEV)
        return Choice(value=best)

    def choose_search_keep(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        """Keep card ``arg1`` found for category ``arg2`` (1) or keep searching (0)."""
        if state.simulation:
            return Choice(value=1)

        trial = self.sim(state, who)
        self.rules.claim_card(trial, who, arg1)
        b_s = self.finish(trial, who)

        average = self._category_average(state, who, arg2, Completion.ROUND)
        if average is None:
            return Choice(value=1)
        return Choice(value=0 if self.better(average, b_s) else 1)

    def choose_oort_kind(self, state, who, items, special, arg1, arg2, arg3) -> Choice:
        best, b_s = int(REAL_GOODS[-1]), None
        for kind in REAL_GOODS:
            trial = self.sim(state, who)
            trial.oort_kind = kind
            score = self.score(trial, who)
            if self.better(score, b_s):
                best, b_s = int(kind), score
        return Choice(value=best)

"""
Feature extraction for the value and predictor networks.

Features are written in a fixed order that depends only on the ruleset
(design table, player count, expansion level, advanced flag), never on the
state's values, so the same writer can produce the input names once and
the input values for every later state.

Value-network layout:
1. Global: game over, VP pool, largest tableau, game clock, goals
2. Viewpoint hand: one entry per design, with fractional mass for cards
   the observer cannot see, then counts of affordable developments/worlds
3. One player block per seat, starting with the viewpoint
4. Distance-behind-leader thresholds per seat

Predictor layout: player blocks (with previous actions, without winner),
leader distances of the other seats, then the global features.
"""
from typing import List, Optional

import numpy as np

from galaxy_ai.core.constants import (
    ACT_MASK, ACT_PRESTIGE, CLOCK_ROUND_LIMIT, GAME_END_CARDS, MAX_ACTION,
    MAX_GOAL, REAL_GOODS, CardType, Leader, Where, action_name,
)
from galaxy_ai.core.game import GameState
from galaxy_ai.core.rules import RulesEngine

# Threshold counts per player block
GOODS_STEPS = 6
HAND_STEPS = 12
DRAWN_STEPS = 15
DEVELOP_STEPS = 10
WORLD_STEPS = 10
SIX_DEV_STEPS = 5
MILITARY_STEPS = 10
PRESTIGE_STEPS = 15
BUILD_STEPS = 5
GLOBAL_STEPS = 12

# Leader distance thresholds per category
LEADER_STEPS = {
    Leader.VP: 20,
    Leader.PRESTIGE: 5,
    Leader.BUILT: 5,
    Leader.CARDS: 10,
    Leader.GOODS: 5,
}


class FeatureWriter:
    """Append-only feature vector, optionally recording input names."""

    def __init__(self, with_names: bool = False):
        self.values: List[float] = []
        self.names: Optional[List[str]] = [] if with_names else None

    def add(self, value, name: str = "") -> None:
        self.values.append(float(value))
        if self.names is not None:
            self.names.append(name)

    def thresholds(self, value: float, steps: int, name: str, scale: int = 1) -> None:
        """One-hot-style thresholds: ``value > i * scale`` for each step."""
        for i in range(steps):
            self.add(value > i * scale, f"{name} > {i * scale}")

    def __len__(self) -> int:
        return len(self.values)

    def vector(self) -> np.ndarray:
        return np.asarray(self.values, dtype=float)


def game_clock(state: GameState, max_active: int) -> int:
    """Rough number of rounds left before the game ends."""
    if state.round > CLOCK_ROUND_LIMIT:
        return 0
    return min(GAME_END_CARDS - max_active, state.vp_pool // state.num_players)


def hand_presence(state: GameState, who: int, observer: int) -> List[float]:
    """
    Per-design presence in a player's hand, as the observer sees it.

    Cards the observer knows count 1 (0.5 when saved under a world). When
    the observer is someone else, the player's unseen cards are spread as
    fractional mass over every card the observer has not seen.
    """
    values = [0.0] * len(state.designs)
    hidden = 0

    for card in state.cards:
        if card.owner != who:
            continue
        if card.where == Where.HAND:
            if observer == who or card.is_known(observer):
                values[card.design.index] = 1.0
            else:
                hidden += 1
        elif card.where == Where.SAVED:
            values[card.design.index] = max(values[card.design.index], 0.5)

    if observer != who:
        player = state.players[who]
        hidden = max(hidden + player.fake_hand - player.fake_discards, 0)
        if hidden:
            unknown = [
                card for card in state.cards
                if not card.is_known(observer)
                and card.where in (Where.DECK, Where.HAND)
                and card.owner != observer
            ]
            if unknown:
                mass = hidden / len(unknown)
                for card in unknown:
                    index = card.design.index
                    values[index] = min(1.0, values[index] + mass)

    return values


def leader_values(state: GameState, who: int) -> List[int]:
    """Category values compared against the leader, indexed by Leader."""
    player = state.players[who]
    built = state.count_area(who, Where.ACTIVE)
    return [
        player.end_vp,
        player.prestige,
        built,
        state.hand_size(who),
        state.count_goods(who),
    ]


def write_global(state: GameState, writer: FeatureWriter, with_over: bool) -> None:
    n = state.num_players
    if with_over:
        writer.add(state.game_over, "Game over")
    writer.thresholds(state.vp_pool, GLOBAL_STEPS, "VP pool", scale=n)
    max_active, _ = state.active_count_max()
    writer.thresholds(max_active, GLOBAL_STEPS, "Max active")
    writer.thresholds(game_clock(state, max_active), GLOBAL_STEPS, "Clock")
    if state.uses_goals:
        for i in range(MAX_GOAL):
            writer.add(state.goal_active[i], f"Goal {i} active")
        for i in range(MAX_GOAL):
            writer.add(state.goal_avail[i], f"Goal {i} available")


def write_player(
    rules: RulesEngine,
    state: GameState,
    who: int,
    writer: FeatureWriter,
    seat: int,
    with_winner: bool = True,
    with_actions: bool = False,
) -> None:
    """
    Write one player block.

    Args:
        rules: Rules engine used for derived values
        state: Game state
        who: Player described
        writer: Feature writer
        seat: Seat offset from the viewpoint (used in names)
        with_winner: Append the winner flag
        with_actions: Append the previous-round action one-hot
    """
    prefix = f"P{seat}"
    player = state.players[who]
    over = state.game_over
    designs = state.designs

    active = [False] * len(designs)
    goods = [False] * len(designs)
    explore_mix = False
    developments = worlds = six_devs = 0
    kinds = set()
    for card in state.cards:
        if card.owner != who or card.where != Where.ACTIVE:
            continue
        design = card.design
        active[design.index] = True
        if card.num_goods > 0:
            goods[design.index] = True
            kinds.add(design.good_type)
        if design.explore_mix:
            explore_mix = True
        if design.card_type == CardType.DEVELOPMENT:
            developments += 1
            if design.cost == 6:
                six_devs += 1
        else:
            worlds += 1

    for design in designs:
        writer.add(active[design.index], f"{prefix} active {design.name}")
    for design in designs:
        if design.good_type in REAL_GOODS:
            writer.add(goods[design.index], f"{prefix} good on {design.name}")

    writer.thresholds(state.count_goods(who), GOODS_STEPS, f"{prefix} goods")
    for kind in REAL_GOODS:
        writer.add(kind in kinds, f"{prefix} has {kind.name.lower()} good")

    hand = 0 if over else state.hand_size(who)
    writer.thresholds(hand, HAND_STEPS, f"{prefix} hand")
    writer.thresholds(player.drawn_round, DRAWN_STEPS, f"{prefix} drawn")
    writer.thresholds(developments, DEVELOP_STEPS, f"{prefix} developments")
    writer.thresholds(worlds, WORLD_STEPS, f"{prefix} worlds")
    writer.thresholds(six_devs, SIX_DEV_STEPS, f"{prefix} six-cost developments")
    writer.thresholds(rules.military_strength(state, who), MILITARY_STEPS, f"{prefix} military")
    writer.add(player.skip_develop, f"{prefix} skip develop")
    writer.add(player.skip_settle, f"{prefix} skip settle")
    writer.add(explore_mix, f"{prefix} explore mix")

    for i, flag in enumerate(rules.consume_ability(state, who, True)):
        writer.add(flag, f"{prefix} consume after produce {i}")
    for i, flag in enumerate(rules.consume_ability(state, who, False)):
        writer.add(flag and not over, f"{prefix} consume now {i}")

    if state.uses_goals:
        for i in range(MAX_GOAL):
            writer.add(player.goal_claimed[i], f"{prefix} claimed goal {i}")

    if state.uses_prestige:
        writer.add(player.prestige_action_used or over, f"{prefix} prestige action used")
        writer.thresholds(player.prestige, PRESTIGE_STEPS, f"{prefix} prestige")

    if with_actions:
        previous = [a for a in player.prev_action if a >= 0]
        for act in range(MAX_ACTION):
            writer.add(
                any(a & ACT_MASK == act for a in previous),
                f"{prefix} previous {action_name(act)}"
            )
        writer.add(any(a & ACT_PRESTIGE for a in previous), f"{prefix} previous prestige")

    if with_winner:
        writer.add(player.winner, f"{prefix} winner")


def write_leaders(
    rules: RulesEngine,
    state: GameState,
    who: int,
    writer: FeatureWriter,
    skip_viewpoint: bool = False,
) -> None:
    """Write distance-behind-leader thresholds for every seat from the viewpoint."""
    n = state.num_players
    values = [leader_values(state, i) for i in range(n)]
    best = [max(v[cat] for v in values) for cat in range(len(Leader))]

    for seat in range(n):
        if skip_viewpoint and seat == 0:
            continue
        mine = values[(who + seat) % n]
        for cat, steps in LEADER_STEPS.items():
            if cat == Leader.PRESTIGE and not state.uses_prestige:
                continue
            for j in range(steps):
                writer.add(
                    mine[cat] + j < best[cat],
                    f"P{seat} {cat.name.lower()} behind leader by > {j}"
                )


def evaluator_features(
    rules: RulesEngine,
    state: GameState,
    who: int,
    writer: FeatureWriter
) -> None:
    """
    Write the value-network inputs for a state from a viewpoint.

    The rules engine must already have scored the state.
    """
    n = state.num_players
    observer = state.sim_who if state.simulation else who

    write_global(state, writer, with_over=True)

    if state.game_over:
        hand = [0.0] * len(state.designs)
    else:
        hand = hand_presence(state, who, observer)
    for design in state.designs:
        writer.add(hand[design.index], f"Hand {design.name}")

    build_dev = build_world = 0
    if not state.game_over:
        budget = state.hand_size(who) + rules.develop_discount(state, who) - 1
        for index in state.cards_in(who, Where.HAND):
            card = state.cards[index]
            if observer != who and not card.is_known(observer):
                continue
            if card.design.card_type == CardType.DEVELOPMENT:
                if card.design.cost <= budget:
                    build_dev += 1
            elif rules.settle_legal(state, who, index):
                build_world += 1
    writer.thresholds(build_dev, BUILD_STEPS, "Can develop")
    writer.thresholds(build_world, BUILD_STEPS, "Can settle")

    for seat in range(n):
        write_player(rules, state, (who + seat) % n, writer, seat)

    write_leaders(rules, state, who, writer)


def predictor_features(
    rules: RulesEngine,
    state: GameState,
    who: int,
    writer: FeatureWriter
) -> None:
    """
    Write the predictor inputs describing a player about to choose actions.

    The rules engine must already have scored the state. The per-action
    score inputs are appended separately by the predictor.
    """
    n = state.num_players
    for seat in range(n):
        write_player(
            rules, state, (who + seat) % n, writer, seat,
            with_winner=False, with_actions=True
        )
    write_leaders(rules, state, who, writer, skip_viewpoint=True)
    write_global(state, writer, with_over=False)

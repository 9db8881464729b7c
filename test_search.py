#!/usr/bin/env python
"""
Tests for the search building blocks.

This script tests:
1. Subset enumeration counts, ranges and tie handling
2. Hypothetical copies and turn completion
3. Action tables for the basic and advanced games
4. Good and consume-power pruning helpers
"""
import unittest

from galaxy_ai.core.constants import ACT_PRESTIGE, Action, Completion, GoodType, Where
from galaxy_ai.core.rules import PowerSpec
from galaxy_ai.engine.decisions import (
    condense_goods, good_better, power_dominated, score_consume, simple_rand,
)
from galaxy_ai.engine.roles import (
    ADV_COMBO, ROLE_OUT, actions_legal, build_advanced_combos, num_role_outputs, role_actions,
)
from galaxy_ai.engine.simulator import SIMULATION_SEED, Simulator
from galaxy_ai.engine.subsets import SubsetSearch, best_subset, choose
from galaxy_ai.errors import SimulationError
from toy_rules import MiniGalaxyRules, new_game


def card_of(state, name, nth=0):
    """Index of the nth physical card of a design."""
    matches = [i for i, card in enumerate(state.cards) if card.design.name == name]
    return matches[nth]


class TestSubsetSearch(unittest.TestCase):
    """Include/exclude subset enumeration."""

    def test_visits_every_subset_once(self):
        seen = []

        def score(subset):
            seen.append(tuple(subset))
            return float(sum(subset))

        search = SubsetSearch(score)
        best = search.run([1, 2, 3, 4, 5], 2)
        self.assertEqual(search.evaluated, 10)
        self.assertEqual(len(set(seen)), 10)
        self.assertEqual(best, [4, 5])
        self.assertEqual(search.best_score, 9.0)
        self.assertTrue(search.found)

    def test_too_many_requested(self):
        search = SubsetSearch(lambda subset: 1.0)
        self.assertIsNone(search.run([1, 2], 3))
        self.assertEqual(search.evaluated, 0)
        self.assertFalse(search.found)

    def test_empty_subset(self):
        search = SubsetSearch(lambda subset: 0.0)
        self.assertEqual(search.run([1, 2, 3], 0), [])
        self.assertEqual(search.evaluated, 1)

    def test_first_visited_wins_ties(self):
        best = best_subset(["a", "b", "c"], 1, lambda subset: 1.0)
        self.assertEqual(best, ["a"])

    def test_illegal_subsets_are_skipped(self):
        def score(subset):
            return None if 3 in subset else float(sum(subset))

        self.assertEqual(best_subset([1, 2, 3], 2, score), [1, 2])

    def test_run_range(self):
        search = SubsetSearch(lambda subset: float(len(subset)))
        best = search.run_range([1, 2, 3, 4], 1, 3)
        self.assertEqual(search.evaluated, 4 + 6 + 4)
        self.assertEqual(best, [1, 2, 3])

    def test_choose(self):
        self.assertEqual(choose(5, 2), 10)
        self.assertEqual(choose(3, 4), 0)
        self.assertEqual(choose(4, 0), 1)


class TestSimulator(unittest.TestCase):
    """Hypothetical copies."""

    def setUp(self):
        self.rules = MiniGalaxyRules()
        self.state = new_game(seed=5)
        self.controller = object()
        self.simulator = Simulator(self.rules, self.controller)

    def test_simulate_marks_copy(self):
        sim = self.simulator.simulate(self.state, 1)
        self.assertTrue(sim.simulation)
        self.assertEqual(sim.sim_who, 1)
        self.assertEqual(sim.random_seed, SIMULATION_SEED)
        self.assertTrue(all(p.control is self.controller for p in sim.players))

        self.assertFalse(self.state.simulation)
        self.assertTrue(all(p.control is None for p in self.state.players))

    def test_copy_of_copy_keeps_context(self):
        sim = self.simulator.simulate(self.state, 1)
        sim.random_int(100)
        again = self.simulator.simulate(sim, 0)
        self.assertEqual(again.sim_who, 1)
        self.assertEqual(again.random_seed, sim.random_seed)

    def test_copy_is_detached(self):
        sim = self.simulator.simulate(self.state, 0)
        index = sim.cards_in(0, Where.HAND)[0]
        sim.move_card(index, 0, Where.ACTIVE)
        sim.players[0].vp = 9
        self.assertEqual(self.state.cards[index].where, Where.HAND)
        self.assertEqual(self.state.players[0].vp, 0)

    def test_real_state_rejected(self):
        with self.assertRaises(SimulationError):
            self.simulator.complete_turn(self.state, Completion.ROUND)

    def test_finished_game_untouched(self):
        sim = self.simulator.simulate(self.state, 0)
        sim.game_over = True
        sim.cur_action = Action.DEVELOP
        self.simulator.complete_turn(sim, Completion.ROUND)
        self.assertEqual(sim.cur_action, Action.DEVELOP)
        self.assertEqual(sim.round, 0)

    def test_play_round_draws_anonymous_cards(self):
        sim = self.simulator.simulate(self.state, 0)
        sim.players[0].low_hand = 6
        sim.players[0].action = [Action.EXPLORE_5_0, -1]
        self.simulator.play_round(sim)

        self.assertEqual(sim.round, 1)
        self.assertEqual(sim.players[0].fake_hand, 3)
        self.assertEqual(sim.players[1].fake_hand, 1)
        self.assertEqual(sim.count_area(0, Where.HAND), 6)
        self.assertEqual(sim.players[0].prev_action, [Action.EXPLORE_5_0, -1])

    def test_partial_completion_stops_early(self):
        sim = self.simulator.simulate(self.state, 0)
        sim.players[0].action = [Action.EXPLORE_5_0, -1]
        self.rules.note_actions(sim)
        sim.cur_action = Action.ROUND_START
        self.simulator.complete_turn(sim, Completion.CHECK)
        self.assertEqual(sim.players[0].fake_hand, 0)
        self.assertEqual(sim.cur_action, Action.ROUND_END)
        self.assertEqual(sim.round, 0)

    def test_hand_trimmed_to_real_decision_size(self):
        sim = self.simulator.simulate(self.state, 0)
        hand = sim.cards_in(0, Where.HAND)
        self.simulator.discard_order[0] = list(hand)
        sim.players[0].low_hand = 2
        self.simulator.play_round(sim)
        self.assertEqual(sim.cards_in(0, Where.HAND), hand[4:])

    def test_game_over_detected(self):
        sim = self.simulator.simulate(self.state, 0)
        sim.vp_pool = 0
        self.simulator.play_round(sim)
        self.assertTrue(sim.game_over)


class TestRoleTables(unittest.TestCase):
    """Predictor output tables."""

    def test_sizes(self):
        self.assertEqual(num_role_outputs(0, False), 7)
        self.assertEqual(num_role_outputs(3, False), 15)
        self.assertEqual(num_role_outputs(0, True), 23)
        self.assertEqual(num_role_outputs(3, True), 76)
        self.assertEqual(len(ROLE_OUT), 15)
        self.assertEqual(len(ADV_COMBO), 76)

    def test_advanced_pairs(self):
        combos = build_advanced_combos()
        basic = combos[:23]
        self.assertTrue(all(a1 < a2 for a1, a2 in basic))
        self.assertIn((Action.DEVELOP, Action.DEVELOP2), basic)
        self.assertNotIn((Action.EXPLORE_5_0, Action.DEVELOP2), basic)
        self.assertTrue(all(a1 == Action.SEARCH for a1, _ in combos[23:30]))
        self.assertEqual(combos[30], (combos[0][0] | ACT_PRESTIGE, combos[0][1]))
        self.assertEqual(combos[31], (combos[0][0], combos[0][1] | ACT_PRESTIGE))

    def test_role_actions(self):
        self.assertEqual(role_actions(0, False), (Action.EXPLORE_5_0, -1))
        self.assertEqual(role_actions(5, True), ADV_COMBO[5])

    def test_search_needs_prestige_game(self):
        state = new_game()
        self.assertTrue(actions_legal(state, 0, [Action.DEVELOP, -1]))
        self.assertFalse(actions_legal(state, 0, [Action.SEARCH, -1]))

        prestige = new_game(expanded=3)
        self.assertTrue(actions_legal(prestige, 0, [Action.SEARCH, -1]))
        self.assertFalse(actions_legal(prestige, 0, [ACT_PRESTIGE | Action.DEVELOP, -1]))
        prestige.players[0].prestige = 1
        self.assertTrue(actions_legal(prestige, 0, [ACT_PRESTIGE | Action.DEVELOP, -1]))
        prestige.players[0].prestige_action_used = True
        self.assertFalse(actions_legal(prestige, 0, [Action.SEARCH, -1]))


class TestPruning(unittest.TestCase):
    """Good and power comparisons."""

    def setUp(self):
        self.state = new_game()

    def test_good_better(self):
        ore = card_of(self.state, "Ore Moon")
        colony = card_of(self.state, "Lost Colony")
        spice = card_of(self.state, "Spice World")
        landing = card_of(self.state, "Landing Site")
        vault = card_of(self.state, "Gene Vault")
        rebel = card_of(self.state, "Rebel Base")

        self.assertEqual(good_better(self.state, colony, ore), 2)
        self.assertEqual(good_better(self.state, ore, colony), 0)
        self.assertEqual(good_better(self.state, ore, card_of(self.state, "Ore Moon", 1)), 1)
        self.assertEqual(good_better(self.state, landing, spice), 0)
        self.assertEqual(good_better(self.state, rebel, vault), 2)
        self.assertEqual(good_better(self.state, ore, spice), 0)

    def test_condense_goods(self):
        first = card_of(self.state, "Ore Moon")
        second = card_of(self.state, "Ore Moon", 1)
        colony = card_of(self.state, "Lost Colony")
        alien = card_of(self.state, "Comet Shard")
        self.assertEqual(condense_goods(self.state, [first, colony, second, alien]), [first, alien])

    def test_power_dominated(self):
        any_good = frozenset({GoodType.ANY})
        small = PowerSpec(goods=any_good, vp=True, value=1, times=2)
        large = PowerSpec(goods=any_good, vp=True, value=2, times=2)
        self.assertTrue(power_dominated(small, large))
        self.assertFalse(power_dominated(large, small))
        self.assertTrue(power_dominated(large, large))

        trade = PowerSpec(trade=True)
        no_bonus = PowerSpec(trade=True, trade_no_bonus=True)
        self.assertTrue(power_dominated(no_bonus, trade))
        self.assertFalse(power_dominated(trade, large))

    def test_score_consume(self):
        any_good = frozenset({GoodType.ANY})
        vp2 = PowerSpec(goods=any_good, vp=True, value=2, times=1)
        self.assertEqual(score_consume(self.state, 0, vp2), 220)
        self.assertEqual(score_consume(self.state, 0, PowerSpec(goods=any_good, cards=1, value=1)), 50)
        self.assertEqual(score_consume(self.state, 0, PowerSpec(trade=True)), 206)
        self.assertEqual(score_consume(self.state, 0, PowerSpec(bonus=True, vp=True, value=3)), 0)

        self.state.players[0].action = [Action.CONSUME_X2, -1]
        self.assertEqual(score_consume(self.state, 0, vp2), 440)

    def test_simple_rand(self):
        self.assertEqual(simple_rand(1), (1015568748, 15496))
        seed, value = simple_rand(0)
        self.assertEqual(seed, 1013904223)
        self.assertLess(value, 32768)


if __name__ == "__main__":
    unittest.main()

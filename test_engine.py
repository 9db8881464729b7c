#!/usr/bin/env python
"""
Tests for the decision engine.

This script tests the engine end to end on the toy ruleset:
1. Network bootstrap, persistence and ruleset shapes
2. Decision dispatch for actions, openings, discards, placement and payment
3. End-of-game training
4. The choice log, the engine registry and configuration validation
5. The weight file inspector
6. A full round played by engines in every seat
"""
import shutil
import tempfile
import unittest
from pathlib import Path

import numpy as np

from galaxy_ai.core.constants import Action, ChoiceKind, Phase, Where
from galaxy_ai.engine import (
    DecisionEngine, EngineConfig, EngineRegistry, weight_filename,
)
from galaxy_ai.engine.log import ChoiceLog, DecisionSample
from galaxy_ai.engine.roles import ADV_COMBO, ROLE_OUT
from galaxy_ai.net.config import NetworkConfig
from galaxy_ai.net.network import Network
from galaxy_ai import netinfo
from toy_rules import MiniGalaxyRules, new_game, run_round, start_worlds


def make_config(directory, **overrides):
    params = dict(
        eval_hidden=10,
        role_hidden=10,
        bootstrap_iterations=0,
        show_progress=False,
        network_dir=str(directory),
        seed=0,
    )
    params.update(overrides)
    return EngineConfig(**params)


def make_engine(directory, **overrides):
    return DecisionEngine(MiniGalaxyRules(), make_config(directory, **overrides))


def card_of(state, name, nth=0):
    matches = [i for i, card in enumerate(state.cards) if card.design.name == name]
    return matches[nth]


class EngineTestCase(unittest.TestCase):
    """Base class providing a scratch weight directory."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)


class TestLifecycle(EngineTestCase):
    """Initialization, bootstrap and persistence."""

    def test_weight_filename(self):
        self.assertEqual(weight_filename("eval", (2, 0, False)), "galaxy.eval.0.2.net")
        self.assertEqual(weight_filename("role", (2, 3, True)), "galaxy.role.3.2a.net")

    def test_fresh_engine_bootstraps(self):
        engine = make_engine(self.temp_dir, bootstrap_iterations=5)
        self.assertEqual(str(engine), "DecisionEngine(uninitialized)")
        self.assertTrue(engine.initialize(new_game()))

        self.assertTrue(engine.bootstrapped)
        self.assertEqual(engine.shape, (2, 0, False))
        self.assertEqual(engine.eval_net.num_training, 5)
        self.assertEqual(len(engine.eval_net.samples), 0)
        self.assertEqual(engine.eval_net.num_outputs, 2)
        self.assertEqual(engine.role_net.num_outputs, 7)
        # Learning rate restored after the boosted bootstrap
        self.assertAlmostEqual(engine.eval_net.alpha, engine.config.evaluator_network().alpha)

    def test_same_shape_is_not_rebuilt(self):
        engine = make_engine(self.temp_dir)
        engine.initialize(new_game(seed=1))
        network = engine.eval_net
        self.assertFalse(engine.initialize(new_game(seed=2)))
        self.assertIs(engine.eval_net, network)

        self.assertTrue(engine.initialize(new_game(num_players=3)))
        self.assertEqual(engine.eval_net.num_outputs, 3)

    def test_shutdown_saves_once(self):
        engine = make_engine(self.temp_dir, bootstrap_iterations=3)
        engine.initialize(new_game())
        stats = engine.shutdown()

        eval_path = self.temp_dir / "galaxy.eval.0.2.net"
        role_path = self.temp_dir / "galaxy.role.0.2.net"
        self.assertTrue(eval_path.exists())
        self.assertTrue(role_path.exists())
        self.assertEqual(stats["training_games"], 3)

        eval_path.unlink()
        engine.shutdown()
        self.assertFalse(eval_path.exists())

    def test_shutdown_before_initialize(self):
        engine = make_engine(self.temp_dir)
        self.assertEqual(engine.shutdown(), {})
        self.assertEqual(list(self.temp_dir.iterdir()), [])

    def test_saved_weights_are_loaded(self):
        first = make_engine(self.temp_dir, bootstrap_iterations=4)
        first.initialize(new_game())
        first.shutdown()

        second = make_engine(self.temp_dir, bootstrap_iterations=4, seed=9)
        second.initialize(new_game())
        self.assertFalse(second.bootstrapped)
        self.assertEqual(second.eval_net.num_training, 4)
        self.assertTrue(np.array_equal(first.eval_net.hidden_weights, second.eval_net.hidden_weights))
        self.assertTrue(np.array_equal(first.role_net.output_weights, second.role_net.output_weights))

    def test_mismatched_weights_trigger_bootstrap(self):
        other = Network(5, 2, NetworkConfig(num_hidden=10))
        other.save(self.temp_dir / "galaxy.eval.0.2.net")

        engine = make_engine(self.temp_dir, bootstrap_iterations=2)
        engine.initialize(new_game())
        self.assertTrue(engine.bootstrapped)
        self.assertEqual(engine.eval_net.num_inputs, len(engine.eval_net.input_names))
        self.assertNotEqual(engine.eval_net.num_inputs, 5)

    def test_no_save_when_disabled(self):
        engine = make_engine(self.temp_dir, save_on_shutdown=False)
        engine.initialize(new_game())
        engine.shutdown()
        self.assertEqual(list(self.temp_dir.iterdir()), [])


class TestDecisions(EngineTestCase):
    """Decision dispatch on real and hypothetical states."""

    def setUp(self):
        super().setUp()
        self.engine = make_engine(self.temp_dir)
        self.state = new_game(seed=13)

    def test_unknown_kind(self):
        with self.assertRaises(ValueError):
            self.engine.make_choice(self.state, 0, 99)

    def test_action_choice(self):
        choice = self.engine.make_choice(self.state, 0, ChoiceKind.ACTION)
        self.assertIn(choice.items[0], ROLE_OUT[:7])
        self.assertEqual(choice.items[1], -1)
        self.assertEqual(choice.value, choice.items[0])

        logged = self.engine.choice_log.samples(0)
        self.assertEqual(len(logged), 1)
        self.assertEqual(logged[0].kind, ChoiceKind.ACTION)
        self.assertEqual(logged[0].items, choice.items)

        stats = self.engine.diagnostics()
        self.assertEqual(stats["role_hits"] + stats["role_misses"], 1)
        self.assertGreater(stats["evaluations"], 0)

    def test_real_choice_records_hand_and_discard_order(self):
        self.engine.make_choice(self.state, 1, ChoiceKind.ACTION)
        hand = self.state.cards_in(1, Where.HAND)
        self.assertEqual(self.state.players[1].low_hand, len(hand))
        self.assertEqual(sorted(self.engine.simulator.discard_order[1]), hand)
        self.assertEqual(len(self.engine.evaluator.cache), 0)

    def test_choose_actions_wrapper(self):
        first, second = self.engine.choose_actions(self.state, 0)
        self.assertIn(first, ROLE_OUT[:7])
        self.assertEqual(second, -1)

    def test_advanced_action_pair(self):
        state = new_game(seed=13, advanced=True)
        choice = self.engine.make_choice(state, 0, ChoiceKind.ACTION)
        self.assertIn(tuple(choice.items), ADV_COMBO[:23])
        self.assertEqual(self.engine.role_net.num_outputs, 23)

    def test_start_world(self):
        hand = self.state.cards_in(0, Where.HAND)
        worlds = start_worlds(self.state, 0)
        choice = self.engine.make_choice(self.state, 0, ChoiceKind.START, hand, worlds)

        self.assertIn(choice.value, worlds)
        self.assertEqual(choice.special, [choice.value])
        self.assertEqual(len(choice.items), len(hand) - 4)
        self.assertTrue(set(choice.items) <= set(hand))

    def test_discard(self):
        self.state.round = 1
        hand = self.state.cards_in(0, Where.HAND)
        choice = self.engine.make_choice(self.state, 0, ChoiceKind.DISCARD, hand, [], 2)
        self.assertEqual(len(choice.items), 2)
        self.assertEqual(len(set(choice.items)), 2)
        self.assertTrue(set(choice.items) <= set(hand))

    def test_greedy_discard(self):
        engine = make_engine(self.temp_dir, discard_greedy_cap=4)
        self.state.round = 1
        hand = self.state.cards_in(0, Where.HAND)
        choice = engine.make_choice(self.state, 0, ChoiceKind.DISCARD, hand, [], 3)
        self.assertEqual(len(set(choice.items)), 3)
        self.assertTrue(set(choice.items) <= set(hand))

    def test_hypothetical_discard_is_anonymous(self):
        self.engine.initialize(self.state)
        sim = self.engine.simulator.simulate(self.state, 0)
        hand = sim.cards_in(0, Where.HAND)
        choice = self.engine.make_choice(sim, 0, ChoiceKind.DISCARD, hand, [], 2)

        self.assertEqual(choice.items, [])
        self.assertEqual(sim.players[0].fake_discards, 2)
        self.assertEqual(len(self.engine.choice_log), 0)

    def test_place(self):
        for name in ("Trade Guild", "Refinery"):
            self.state.move_card(card_of(self.state, name), 0, Where.HAND)
        self.state.players[0].action = [Action.DEVELOP, -1]
        self.engine.rules.note_actions(self.state)
        self.state.cur_action = Action.DEVELOP

        options = [
            i for i in self.state.cards_in(0, Where.HAND)
            if self.state.cards[i].design.is_development
        ]
        choice = self.engine.make_choice(
            self.state, 0, ChoiceKind.PLACE, options, [], Phase.DEVELOP, -1, 0
        )
        self.assertIn(choice.value, options + [-1])

    def test_payment(self):
        target = card_of(self.state, "Market Hub")
        self.state.move_card(target, 0, Where.HAND)
        self.state.cur_action = Action.DEVELOP
        hand = [i for i in self.state.cards_in(0, Where.HAND) if i != target]

        choice = self.engine.make_choice(self.state, 0, ChoiceKind.PAYMENT, hand, [], target)
        self.assertEqual(len(choice.items), 3)
        self.assertTrue(set(choice.items) <= set(hand))
        self.assertEqual(choice.special, [])


class TestGameOver(EngineTestCase):
    """End-of-game training."""

    def setUp(self):
        super().setUp()
        self.engine = make_engine(self.temp_dir, eval_alpha=0.01)
        self.state = new_game(seed=21)
        self.engine.initialize(self.state)

        self.state.players[0].vp = 10
        self.state.players[1].vp = 6
        self.state.game_over = True
        rules = self.engine.rules
        rules.score_game(self.state)
        rules.declare_winner(self.state)

    def test_winner_declared(self):
        self.assertTrue(self.state.players[0].winner)
        self.assertFalse(self.state.players[1].winner)

    def test_training_moves_toward_outcome(self):
        before = self.engine.evaluator.win_probs(self.state, 0)[0]
        self.engine.game_over(self.state, 0)
        after = self.engine.evaluator.win_probs(self.state, 0)[0]
        self.assertGreater(after, before)

    def test_last_player_closes_the_game(self):
        self.engine.game_over(self.state, 0)
        self.assertEqual(len(self.engine.eval_net.samples), 1)
        self.assertEqual(self.engine.eval_net.num_training, 0)

        self.engine.game_over(self.state, 1)
        self.assertEqual(len(self.engine.eval_net.samples), 0)
        self.assertEqual(len(self.engine.role_net.samples), 0)
        self.assertEqual(self.engine.eval_net.num_training, 1)


class TestChoiceLog(EngineTestCase):
    """Per-player decision log."""

    def test_append_and_dump(self):
        log = ChoiceLog()
        log.append(0, DecisionSample(kind=ChoiceKind.ACTION, value=3, items=[3, -1]))
        log.append(1, DecisionSample(kind=ChoiceKind.DISCARD, candidates=[4, 5, 6], items=[5]))
        log.append(0, DecisionSample(kind=ChoiceKind.PLACE, value=-1, round=2))
        self.assertEqual(len(log), 3)
        self.assertEqual([s.kind for s in log.samples(0)], [ChoiceKind.ACTION, ChoiceKind.PLACE])
        self.assertEqual(log.samples(5), [])
        self.assertEqual(sorted(log.to_dict()), ["0", "1"])

        path = self.temp_dir / "choices.json"
        log.dump_json(str(path))
        loaded = ChoiceLog.load_json(str(path))
        self.assertEqual([entry.player for entry in loaded], [0, 1])
        self.assertEqual(loaded[1].samples[0].items, [5])
        self.assertEqual(loaded[0].samples[1].round, 2)

        log.clear()
        self.assertEqual(len(log), 0)


class TestRegistry(EngineTestCase):
    """One engine per ruleset shape."""

    def test_engine_reuse(self):
        registry = EngineRegistry(MiniGalaxyRules(), make_config(self.temp_dir))
        first = registry.engine_for(new_game(seed=1))
        self.assertIs(registry.engine_for(new_game(seed=2)), first)
        self.assertIsNot(registry.engine_for(new_game(num_players=3)), first)

        self.assertEqual(len(registry), 2)
        self.assertIn((2, 0, False), registry)
        self.assertNotIn((2, 0, True), registry)

        stats = registry.shutdown()
        self.assertEqual(set(stats), {(2, 0, False), (3, 0, False)})

    def test_attach(self):
        registry = EngineRegistry(MiniGalaxyRules(), make_config(self.temp_dir))
        state = new_game()
        engine = registry.attach(state, seats=[1])
        self.assertIsNone(state.players[0].control)
        self.assertIs(state.players[1].control, engine)


class TestEngineConfig(unittest.TestCase):
    """Engine configuration."""

    def test_validation(self):
        with self.assertRaises(ValueError):
            EngineConfig(lambda_decay=0.0)
        with self.assertRaises(ValueError):
            EngineConfig(coverage_target=1.5)
        with self.assertRaises(ValueError):
            EngineConfig(payment_cap=0)

    def test_presets(self):
        self.assertEqual(EngineConfig.frozen().evaluator_network().alpha, 0.0)
        self.assertFalse(EngineConfig.frozen().save_on_shutdown)
        self.assertLess(EngineConfig.fast().bootstrap_iterations, EngineConfig.default().bootstrap_iterations)

    def test_dict_round_trip(self):
        config = EngineConfig(eval_hidden=12, coverage_target=0.6)
        data = config.to_dict()
        data["unknown"] = 1
        self.assertEqual(EngineConfig.from_dict(data), config)


class TestNetInfo(EngineTestCase):
    """Weight file inspector."""

    def setUp(self):
        super().setUp()
        self.path = self.temp_dir / "small.net"
        names = [f"Input {i}" for i in range(6)]
        network = Network(6, 2, NetworkConfig(num_hidden=4), input_names=names,
                          rng=np.random.default_rng(0))
        network.save(self.path)

    def test_read_network(self):
        network = netinfo.read_network(self.path)
        self.assertEqual(network.shape, (6, 4, 2))
        effects = netinfo.input_effects(network)
        self.assertEqual([name for name, _ in effects], [f"Input {i}" for i in range(6)])

    def test_main_exit_codes(self):
        self.assertEqual(netinfo.main([str(self.path), "--top", "3"]), 0)
        self.assertEqual(netinfo.main([str(self.path), "--output", "1", "--top", "0"]), 0)

    def test_missing_file_exit_code(self):
        self.assertEqual(netinfo.main([str(self.temp_dir / "missing.net")]), 2)

    def test_bad_file_exit_code(self):
        self.path.write_text("not a header\n")
        self.assertEqual(netinfo.main([str(self.path)]), 1)

        self.path.write_text("6 4 2\n0\n")
        self.assertEqual(netinfo.main([str(self.path)]), 1)

    def test_output_out_of_range_exit_code(self):
        self.assertEqual(netinfo.main([str(self.path), "--output", "2"]), 1)
        self.assertEqual(netinfo.main([str(self.path), "--output", "-1"]), 1)


class TestFullRound(EngineTestCase):
    """Engines in every seat of a real game."""

    def test_round_is_played(self):
        rules = MiniGalaxyRules()
        registry = EngineRegistry(rules, make_config(self.temp_dir))
        state = new_game(seed=17)
        engine = registry.attach(state)

        for who in range(state.num_players):
            worlds = start_worlds(state, who)
            hand = state.cards_in(who, Where.HAND)
            choice = engine.make_choice(state, who, ChoiceKind.START, hand, worlds)
            self.assertTrue(rules.apply_start(state, who, choice.value, choice.items))

        run_round(rules, state)

        self.assertEqual(state.round, 1)
        for who, player in enumerate(state.players):
            self.assertIn(player.prev_action[0], ROLE_OUT[:7])
            self.assertLessEqual(state.hand_size(who), 10)
        self.assertGreaterEqual(len(engine.choice_log), 4)
        self.assertEqual(engine.diagnostics()["role_hits"] + engine.diagnostics()["role_misses"], 2)


if __name__ == "__main__":
    unittest.main()

#!/usr/bin/env python
"""
Tests for state canonicalisation, the evaluation cache and the evaluator.

This script checks that:
1. Canonical keys are stable and change with every key-relevant field
2. The cache computes each key at most once between clears
3. The evaluator reuses cached scores and drops them after training
4. Feature layouts have fixed length and matching input names
"""
import unittest

import numpy as np

from galaxy_ai.core.constants import GoodType, Where
from galaxy_ai.engine.cache import EvalCache, canonical_key, gen_hash, placement_key
from galaxy_ai.engine.evaluator import Evaluator, evaluator_names, predictor_names
from galaxy_ai.engine.features import FeatureWriter, evaluator_features, hand_presence
from galaxy_ai.net.config import NetworkConfig
from galaxy_ai.net.network import Network
from toy_rules import MiniGalaxyRules, new_game


def perturbations():
    """Single-field changes of a state, each paired with a description."""
    def vp(s): s.players[0].vp += 1
    def prestige(s): s.players[1].prestige += 1
    def fake_hand(s): s.players[0].fake_hand += 1
    def fake_discards(s): s.players[1].fake_discards += 1
    def drawn(s): s.players[0].drawn_round += 1
    def winner(s): s.players[1].winner = True
    def pool(s): s.vp_pool -= 1
    def over(s): s.game_over = True
    def goal(s): s.goal_avail[2] = True
    def claimed(s): s.players[0].goal_claimed[1] = True
    def oort(s): s.oort_kind = GoodType.GENE
    def skip(s): s.players[0].skip_develop = True
    def used(s): s.players[1].prestige_action_used = True
    def temp(s): s.players[0].temp["bonus"] = 1

    def move(s):
        index = s.cards_in(0, Where.HAND)[0]
        s.move_card(index, 1, Where.HAND)

    def locate(s):
        index = s.cards_in(0, Where.HAND)[0]
        s.move_card(index, 0, Where.ACTIVE)

    def goods(s):
        index = s.cards_in(0, Where.HAND)[0]
        s.cards[index].num_goods = 1

    def known(s):
        index = s.cards_in(1, Where.HAND)[0]
        s.mark_known(index, 0)

    return [vp, prestige, fake_hand, fake_discards, drawn, winner, pool, over,
            goal, claimed, oort, skip, used, temp, move, locate, goods, known]


class TestCanonicalKey(unittest.TestCase):
    """Canonical byte keys."""

    def setUp(self):
        self.state = new_game(seed=11)

    def test_key_is_stable(self):
        self.assertEqual(canonical_key(self.state, 0), canonical_key(self.state.clone(), 0))

    def test_viewpoint_is_part_of_key(self):
        self.assertNotEqual(canonical_key(self.state, 0), canonical_key(self.state, 1))

    def test_single_field_perturbations_change_key(self):
        base = canonical_key(self.state, 0)
        for perturb in perturbations():
            with self.subTest(field=perturb.__name__):
                changed = self.state.clone()
                perturb(changed)
                self.assertNotEqual(canonical_key(changed, 0), base)

    def test_excluded_fields_do_not_change_key(self):
        changed = self.state.clone()
        changed.players[0].name = "Renamed"
        changed.players[0].low_hand = 9
        changed.players[0].end_vp = 30
        self.assertEqual(canonical_key(changed, 0), canonical_key(self.state, 0))

    def test_placement_key_distinguishes_cards(self):
        a = placement_key(self.state, 0, 1, 5)
        b = placement_key(self.state, 0, 1, 6)
        c = placement_key(self.state, 0, 1, -1)
        self.assertEqual(len({a, b, c}), 3)
        self.assertTrue(a.startswith(canonical_key(self.state, 0)))

    def test_hash_is_deterministic(self):
        key = canonical_key(self.state, 0)
        self.assertEqual(gen_hash(key), gen_hash(bytes(key)))
        self.assertNotEqual(gen_hash(b"a" * 40), gen_hash(b"b" * 40))
        self.assertLess(gen_hash(key), 1 << 64)


class TestEvalCache(unittest.TestCase):
    """Chained cache."""

    def test_lookup_creates_invalid_entry(self):
        cache = EvalCache(num_buckets=4)
        entry = cache.lookup(b"key")
        self.assertFalse(entry.valid)
        entry.value = 0.5
        self.assertTrue(cache.lookup(b"key").valid)
        self.assertEqual(cache.lookup(b"key").value, 0.5)
        self.assertEqual(len(cache), 1)

    def test_collisions_never_alias(self):
        cache = EvalCache(num_buckets=1)
        cache.lookup(b"first").value = 1.0
        cache.lookup(b"second").value = 2.0
        self.assertEqual(cache.lookup(b"first").value, 1.0)
        self.assertEqual(cache.lookup(b"second").value, 2.0)
        self.assertEqual(len(cache), 2)

    def test_clear(self):
        cache = EvalCache()
        cache.lookup(b"key").value = 1.0
        cache.clear()
        self.assertEqual(len(cache), 0)
        self.assertFalse(cache.lookup(b"key").valid)

    def test_hit_ratio(self):
        cache = EvalCache()
        self.assertEqual(cache.hit_ratio(), 0.0)
        cache.lookup(b"key").value = 1.0
        cache.lookup(b"key")
        self.assertEqual(cache.hits, 1)
        self.assertEqual(cache.misses, 1)
        self.assertAlmostEqual(cache.hit_ratio(), 0.5)


class TestEvaluator(unittest.TestCase):
    """Cached evaluation."""

    def setUp(self):
        self.rules = MiniGalaxyRules()
        self.state = new_game(seed=3)
        names = evaluator_names(self.rules, self.state)
        self.network = Network(
            len(names), self.state.num_players, NetworkConfig(num_hidden=10, alpha=0.01),
            input_names=names, rng=np.random.default_rng(0)
        )
        self.evaluator = Evaluator(self.rules, self.network)

    def test_cached_score_is_reused(self):
        first = self.evaluator.evaluate(self.state, 0)
        twin = self.state.clone()
        twin.players[1].name = "Twin"
        second = self.evaluator.evaluate(twin, 0)
        self.assertEqual(first, second)
        self.assertEqual(self.evaluator.evaluations, 1)

    def test_cache_hit_skips_network(self):
        calls = []
        forward = self.network.forward

        def counting_forward(values=None):
            calls.append(values)
            return forward(values)

        self.network.forward = counting_forward
        first = self.evaluator.evaluate(self.state, 0)
        second = self.evaluator.evaluate(self.state, 0)
        self.assertEqual(first, second)
        self.assertEqual(len(calls), 1)
        self.assertEqual(self.evaluator.cache.hits, 1)
        self.assertEqual(self.evaluator.cache.misses, 1)

    def test_different_states_are_evaluated(self):
        self.evaluator.evaluate(self.state, 0)
        changed = self.state.clone()
        changed.players[0].vp += 3
        self.evaluator.evaluate(changed, 0)
        self.assertEqual(self.evaluator.evaluations, 2)

    def test_training_clears_cache(self):
        self.evaluator.evaluate(self.state, 0)
        self.evaluator.train(self.state, 0)
        self.assertEqual(len(self.evaluator.cache), 0)
        self.evaluator.evaluate(self.state, 0)
        self.assertEqual(self.evaluator.evaluations, 2)

    def test_score_includes_tie_breakers(self):
        score = self.evaluator.evaluate(self.state, 0)
        probs = self.evaluator.win_probs(self.state, 0)
        player = self.state.players[0]
        expected = probs[0] + 0.001 * player.end_vp + 0.0002 * self.state.hand_size(0) + 0.1
        self.assertAlmostEqual(score, expected, places=12)

    def test_game_over_declares_winner(self):
        over = self.state.clone()
        over.players[0].vp = 10
        over.players[1].vp = 6
        over.game_over = True
        self.evaluator.evaluate(over, 0)
        self.assertTrue(over.players[0].winner)
        self.assertFalse(over.players[1].winner)


class TestFeatures(unittest.TestCase):
    """Feature layouts."""

    def setUp(self):
        self.rules = MiniGalaxyRules()

    def test_layout_is_fixed(self):
        state = new_game(seed=1)
        lengths = set()
        for who in range(2):
            for s in (state, new_game(seed=2)):
                writer = FeatureWriter()
                self.rules.score_game(s)
                evaluator_features(self.rules, s, who, writer)
                lengths.add(len(writer))
        self.assertEqual(lengths, {len(evaluator_names(self.rules, state))})

    def test_layout_depends_on_ruleset(self):
        two = evaluator_names(self.rules, new_game(num_players=2))
        three = evaluator_names(self.rules, new_game(num_players=3))
        self.assertGreater(len(three), len(two))

        basic = predictor_names(self.rules, new_game(num_players=2))
        advanced = predictor_names(self.rules, new_game(num_players=2, advanced=True))
        self.assertEqual(len(advanced) - len(basic), 23 - 7)

    def test_hidden_cards_spread_as_mass(self):
        state = new_game(seed=4)
        own = hand_presence(state, 0, 0)
        held = {state.cards[i].design.index for i in state.cards_in(0, Where.HAND)}
        self.assertEqual(sum(own), len(held))

        seen = hand_presence(state, 1, 0)
        self.assertTrue(all(0.0 <= v <= 1.0 for v in seen))
        self.assertTrue(any(0.0 < v < 1.0 for v in seen))


if __name__ == "__main__":
    unittest.main()

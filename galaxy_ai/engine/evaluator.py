"""
Value evaluation and opponent action prediction.

The Evaluator scores a state for one viewpoint through the evaluation cache
and the value network. The Predictor estimates the distribution of a
player's next action choice with the predictor network, feeding it, besides
the board features, the value of every candidate action as found by
playing that action out on a hypothetical copy.
"""
from typing import List, Optional

import numpy as np

from galaxy_ai.core.constants import MAX_ACTION, Action, Completion, action_name
from galaxy_ai.core.game import GameState
from galaxy_ai.core.rules import RulesEngine
from galaxy_ai.engine.cache import EvalCache, canonical_key
from galaxy_ai.engine.features import (
    FeatureWriter, evaluator_features, predictor_features,
)
from galaxy_ai.engine.roles import actions_legal, num_role_outputs, role_actions
from galaxy_ai.engine.simulator import Simulator
from galaxy_ai.net.network import Network
from galaxy_ai.net.training import train_history

# Tie-breaking nudges added to the network's win probability
VP_NUDGE = 0.001
HAND_NUDGE = 0.0002
WINNER_BONUS = 0.2
BASE_SCORE = 0.1
GAME_OVER_PENALTY = 0.1


def evaluator_names(rules: RulesEngine, state: GameState) -> List[str]:
    """Input names of the value network for a ruleset."""
    sample = state.clone()
    rules.score_game(sample)
    writer = FeatureWriter(with_names=True)
    evaluator_features(rules, sample, 0, writer)
    return writer.names


def predictor_names(rules: RulesEngine, state: GameState) -> List[str]:
    """Input names of the predictor network for a ruleset."""
    sample = state.clone()
    rules.score_game(sample)
    writer = FeatureWriter(with_names=True)
    predictor_features(rules, sample, 0, writer)
    for i in range(num_role_outputs(state.expanded, state.advanced)):
        first, second = role_actions(i, state.advanced)
        label = action_name(first) if second < 0 else f"{action_name(first)} / {action_name(second)}"
        writer.add(0.0, f"Score of {label}")
    return writer.names


class Evaluator:
    """
    Scores states with the value network, at most once per cached key.

    Attributes:
        rules: Rules engine used for scoring and derived features
        network: Value network (one output per player, from the viewpoint)
        cache: Evaluation cache
        evaluations: Number of network evaluations performed
    """

    def __init__(self, rules: RulesEngine, network: Network, cache: Optional[EvalCache] = None):
        self.rules = rules
        self.network = network
        self.cache = cache or EvalCache()
        self.evaluations = 0

    def features(self, state: GameState, who: int) -> np.ndarray:
        """Score a state and extract its value-network inputs."""
        self.rules.score_game(state)
        if state.game_over:
            self.rules.declare_winner(state)
        writer = FeatureWriter()
        evaluator_features(self.rules, state, who, writer)
        return writer.vector()

    def evaluate(self, state: GameState, who: int) -> float:
        """
        Score a state from a viewpoint.

        The score is the network's win probability for the viewpoint plus
        small nudges for final points and hand size, a bonus for a declared
        winner and a penalty for an ended game.

        Args:
            state: State to score (its final scores are filled in)
            who: Viewpoint player

        Returns:
            Score; higher is better for the viewpoint
        """
        entry = self.cache.lookup(canonical_key(state, who))
        if entry.valid:
            return entry.value

        probs = self.network.forward(self.features(state, who))
        self.evaluations += 1

        player = state.players[who]
        score = (
            probs[0]
            + VP_NUDGE * player.end_vp
            + HAND_NUDGE * state.hand_size(who)
            + WINNER_BONUS * player.winner
            + BASE_SCORE
            - GAME_OVER_PENALTY * state.game_over
        )
        entry.value = float(score)
        return entry.value

    def win_probs(self, state: GameState, who: int) -> np.ndarray:
        """Compute the network's win distribution for a state, bypassing the cache."""
        return self.network.forward(self.features(state, who)).copy()

    def train(self, state: GameState, who: int, desired: Optional[np.ndarray] = None,
              decay: float = 0.7) -> None:
        """
        Train the value network from a position a player has reached.

        The current position is stored in the network's history; with a
        realized outcome in ``desired`` the whole recent history of the
        player moves toward it, otherwise the history moves toward the
        network's current opinion of this position.
        """
        self.cache.clear()
        self.network.forward(self.features(state, who))
        self.network.store_sample(who)
        train_history(self.network, who, desired, decay)
        self.cache.clear()


class Predictor:
    """
    Predicts a player's action choice.

    Attributes:
        rules: Rules engine
        network: Predictor network (one output per role-table entry)
        evaluator: Evaluator used to score the candidate actions
        simulator: Simulator used to play candidate actions out
        temperature: Sharpness of the per-action score inputs
    """

    def __init__(self, rules: RulesEngine, network: Network, evaluator: Evaluator,
                 simulator: Simulator, temperature: float = 20.0):
        self.rules = rules
        self.network = network
        self.evaluator = evaluator
        self.simulator = simulator
        self.temperature = temperature

    def action_scores(self, state: GameState, who: int, sim_who: int) -> np.ndarray:
        """
        Value of every role-table entry for a player, all else unknown.

        Each entry is played out on a copy where no other player has chosen
        an action. Entries the player cannot legally choose (search outside
        the prestige game, prestige actions without prestige) are not played
        out at all: the rules engine has no way to resolve them, so they
        score zero and reach the predictor as the smallest possible input.
        Callers still mask those entries out of the predicted distribution.
        """
        n = num_role_outputs(state.expanded, state.advanced)
        scores = np.zeros(n)
        for i in range(n):
            actions = role_actions(i, state.advanced)
            if not actions_legal(state, who, actions):
                continue

            sim = self.simulator.simulate(state, sim_who)
            for player in sim.players:
                player.action = [-1, -1]
            sim.action_selected = [False] * MAX_ACTION
            sim.players[who].action = list(actions)
            self.rules.note_actions(sim)
            sim.cur_action = Action.ROUND_START
            self.simulator.complete_turn(sim, Completion.ROUND)
            scores[i] = self.evaluator.evaluate(sim, who)
        return scores

    def predict(self, state: GameState, who: int, sim_who: int) -> np.ndarray:
        """
        Predict a player's action distribution.

        Args:
            state: State before actions are chosen
            who: Player whose choice is predicted
            sim_who: Searching player (viewpoint of the hypothetical copies)

        Returns:
            Probability per role-table entry
        """
        scored = state.clone()
        self.rules.score_game(scored)
        writer = FeatureWriter()
        predictor_features(self.rules, scored, who, writer)

        scores = self.action_scores(state, who, sim_who)
        exps = np.exp(self.temperature * (scores - scores.max()))
        raw = exps / exps.sum()

        inputs = np.concatenate([writer.vector(), raw])
        return self.network.forward(inputs).copy()

    def train(self, desired: np.ndarray) -> None:
        """Train the prediction just made toward a desired distribution and commit."""
        self.network.train(1.0, desired)
        self.network.commit()

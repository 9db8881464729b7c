"""
Action (role) selection.

Choosing actions is the one decision where every other player's choice is
hidden and simultaneous, so the selector:

1. Predicts each opponent's action distribution with the predictor network
2. Enumerates the likely opponent action combinations
3. Plays out every legal own action against each combination, weighting the
   resulting score by the combination's probability
4. Picks the best own action and trains the predictor toward a softmax of
   the scores it found

The basic game uses single actions and a probability threshold derived from
the opponents' most likely choices. The two-player advanced game uses action
pairs and sweeps opponent pairs in halving probability bands until enough
probability mass has been covered.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from galaxy_ai.core.constants import MAX_ACTION, ChoiceKind, Where
from galaxy_ai.core.game import GameState
from galaxy_ai.core.rules import RulesEngine
from galaxy_ai.engine.cache import EvalCache
from galaxy_ai.engine.config import EngineConfig
from galaxy_ai.engine.evaluator import Evaluator, Predictor
from galaxy_ai.engine.roles import (
    ADV_COMBO, ROLE_OUT, ROLE_OUT_PRESTIGE, actions_legal, num_role_outputs,
)
from galaxy_ai.engine.simulator import Simulator
from galaxy_ai.errors import SearchExhaustedError

logger = logging.getLogger(__name__)

# Which actions an advanced-game decision asks for
BOTH_ACTIONS = 0
FIRST_ACTION = 1
SECOND_ACTION = 2

# Lowest probability band swept before giving up on coverage
MIN_BAND = 1e-6


class ActionSelector:
    """
    Chooses a player's actions for the round.

    Attributes:
        rules: Rules engine
        evaluator: State evaluator
        predictor: Action predictor
        simulator: Hypothetical-state simulator
        place_cache: Predicted opponent placements, cleared per choice
        config: Engine configuration
        role_hits: Choices that matched the predictor's most likely entry
        role_misses: Choices that did not
        role_mass: Summed predicted probability of the chosen entries
    """

    def __init__(
        self,
        rules: RulesEngine,
        evaluator: Evaluator,
        predictor: Predictor,
        simulator: Simulator,
        place_cache: EvalCache,
        config: EngineConfig
    ):
        self.rules = rules
        self.evaluator = evaluator
        self.predictor = predictor
        self.simulator = simulator
        self.place_cache = place_cache
        self.config = config

        self.role_hits = 0
        self.role_misses = 0
        self.role_mass = 0.0

    def choose(self, state: GameState, who: int, one: int = BOTH_ACTIONS) -> Tuple[int, int]:
        """
        Choose actions for a player.

        The evaluator is first trained on the position reached, since the
        start of a round is where its history is extended.

        Args:
            state: Real game state at the start of the round
            who: Choosing player
            one: Advanced game only: both actions, the first only, or the
                second one once the opponent's actions are known

        Returns:
            (first action, second action or -1)
        """
        self.evaluator.train(state, who, decay=self.config.lambda_decay)
        self.evaluator.cache.clear()
        self.place_cache.clear()

        if state.advanced:
            return self._choose_advanced(state, who, one)
        return self._choose_basic(state, who)

    @property
    def predictions(self) -> int:
        return self.role_hits + self.role_misses

    # ------------------------------------------------------------------
    # Basic game
    # ------------------------------------------------------------------

    def _choose_basic(self, state: GameState, who: int) -> Tuple[int, int]:
        n = num_role_outputs(state.expanded, False)
        config = self.config

        probs: Dict[int, np.ndarray] = {}
        threshold = 1.0
        for current in range(state.num_players):
            if current == who:
                continue
            predicted = self.predictor.predict(state, current, who)
            for i in range(n):
                if not actions_legal(state, current, (ROLE_OUT[i],)):
                    predicted[i] = 0.0
            probs[current] = predicted
            threshold *= float(predicted.max())

        # Players who select last see everyone else's choice
        if self._selects_last(state, who):
            for current in probs:
                known = state.players[current].action[0]
                probs[current] = np.array(
                    [1.0 if ROLE_OUT[i] == known else 0.0 for i in range(n)]
                )
            threshold = 0.0

        threshold /= config.threshold_divisor
        if state.num_players == 2:
            threshold = 0.0
        if state.num_players == 4:
            threshold *= config.threshold_multiplier_4p
        if state.num_players >= 5:
            threshold *= config.threshold_multiplier_5p

        combos = self._opponent_combos(state, who, probs, threshold)
        combos.sort(key=lambda combo: -combo[1])
        logger.debug("Player %d: %d opponent combinations above %.4f",
                     who, len(combos), threshold)

        sim = self.simulator.simulate(state, who)
        sim.action_selected = [False] * MAX_ACTION

        scores = np.zeros(n)
        prob_used = [0.0]
        no_actions = {current: -1 for current in probs}
        self._score_basic(sim, who, no_actions, threshold, prob_used, scores)
        for actions, prob in combos:
            if not self._score_basic(sim, who, actions, prob, prob_used, scores):
                break

        best, b_s = self._best(scores)
        if best < 0 or b_s < 0:
            raise SearchExhaustedError(
                "No action selected",
                kind=ChoiceKind.ACTION,
                context={"player": who, "round": state.round}
            )

        self._learn(state, who, scores, best)
        return ROLE_OUT[best], -1

    def _selects_last(self, state: GameState, who: int) -> bool:
        return any(
            card.design.select_last for card in state.cards
            if card.owner == who and card.where == Where.ACTIVE
        )

    def _opponent_combos(
        self,
        state: GameState,
        who: int,
        probs: Dict[int, np.ndarray],
        threshold: float
    ) -> List[Tuple[Dict[int, int], float]]:
        """List opponent action combinations whose joint probability clears the threshold."""
        order = {
            current: sorted(range(len(p)), key=lambda i, p=p: -p[i])
            for current, p in probs.items()
        }
        opponents = sorted(probs)
        combos: List[Tuple[Dict[int, int], float]] = []

        def recurse(depth: int, prob: float, acts: Dict[int, int]) -> None:
            if prob < threshold or prob == 0:
                return
            if depth == len(opponents):
                combos.append((dict(acts), prob))
                return
            current = opponents[depth]
            for i in order[current]:
                acts[current] = ROLE_OUT[i]
                recurse(depth + 1, prob * probs[current][i], acts)
            acts.pop(current, None)

        recurse(0, 1.0, {})
        return combos

    def _score_basic(
        self,
        sim: GameState,
        who: int,
        actions: Dict[int, int],
        prob: float,
        prob_used: List[float],
        scores: np.ndarray
    ) -> bool:
        """
        Score own actions against one opponent combination.

        Own actions far behind the current leader are skipped, more
        aggressively as more probability mass has been covered.

        Returns:
            True if more than one own action was played out
        """
        for current, action in actions.items():
            sim.players[current].action = [action, -1]

        b_s = max(-1.0, float(scores.max()))
        margin = self.config.own_action_margin
        tried = 0
        for i in range(len(scores)):
            if not actions_legal(sim, who, (ROLE_OUT[i],)):
                continue
            if scores[i] < (margin + prob_used[0]) * b_s:
                continue

            trial = self.simulator.simulate(sim, who)
            trial.players[who].action = [ROLE_OUT[i], -1]
            scores[i] += self._play_round(trial, who) * prob
            tried += 1

        prob_used[0] += prob
        return tried > 1

    # ------------------------------------------------------------------
    # Advanced game
    # ------------------------------------------------------------------

    def _choose_advanced(self, state: GameState, who: int, one: int) -> Tuple[int, int]:
        n = num_role_outputs(state.expanded, True)
        opp = 1 - who

        choice_prob = self.predictor.predict(state, opp, who)
        if one == SECOND_ACTION:
            known = tuple(state.players[opp].action)
            choice_prob = np.array(
                [1.0 if tuple(ADV_COMBO[a]) == known else 0.0 for a in range(n)]
            )

        order = [
            (float(choice_prob[a]), a) for a in range(n)
            if actions_legal(state, opp, ADV_COMBO[a])
        ]
        total = sum(prob for prob, _ in order)
        if total > 0:
            order = [(prob / total, a) for prob, a in order]
        order.sort(key=lambda item: -item[0])

        scores = np.zeros(n)
        force = state.players[who].action[0]

        # Sweep opponent combinations band by band: [1/2, 1], [1/4, 1/2), ...
        used = 0.0
        pos = 0
        low = 0.5
        while pos < len(order) and low > MIN_BAND:
            while pos < len(order) and order[pos][0] >= low:
                prob, oa = order[pos]
                self._score_advanced(state, who, oa, scores, prob, used, one, force)
                used += prob
                pos += 1
            if used >= self.config.coverage_target:
                break
            low /= 2
        logger.debug("Player %d: covered %.2f of opponent probability with %d pairs",
                     who, used, pos)

        best, b_s = self._best(scores)

        if one == FIRST_ACTION:
            single = np.zeros(ROLE_OUT_PRESTIGE)
            for i in range(n):
                for j in range(ROLE_OUT_PRESTIGE):
                    if ROLE_OUT[j] in ADV_COMBO[i]:
                        single[j] += scores[i]
            b_j, _ = self._best(single)
            return ROLE_OUT[b_j], -1

        if best < 0 or b_s < 0:
            raise SearchExhaustedError(
                "Did not find any action choices",
                kind=ChoiceKind.ACTION,
                context={"player": who, "round": state.round, "one": one}
            )

        self._learn(state, who, scores, best)
        return ADV_COMBO[best]

    def _score_advanced(
        self,
        state: GameState,
        who: int,
        oa: int,
        scores: np.ndarray,
        prob: float,
        prob_used: float,
        one: int,
        force: int
    ) -> None:
        """Score own action pairs against one opponent pair, best-scoring first."""
        opp = 1 - who
        sim = self.simulator.simulate(state, who)
        sim.action_selected = [False] * MAX_ACTION
        sim.players[opp].action = list(ADV_COMBO[oa])

        candidates = []
        for act in range(len(scores)):
            combo = ADV_COMBO[act]
            if not actions_legal(state, who, combo):
                continue
            if one == SECOND_ACTION and force not in combo:
                continue
            candidates.append(act)
        candidates.sort(key=lambda act: -scores[act])

        count = len(candidates)
        for i, act in enumerate(candidates):
            # Only the most promising share of pairs once coverage grows
            if i / count > 1.0 - prob_used:
                continue

            trial = self.simulator.simulate(sim, who)
            trial.players[who].action = list(ADV_COMBO[act])
            scores[act] += self._play_round(trial, who) * prob

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    def _play_round(self, trial: GameState, who: int) -> float:
        self.simulator.play_round(trial)
        return self.evaluator.evaluate(trial, who)

    @staticmethod
    def _best(scores: Sequence[float]) -> Tuple[int, float]:
        """Index and value of the first strictly best score (-1 if none beat -1)."""
        best, b_s = -1, -1.0
        for i, score in enumerate(scores):
            if score > b_s:
                best, b_s = i, float(score)
        return best, b_s

    def _learn(self, state: GameState, who: int, scores: np.ndarray, best: int) -> None:
        """Track prediction statistics and train the predictor toward the scores found."""
        desired = self.predictor.predict(state, who, who)
        self.role_mass += float(desired[best])
        if int(np.argmax(desired)) == best:
            self.role_hits += 1
        else:
            self.role_misses += 1

        b_s = scores[best]
        if b_s > 0:
            exps = np.exp(self.config.action_temperature * (scores / b_s))
            self.predictor.train(exps / exps.sum())
        else:
            logger.debug("Player %d: every action scored zero, predictor not trained", who)
        self.place_cache.clear()

    def summary(self) -> Dict[str, Optional[float]]:
        """Prediction statistics."""
        total = self.predictions
        return {
            "role_hits": self.role_hits,
            "role_misses": self.role_misses,
            "role_hit_rate": self.role_hits / total if total else None,
            "role_avg": self.role_mass / total if total else None,
        }

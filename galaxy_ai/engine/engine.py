"""
Decision engine.

The DecisionEngine is the object a rules engine installs as a player's
controller. It owns everything one ruleset shape needs:

1. The value network and the action predictor, loaded from disk or
   bootstrapped with synthetic end-of-game training
2. The evaluation and placement caches
3. The simulator, the action selector and the decision handlers
4. The per-player choice log

and exposes the lifecycle hooks: ``initialize`` when a game starts,
``make_choice`` at every decision point, ``game_over`` once per player when
a game ends and ``shutdown`` when the process is done.
"""
import logging
import os
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from galaxy_ai.core.constants import MAX_GOAL, Action, ChoiceKind, Where
from galaxy_ai.core.game import GameState
from galaxy_ai.core.rules import RulesEngine
from galaxy_ai.engine.actions import ActionSelector
from galaxy_ai.engine.cache import EvalCache
from galaxy_ai.engine.config import EngineConfig
from galaxy_ai.engine.decisions import Choice, ChoiceHandlers
from galaxy_ai.engine.evaluator import (
    Evaluator, Predictor, evaluator_names, predictor_names,
)
from galaxy_ai.engine.log import ChoiceLog, DecisionSample
from galaxy_ai.engine.roles import num_role_outputs
from galaxy_ai.engine.simulator import Simulator
from galaxy_ai.errors import NetworkShapeError
from galaxy_ai.net.network import Network
from galaxy_ai.net.training import terminal_targets

logger = logging.getLogger(__name__)

# (players, expansion level, advanced) a network set is built for
RulesetShape = Tuple[int, int, bool]


def weight_filename(kind: str, shape: RulesetShape) -> str:
    """
    Name of a weight file.

    Args:
        kind: "eval" for the value network, "role" for the predictor
        shape: Ruleset shape

    Returns:
        File name, e.g. ``galaxy.eval.2.3a.net``
    """
    players, expanded, advanced = shape
    return f"galaxy.{kind}.{expanded}.{players}{'a' if advanced else ''}.net"


class DecisionEngine:
    """
    Plays every decision for the seats it controls.

    Attributes:
        rules: Rules engine
        config: Engine configuration
        shape: Ruleset shape the networks are built for (None before
            ``initialize``)
        eval_net: Value network
        role_net: Action predictor network
        simulator: Hypothetical-state simulator
        evaluator: State evaluator
        predictor: Action predictor
        actions: Action selector
        handlers: Decision handlers
        choice_log: Decisions made on real states
    """

    def __init__(self, rules: RulesEngine, config: Optional[EngineConfig] = None):
        self.rules = rules
        self.config = config or EngineConfig()

        self.shape: Optional[RulesetShape] = None
        self.eval_net: Optional[Network] = None
        self.role_net: Optional[Network] = None
        self.simulator: Optional[Simulator] = None
        self.evaluator: Optional[Evaluator] = None
        self.predictor: Optional[Predictor] = None
        self.actions: Optional[ActionSelector] = None
        self.handlers: Optional[ChoiceHandlers] = None
        self.choice_log = ChoiceLog()

        self.rng = np.random.default_rng(self.config.seed)
        self.bootstrapped = False
        self._saved = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, state: GameState) -> bool:
        """
        Prepare the networks for a game's ruleset.

        Nothing is rebuilt if the networks already match the ruleset shape.
        Otherwise both networks are built from the ruleset's feature
        layout and loaded from the weight directory. A value network that
        cannot be loaded is bootstrapped; a predictor that cannot be loaded
        starts from random weights.

        Args:
            state: Any state of the game (typically before the first round)

        Returns:
            True if the networks were (re)built
        """
        shape = (state.num_players, state.expanded, state.advanced)
        if shape == self.shape:
            return False

        config = self.config
        eval_names = evaluator_names(self.rules, state)
        role_names = predictor_names(self.rules, state)

        self.eval_net = Network(
            len(eval_names), state.num_players, config.evaluator_network(),
            input_names=eval_names, rng=self.rng
        )
        self.role_net = Network(
            len(role_names), num_role_outputs(state.expanded, state.advanced),
            config.predictor_network(), input_names=role_names, rng=self.rng
        )

        self.simulator = Simulator(self.rules, controller=self)
        self.evaluator = Evaluator(self.rules, self.eval_net, EvalCache())
        self.predictor = Predictor(
            self.rules, self.role_net, self.evaluator, self.simulator,
            temperature=config.action_temperature
        )
        place_cache = EvalCache()
        self.actions = ActionSelector(
            self.rules, self.evaluator, self.predictor, self.simulator,
            place_cache, config
        )
        self.handlers = ChoiceHandlers(
            self.rules, self.evaluator, self.simulator, self.actions,
            place_cache, config
        )
        self.choice_log.clear()
        self.shape = shape
        self._saved = False
        self.bootstrapped = False

        if not self._load(self.eval_net, "eval"):
            self.bootstrap(state)
        self._load(self.role_net, "role")
        return True

    def weight_path(self, kind: str) -> str:
        """Path of the weight file for the current ruleset."""
        return os.path.join(self.config.network_dir, weight_filename(kind, self.shape))

    def _load(self, network: Network, kind: str) -> bool:
        path = self.weight_path(kind)
        try:
            network.load(path)
        except (OSError, NetworkShapeError) as e:
            logger.warning(f"Couldn't load {path}: {e}")
            return False
        logger.info(f"Loaded {network} from {path}")
        return True

    def bootstrap(self, state: GameState) -> None:
        """
        Pretrain a fresh value network on synthetic finished games.

        Every iteration takes an empty table, draws random final scores,
        flags the highest scorers as winners and runs end-of-game training
        for every player, with a boosted learning rate.
        """
        config = self.config
        template = self._empty_table(state)
        network = self.eval_net
        alpha = network.alpha
        network.alpha = alpha * config.bootstrap_boost

        logger.info(f"Bootstrapping value network for {template.num_players} players "
                    f"({config.bootstrap_iterations} games)")

        pbar = tqdm(total=config.bootstrap_iterations, desc="Bootstrapping",
                    disable=not config.show_progress)
        try:
            for _ in range(config.bootstrap_iterations):
                sim = self.simulator.simulate(template, 0)
                sim.game_over = True
                for player in sim.players:
                    player.vp = int(self.rng.integers(config.bootstrap_max_vp))
                    player.end_vp = player.vp
                most = max(player.vp for player in sim.players)
                for player in sim.players:
                    player.winner = player.vp == most

                for who in range(sim.num_players):
                    self.game_over(sim, who)
                pbar.update(1)
        finally:
            pbar.close()
            network.alpha = alpha

        self.bootstrapped = True
        logger.info(f"Bootstrap finished: {network}")

    @staticmethod
    def _empty_table(state: GameState) -> GameState:
        """Copy a state with every card in the deck and every counter cleared."""
        table = state.clone()
        table.simulation = False
        table.vp_pool = 0
        table.cur_action = Action.ROUND_START
        table.goal_active = [False] * MAX_GOAL
        table.goal_avail = [False] * MAX_GOAL
        table.takeovers = []
        for card in table.cards:
            card.owner = -1
            card.where = Where.DECK
            card.num_goods = 0
            card.covering = -1
            card.known = 0
        for player in table.players:
            player.goal_claimed = [False] * MAX_GOAL
            player.fake_hand = 0
            player.fake_discards = 0
            player.drawn_round = 0
            player.winner = False
            player.vp = 0
            player.prestige = 0
            player.prestige_action_used = False
        return table

    def game_over(self, state: GameState, who: int) -> None:
        """
        Train the value network toward a finished game's outcome.

        Called once per player. After the last player, the sample rings of
        both networks are cleared and the value network's training counter
        advances.

        Args:
            state: Finished game, already scored
            who: Player to train for
        """
        scores = [player.end_vp + int(player.winner) for player in state.players]
        desired = terminal_targets(scores, who, self.config.terminal_temperature)
        self.evaluator.train(state, who, desired, self.config.lambda_decay)

        if who == state.num_players - 1:
            self.eval_net.clear_samples()
            self.role_net.clear_samples()
            self.eval_net.num_training += 1

    def shutdown(self) -> Dict[str, Any]:
        """
        Save the weights (at most once) and report diagnostics.

        Returns:
            Diagnostic counters
        """
        stats = self.diagnostics()
        if self.shape is None or self._saved:
            return stats

        if self.config.save_on_shutdown:
            for network, kind in ((self.eval_net, "eval"), (self.role_net, "role")):
                path = self.weight_path(kind)
                network.save(path)
                logger.info(f"Saved {network} to {path}")
        self._saved = True

        logger.info(
            "Role hit: %s, role miss: %s, role avg: %s, role error: %.6f, "
            "eval error: %.6f, cache hit ratio: %.3f",
            stats["role_hits"], stats["role_misses"], stats["role_avg"],
            stats["role_error"], stats["eval_error"], stats["cache_hit_ratio"]
        )
        return stats

    def diagnostics(self) -> Dict[str, Any]:
        """Prediction statistics, mean training errors and cache effectiveness."""
        if self.shape is None:
            return {}
        stats: Dict[str, Any] = dict(self.actions.summary())
        stats["role_error"] = self.role_net.mean_error()
        stats["eval_error"] = self.eval_net.mean_error()
        stats["cache_hit_ratio"] = self.evaluator.cache.hit_ratio()
        stats["evaluations"] = self.evaluator.evaluations
        stats["training_games"] = self.eval_net.num_training
        return stats

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def make_choice(
        self,
        state: GameState,
        who: int,
        kind: int,
        items: Sequence[int] = (),
        special: Sequence[int] = (),
        arg1: int = 0,
        arg2: int = 0,
        arg3: int = 0
    ) -> Choice:
        """
        Answer one decision for a player.

        Args:
            state: Real or hypothetical game state
            who: Deciding player
            kind: ChoiceKind of the decision
            items: Candidate list
            special: Special ability list
            arg1: First kind-specific argument
            arg2: Second kind-specific argument
            arg3: Third kind-specific argument

        Returns:
            The choice made

        Raises:
            ValueError: If the decision kind is unknown
            SearchExhaustedError: If a mandatory decision had no legal candidate
        """
        if self.shape is None:
            self.initialize(state)

        real = not state.simulation
        if real:
            self.prepare_discard(state, who)
            state.players[who].low_hand = state.count_area(who, Where.HAND)

        choice = self.handlers.handle(state, who, kind, list(items), list(special),
                                      arg1, arg2, arg3)

        if real:
            self.choice_log.append(who, DecisionSample(
                kind=ChoiceKind(kind),
                value=choice.value,
                candidates=list(items),
                items=choice.items,
                special=choice.special,
                round=state.round,
            ))
            self.evaluator.cache.clear()
        return choice

    def prepare_discard(self, state: GameState, who: int) -> List[int]:
        """
        Rank a player's hand from most to least discardable.

        Each card is discarded on a copy and the copy scored; the ranking is
        used by the simulator when a hypothetical hand outgrows the real one.

        Returns:
            Hand cards, best discard first
        """
        scored = []
        for index in state.cards_in(who, Where.HAND):
            sim = self.simulator.simulate(state, who)
            sim.move_card(index, -1, Where.DISCARD)
            scored.append((self.evaluator.evaluate(sim, who), index))
        scored.sort(key=lambda item: -item[0])

        order = [index for _, index in scored]
        self.simulator.discard_order[who] = order
        return order

    def choose_actions(self, state: GameState, who: int, one: int = 0) -> Tuple[int, int]:
        """Convenience wrapper for action selection."""
        choice = self.make_choice(state, who, ChoiceKind.ACTION, arg1=one)
        return choice.items[0], choice.items[1]

    def __str__(self) -> str:
        if self.shape is None:
            return "DecisionEngine(uninitialized)"
        players, expanded, advanced = self.shape
        return (
            f"DecisionEngine({players} players, expansion {expanded}"
            f"{', advanced' if advanced else ''})"
        )

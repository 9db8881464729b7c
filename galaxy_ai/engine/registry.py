"""
Registry of decision engines.

Each ruleset shape (player count, expansion level, advanced flag) has its
own feature layout and therefore its own pair of networks. The registry
builds one engine per shape on first use and hands the same engine back for
every later game of that shape.
"""
import logging
from typing import Any, Dict, Iterator, List, Optional

from galaxy_ai.core.game import GameState
from galaxy_ai.core.rules import RulesEngine
from galaxy_ai.engine.config import EngineConfig
from galaxy_ai.engine.engine import DecisionEngine, RulesetShape

logger = logging.getLogger(__name__)


class EngineRegistry:
    """
    Lazily built decision engines, one per ruleset shape.

    Attributes:
        rules: Rules engine shared by every engine
        config: Configuration shared by every engine
    """

    def __init__(self, rules: RulesEngine, config: Optional[EngineConfig] = None):
        self.rules = rules
        self.config = config or EngineConfig()
        self._engines: Dict[RulesetShape, DecisionEngine] = {}

    @staticmethod
    def shape_of(state: GameState) -> RulesetShape:
        return state.num_players, state.expanded, state.advanced

    def engine_for(self, state: GameState) -> DecisionEngine:
        """
        Get the engine for a game's ruleset, building and initializing it if needed.

        Args:
            state: Game state

        Returns:
            Initialized engine
        """
        shape = self.shape_of(state)
        engine = self._engines.get(shape)
        if engine is None:
            logger.debug(f"Creating engine for {shape}")
            engine = DecisionEngine(self.rules, self.config)
            engine.initialize(state)
            self._engines[shape] = engine
        return engine

    def attach(self, state: GameState, seats: Optional[List[int]] = None) -> DecisionEngine:
        """Install the game's engine as the controller of some (default: all) seats."""
        engine = self.engine_for(state)
        for who in range(state.num_players) if seats is None else seats:
            state.players[who].control = engine
        return engine

    def shutdown(self) -> Dict[RulesetShape, Dict[str, Any]]:
        """Shut every engine down, returning each one's diagnostics."""
        return {shape: engine.shutdown() for shape, engine in self._engines.items()}

    def __contains__(self, shape: RulesetShape) -> bool:
        return shape in self._engines

    def __iter__(self) -> Iterator[DecisionEngine]:
        return iter(self._engines.values())

    def __len__(self) -> int:
        return len(self._engines)

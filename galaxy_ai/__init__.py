"""
Galaxy AI - A learning decision engine for a card-drafting economy game.

This package provides the decision-making core of an automated player: a
numpy value network and action predictor, a hypothetical-state simulator,
an evaluation cache and one search handler per decision kind. Game rules
are supplied by the caller through the RulesEngine interface.
"""

__version__ = "0.1.0"
__author__ = "Galaxy AI Team"

# Make key components available at package level
from galaxy_ai.core.game import GameState
from galaxy_ai.core.player import PlayerState
from galaxy_ai.core.rules import RulesEngine
from galaxy_ai.engine.engine import DecisionEngine
from galaxy_ai.engine.config import EngineConfig

# Version info as a tuple for programmatic access
VERSION_INFO = tuple(map(int, __version__.split('.')))

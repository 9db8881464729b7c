"""
Decision engine for Galaxy AI.

This package turns a rules engine's decision points into choices. For every
decision it:

1. Copies the real state into a hypothetical one
2. Applies each candidate choice through the rules engine
3. Finishes the turn on the copy and scores it with the value network
4. Keeps the best candidate

Action selection additionally weights candidates by the predicted actions
of the opponents. Both networks learn online as games are played.
"""

from galaxy_ai.engine.config import EngineConfig
from galaxy_ai.engine.cache import EvalCache, canonical_key, placement_key, gen_hash
from galaxy_ai.engine.simulator import Simulator
from galaxy_ai.engine.subsets import SubsetSearch, best_subset
from galaxy_ai.engine.evaluator import Evaluator, Predictor
from galaxy_ai.engine.actions import ActionSelector
from galaxy_ai.engine.decisions import Choice, ChoiceHandlers
from galaxy_ai.engine.log import ChoiceLog, DecisionSample
from galaxy_ai.engine.engine import DecisionEngine, weight_filename
from galaxy_ai.engine.registry import EngineRegistry

# Default configuration
DEFAULT_CONFIG = EngineConfig(
    eval_hidden=50,           # Hidden nodes of the value network
    role_hidden=50,           # Hidden nodes of the action predictor
    lambda_decay=0.7,         # Credit decay per step back in history
    coverage_target=0.8,      # Opponent action mass covered per action choice
    bootstrap_iterations=5000,  # Synthetic games for a fresh value network
    network_dir="network"     # Where weight files are read and written
)

__all__ = [
    'DecisionEngine',
    'EngineRegistry',
    'EngineConfig',
    'EvalCache',
    'Simulator',
    'SubsetSearch',
    'Evaluator',
    'Predictor',
    'ActionSelector',
    'ChoiceHandlers',
    'Choice',
    'ChoiceLog',
    'DecisionSample',
    'canonical_key',
    'placement_key',
    'gen_hash',
    'best_subset',
    'weight_filename',
    'DEFAULT_CONFIG'
]

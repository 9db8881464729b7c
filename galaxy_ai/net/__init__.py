"""
Network substrate for the Galaxy AI decision engine.

This package contains:
- A two-layer numpy network with incremental forward evaluation
- Accumulate-then-commit backpropagation and sample history
- Plain-text weight persistence
- Temporal training helpers
"""

from galaxy_ai.net.config import NetworkConfig
from galaxy_ai.net.network import Network
from galaxy_ai.net.training import terminal_targets, train_history, set_seed

DEFAULT_CONFIG = NetworkConfig()

__all__ = [
    'NetworkConfig',
    'Network',
    'terminal_targets',
    'train_history',
    'set_seed',
    'DEFAULT_CONFIG',
]

"""
Configuration for the two-layer evaluation networks.

This module defines the shape and learning parameters shared by the
evaluator (value) network and the predictor (policy) network.
"""
from dataclasses import dataclass
from typing import Any, Dict


@dataclass
class NetworkConfig:
    """
    Configuration parameters for a two-layer network.

    The input and output sizes are not configured here: they follow from
    the ruleset the network is built for.
    """
    num_hidden: int = 50
    """Number of hidden (tanh) nodes"""

    alpha: float = 0.0001
    """Learning rate applied to accumulated weight corrections"""

    init_range: float = 0.1
    """Initial weights are drawn uniformly from [-init_range, init_range]"""

    past_max: int = 120
    """Number of past input vectors kept for delayed credit assignment"""

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.num_hidden <= 0:
            raise ValueError("num_hidden must be positive")

        if self.alpha < 0:
            raise ValueError("alpha must be non-negative")

        if self.init_range <= 0:
            raise ValueError("init_range must be positive")

        if self.past_max <= 0:
            raise ValueError("past_max must be positive")

    @classmethod
    def evaluator(cls, factor: float = 1.0) -> 'NetworkConfig':
        """
        Get the configuration of the value network.

        Args:
            factor: Multiplier applied to the learning rate

        Returns:
            NetworkConfig for the evaluator
        """
        return cls(num_hidden=50, alpha=0.0001 * factor)

    @classmethod
    def predictor(cls, factor: float = 1.0) -> 'NetworkConfig':
        """
        Get the configuration of the action predictor.

        Args:
            factor: Multiplier applied to the learning rate

        Returns:
            NetworkConfig for the predictor
        """
        return cls(num_hidden=50, alpha=0.0005 * factor)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {k: v for k, v in self.__dict__.items()}

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'NetworkConfig':
        """Create configuration from dictionary."""
        return cls(**{k: v for k, v in config_dict.items() if k in cls.__dataclass_fields__})

"""
Configuration for the decision engine.

This module defines the search, training and persistence parameters of the
decision engine, including the thresholds that bound opponent-action
coverage and the candidate caps that keep large choices tractable.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from galaxy_ai.net.config import NetworkConfig


@dataclass
class EngineConfig:
    """
    Configuration parameters for the decision engine.

    This class defines all tunable parameters of search and training,
    with validation and sensible defaults.
    """
    # Networks
    eval_hidden: int = 50
    """Hidden nodes of the value network"""

    role_hidden: int = 50
    """Hidden nodes of the action predictor"""

    eval_alpha: float = 0.0001
    """Base learning rate of the value network"""

    role_alpha: float = 0.0005
    """Base learning rate of the action predictor"""

    learning_factor: float = 1.0
    """Multiplier applied to both learning rates (0 freezes the networks)"""

    past_max: int = 120
    """Past input vectors remembered per network"""

    # Training
    lambda_decay: float = 0.7
    """Weight decay per step back through a player's history"""

    action_temperature: float = 20.0
    """Sharpness of the predictor target built from action scores"""

    terminal_temperature: float = 0.3
    """Sharpness of the win distribution built from final scores"""

    bootstrap_iterations: int = 5000
    """Synthetic terminal games used to pretrain a fresh value network"""

    bootstrap_boost: float = 10.0
    """Learning rate multiplier during bootstrap pretraining"""

    bootstrap_max_vp: int = 50
    """Synthetic final scores are drawn from [0, bootstrap_max_vp)"""

    # Action search
    coverage_target: float = 0.8
    """Opponent probability mass to cover before action search stops"""

    threshold_divisor: float = 8.0
    """Divisor applied to the opponent combination threshold"""

    threshold_multiplier_4p: float = 5.0
    """Threshold multiplier with four players"""

    threshold_multiplier_5p: float = 7.0
    """Threshold multiplier with five or more players"""

    own_action_margin: float = 0.3
    """Own actions scoring below (margin + covered mass) of the best are skipped"""

    # Candidate handling
    score_epsilon: float = 1e-6
    """Tolerance when comparing candidate scores"""

    discard_greedy_cap: int = 20
    """Discard choices larger than this use a greedy per-card pass"""

    payment_cap: int = 15
    """Cards considered when choosing a payment"""

    defend_cap: int = 30
    """Cards considered when choosing a defence"""

    consume_hand_cap: int = 30
    """Cards considered when consuming from hand"""

    payment_table_size: int = 100
    """Legal payments remembered in hypothetical play"""

    # Persistence
    network_dir: str = "network"
    """Directory holding the weight files"""

    save_on_shutdown: bool = True
    """Whether shutdown writes the weights"""

    seed: Optional[int] = None
    """Seed for the initial weights and bootstrap scores"""

    show_progress: bool = True
    """Whether bootstrap pretraining shows a progress bar"""

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.eval_hidden <= 0 or self.role_hidden <= 0:
            raise ValueError("hidden sizes must be positive")

        if self.eval_alpha < 0 or self.role_alpha < 0:
            raise ValueError("learning rates must be non-negative")

        if self.learning_factor < 0:
            raise ValueError("learning_factor must be non-negative")

        if self.past_max <= 0:
            raise ValueError("past_max must be positive")

        if not 0 < self.lambda_decay <= 1:
            raise ValueError("lambda_decay must be in (0, 1]")

        if self.action_temperature <= 0 or self.terminal_temperature <= 0:
            raise ValueError("temperatures must be positive")

        if self.bootstrap_iterations < 0:
            raise ValueError("bootstrap_iterations must be non-negative")

        if self.bootstrap_boost <= 0:
            raise ValueError("bootstrap_boost must be positive")

        if self.bootstrap_max_vp <= 0:
            raise ValueError("bootstrap_max_vp must be positive")

        if not 0 < self.coverage_target <= 1:
            raise ValueError("coverage_target must be in (0, 1]")

        if self.threshold_divisor <= 0:
            raise ValueError("threshold_divisor must be positive")

        if self.score_epsilon < 0:
            raise ValueError("score_epsilon must be non-negative")

        for name in ("discard_greedy_cap", "payment_cap", "defend_cap",
                     "consume_hand_cap", "payment_table_size"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

    def evaluator_network(self) -> NetworkConfig:
        """Network configuration of the value network."""
        return NetworkConfig(
            num_hidden=self.eval_hidden,
            alpha=self.eval_alpha * self.learning_factor,
            past_max=self.past_max,
        )

    def predictor_network(self) -> NetworkConfig:
        """Network configuration of the action predictor."""
        return NetworkConfig(
            num_hidden=self.role_hidden,
            alpha=self.role_alpha * self.learning_factor,
            past_max=self.past_max,
        )

    @classmethod
    def default(cls) -> 'EngineConfig':
        """
        Get the default configuration.

        Returns:
            Default EngineConfig object
        """
        return cls()

    @classmethod
    def fast(cls) -> 'EngineConfig':
        """
        Get a configuration optimized for speed.

        Smaller networks, a short bootstrap and tighter candidate caps.

        Returns:
            Fast EngineConfig object
        """
        return cls(
            eval_hidden=20,
            role_hidden=20,
            bootstrap_iterations=500,
            discard_greedy_cap=12,
            payment_cap=10,
            defend_cap=15,
            consume_hand_cap=15,
        )

    @classmethod
    def frozen(cls) -> 'EngineConfig':
        """
        Get a configuration that plays without learning or saving.

        Returns:
            Frozen EngineConfig object
        """
        return cls(learning_factor=0.0, save_on_shutdown=False)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'EngineConfig':
        """
        Create a configuration from a dictionary.

        Args:
            config_dict: Dictionary of configuration parameters

        Returns:
            EngineConfig object
        """
        valid_params = {k: v for k, v in config_dict.items()
                        if k in cls.__dataclass_fields__}
        return cls(**valid_params)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the configuration to a dictionary.

        Returns:
            Dictionary of configuration parameters
        """
        return {name: getattr(self, name) for name in self.__dataclass_fields__}

    def __str__(self) -> str:
        params = [f"{name}={value}" for name, value in self.to_dict().items()]
        return f"EngineConfig({', '.join(params)})"

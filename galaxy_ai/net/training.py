"""
Temporal training helpers for the evaluation networks.

This module provides the pieces of the online training loop that do not
depend on the game:

1. Terminal targets: converting final scores into a win distribution
2. History training: backpropagating one target through a player's recent
   input vectors with exponentially decaying weight
3. Seeding for reproducible runs
"""
import random
from typing import Optional, Sequence

import numpy as np

from galaxy_ai.net.network import Network


def terminal_targets(scores: Sequence[float], who: int, temperature: float = 0.3) -> np.ndarray:
    """
    Convert final scores into a target win distribution.

    Args:
        scores: Final score of every player, in seat order
        who: Viewpoint player; the result starts with this player and
            continues clockwise
        temperature: Sharpness of the distribution

    Returns:
        Target probabilities, ordered from the viewpoint
    """
    n = len(scores)
    best = max(scores)
    ordered = np.array([scores[(who + i) % n] for i in range(n)], dtype=float)
    exps = np.exp(temperature * (ordered - best))
    return exps / exps.sum()


def train_history(
    network: Network,
    who: int,
    desired: Optional[Sequence[float]] = None,
    decay: float = 0.7
) -> None:
    """
    Train a player's recent inputs toward one target and commit.

    The network's current inputs must already have been computed and stored
    as the newest sample. With ``desired`` given (a realized outcome), the
    current inputs are trained first at full weight; otherwise the current
    outputs themselves become the target for the earlier samples. Each
    earlier sample of the same player is trained with the weight multiplied
    by ``decay`` again.

    Args:
        network: Network holding the samples
        who: Player whose samples are trained
        desired: Optional realized target distribution
        decay: Per-step weight decay (lambda)
    """
    lmbda = 1.0

    if desired is not None:
        target = np.asarray(desired, dtype=float)
        network.train(lmbda, target)
        lmbda *= decay
    else:
        target = network.probs.copy()

    past = list(network.samples)[:-1]
    for owner, vector in reversed(past):
        if owner != who:
            continue
        network.forward(vector)
        network.train(lmbda, target)
        lmbda *= decay

    network.commit()


def set_seed(seed: int) -> None:
    """
    Set random seed for reproducibility.

    Args:
        seed: Random seed
    """
    random.seed(seed)
    np.random.seed(seed)

"""
Two-layer feed-forward network with incremental evaluation.

This module implements the network substrate shared by the evaluator and
the predictor:

1. Forward pass: inputs -> tanh hidden layer -> max-shifted softmax outputs.
   Hidden sums are updated from the inputs that changed since the previous
   pass, so flipping a handful of features costs a handful of row additions.
2. Training: backpropagation of a lambda-scaled error through the softmax
   Jacobian. Corrections are accumulated and only applied by ``commit()``.
3. A bounded ring of past input vectors tagged with the player they were
   recorded for, used for delayed credit assignment.
4. Plain-text weight persistence.
"""
import logging
from collections import deque
from pathlib import Path
from typing import Deque, List, Optional, Sequence, Tuple, Union

import numpy as np

from galaxy_ai.errors import LayoutMismatchError, NetworkShapeError
from galaxy_ai.net.config import NetworkConfig

logger = logging.getLogger(__name__)


class Network:
    """
    Two-layer network producing a probability vector.

    The weight matrices include a bias row: ``hidden_weights`` has shape
    (num_inputs + 1, num_hidden) and ``output_weights`` has shape
    (num_hidden + 1, num_outputs). The last entry of ``inputs`` is the
    constant bias input 1.0.
    """

    def __init__(
        self,
        num_inputs: int,
        num_outputs: int,
        config: Optional[NetworkConfig] = None,
        input_names: Optional[Sequence[str]] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        """
        Build a network with small random weights.

        Args:
            num_inputs: Number of feature inputs (bias excluded)
            num_outputs: Number of outputs
            config: Hidden size and learning parameters
            input_names: Optional human-readable name per input
            rng: Random generator used for the initial weights
        """
        if num_inputs <= 0 or num_outputs <= 0:
            raise ValueError("Network needs at least one input and one output")

        self.config = config or NetworkConfig()
        self.num_inputs = num_inputs
        self.num_hidden = self.config.num_hidden
        self.num_outputs = num_outputs
        self.alpha = self.config.alpha

        names = list(input_names) if input_names is not None else []
        if names and len(names) != num_inputs:
            raise LayoutMismatchError(
                "Input name count does not match input count",
                context={"names": len(names), "inputs": num_inputs}
            )
        self.input_names: List[str] = names or [""] * num_inputs

        rng = rng or np.random.default_rng()
        r = self.config.init_range
        self.hidden_weights = rng.uniform(-r, r, size=(num_inputs + 1, self.num_hidden))
        self.output_weights = rng.uniform(-r, r, size=(self.num_hidden + 1, num_outputs))

        self._hidden_delta = np.zeros_like(self.hidden_weights)
        self._output_delta = np.zeros_like(self.output_weights)

        # Current pass
        self.inputs = np.zeros(num_inputs + 1)
        self.inputs[-1] = 1.0
        self.hidden = np.zeros(self.num_hidden)
        self.output_sums = np.zeros(num_outputs)
        self.probs = np.full(num_outputs, 1.0 / num_outputs)

        # Incremental state
        self._prev_input: Optional[np.ndarray] = None
        self._hidden_sum = np.zeros(self.num_hidden)

        # Past inputs for delayed credit assignment
        self.samples: Deque[Tuple[int, np.ndarray]] = deque(maxlen=self.config.past_max)

        # Statistics
        self.num_training = 0
        self.error = 0.0
        self.num_error = 0.0

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self.num_inputs, self.num_hidden, self.num_outputs

    def set_inputs(self, values: Sequence[float]) -> None:
        """
        Load a feature vector into the input layer.

        Raises:
            LayoutMismatchError: If the vector length differs from the input count
        """
        values = np.asarray(values, dtype=float)
        if values.shape != (self.num_inputs,):
            raise LayoutMismatchError(
                "Feature vector does not match network inputs",
                context={"expected": self.num_inputs, "found": values.shape[0]}
            )
        self.inputs[:-1] = values

    def forward(self, values: Optional[Sequence[float]] = None) -> np.ndarray:
        """
        Compute the output probabilities for the current inputs.

        Only the inputs that differ from the previous pass contribute new
        work to the hidden sums.

        Args:
            values: Optional feature vector to load first

        Returns:
            Output probabilities (positive, summing to 1)
        """
        if values is not None:
            self.set_inputs(values)

        x = self.inputs
        if self._prev_input is None:
            self._hidden_sum = x @ self.hidden_weights
        else:
            changed = np.flatnonzero(x != self._prev_input)
            if changed.size:
                diff = x[changed] - self._prev_input[changed]
                self._hidden_sum = self._hidden_sum + diff @ self.hidden_weights[changed]
        self._prev_input = x.copy()

        self.hidden = np.tanh(self._hidden_sum)
        self.output_sums = self.hidden @ self.output_weights[:-1] + self.output_weights[-1]

        # Shift by the largest output so the exponentials cannot overflow
        exps = np.exp(self.output_sums - self.output_sums.max())
        self.probs = exps / exps.sum()
        return self.probs

    def full_forward(self, values: Optional[Sequence[float]] = None) -> np.ndarray:
        """Compute the outputs from scratch, ignoring incremental state."""
        self._prev_input = None
        return self.forward(values)

    def train(self, lmbda: float, target: Sequence[float]) -> None:
        """
        Accumulate corrections moving the current outputs toward a target.

        The error of each output is ``lmbda * (probs - target)``; it is
        propagated through the full softmax Jacobian, so every output's error
        reaches every hidden node. Weights are not changed until ``commit()``.

        Args:
            lmbda: Weight of this training example
            target: Desired output distribution
        """
        target = np.asarray(target, dtype=float)
        if target.shape != (self.num_outputs,):
            raise LayoutMismatchError(
                "Training target does not match network outputs",
                context={"expected": self.num_outputs, "found": target.shape[0]}
            )

        p = self.probs
        error = lmbda * (p - target)
        self.error += float(error @ error)
        self.num_error += lmbda

        jacobian = np.diag(p) - np.outer(p, p)
        grad = jacobian @ error

        hidden_aug = np.append(self.hidden, 1.0)
        hidden_error = self.output_weights[:-1] @ grad
        hidden_grad = (1.0 - self.hidden * self.hidden) * hidden_error

        self._output_delta -= self.alpha * np.outer(hidden_aug, grad)
        self._hidden_delta -= self.alpha * np.outer(self.inputs, hidden_grad)

    def commit(self) -> None:
        """Apply and clear all accumulated corrections."""
        self.hidden_weights += self._hidden_delta
        self.output_weights += self._output_delta
        self._hidden_delta.fill(0.0)
        self._output_delta.fill(0.0)

        # Hidden sums are stale after a weight change
        self._prev_input = None

    @property
    def pending(self) -> bool:
        """Whether uncommitted corrections exist."""
        return bool(self._hidden_delta.any() or self._output_delta.any())

    def store_sample(self, who: int) -> None:
        """Remember the current inputs for later training of a player's history."""
        self.samples.append((who, self.inputs[:-1].copy()))

    def clear_samples(self) -> None:
        self.samples.clear()

    def mean_error(self) -> float:
        return self.error / self.num_error if self.num_error else 0.0

    def reset_error(self) -> None:
        self.error = 0.0
        self.num_error = 0.0

    def save(self, path: Union[str, Path]) -> None:
        """
        Save weights in the plain-text format.

        Layout: sizes line, training counter, one name per input, hidden
        weights row-major over inputs (bias row last), then output weights
        row-major over hidden nodes (bias row last). One value per line.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            f.write(f"{self.num_inputs} {self.num_hidden} {self.num_outputs}\n")
            f.write(f"{self.num_training}\n")
            for name in self.input_names:
                f.write(name.replace("\n", " ") + "\n")
            for value in self.hidden_weights.ravel().tolist():
                f.write(repr(value) + "\n")
            for value in self.output_weights.ravel().tolist():
                f.write(repr(value) + "\n")

    def load(self, path: Union[str, Path]) -> None:
        """
        Load weights saved by ``save()``.

        Raises:
            FileNotFoundError: If the file does not exist
            NetworkShapeError: If the file's shape differs from this network
                or the file is truncated
        """
        with open(path, 'r') as f:
            lines = f.read().split("\n")

        try:
            found = tuple(int(v) for v in lines[0].split())
            counter = int(lines[1])
        except (IndexError, ValueError) as e:
            raise NetworkShapeError(f"Malformed weight file header: {e}", context={"path": str(path)})

        if found != self.shape:
            raise NetworkShapeError(
                "Weight file shape does not match network",
                expected=self.shape, found=found, context={"path": str(path)}
            )

        n_in, n_hid, n_out = self.shape
        names = lines[2:2 + n_in]
        start = 2 + n_in
        n_hidden_w = (n_in + 1) * n_hid
        n_output_w = (n_hid + 1) * n_out
        values = lines[start:start + n_hidden_w + n_output_w]
        if len(names) != n_in or len(values) != n_hidden_w + n_output_w:
            raise NetworkShapeError("Truncated weight file", context={"path": str(path)})

        try:
            weights = np.array([float(v) for v in values])
        except ValueError as e:
            raise NetworkShapeError(f"Malformed weight: {e}", context={"path": str(path)})

        self.hidden_weights = weights[:n_hidden_w].reshape(n_in + 1, n_hid)
        self.output_weights = weights[n_hidden_w:].reshape(n_hid + 1, n_out)
        self._hidden_delta = np.zeros_like(self.hidden_weights)
        self._output_delta = np.zeros_like(self.output_weights)
        self.input_names = list(names)
        self.num_training = counter
        self._prev_input = None

        logger.debug(f"Loaded {path} ({n_in} inputs, {counter} training games)")

    def __str__(self) -> str:
        return (
            f"Network({self.num_inputs} inputs, {self.num_hidden} hidden, "
            f"{self.num_outputs} outputs, {self.num_training} games)"
        )

#!/usr/bin/env python
"""
Weight file inspector.

Summarises a saved network: its shape, how many games it has been trained
on, weight statistics, and how strongly each input moves one output when it
is switched on from an all-zero input vector.

Example usage:
    # Show the inputs that matter most to the first player's win chance
    galaxy-netinfo network/galaxy.eval.0.2.net

    # Show the 40 strongest inputs of output 1
    galaxy-netinfo network/galaxy.eval.0.2.net --output 1 --top 40
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from galaxy_ai import __version__
from galaxy_ai.errors import NetworkShapeError
from galaxy_ai.net.config import NetworkConfig
from galaxy_ai.net.network import Network

logger = logging.getLogger(__name__)
console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console)]
    )


def read_network(path: Path) -> Network:
    """
    Load a weight file without knowing its shape in advance.

    Raises:
        NetworkShapeError: If the header is malformed or the file truncated
    """
    with open(path, 'r') as f:
        header = f.readline().split()
    try:
        num_inputs, num_hidden, num_outputs = (int(v) for v in header)
    except ValueError:
        raise NetworkShapeError("Malformed weight file header", context={"path": str(path)})

    network = Network(num_inputs, num_outputs, NetworkConfig(num_hidden=num_hidden))
    network.load(path)
    return network


def input_effects(network: Network, output: int = 0) -> List[Tuple[str, float]]:
    """
    Change of one output when each input alone is switched on.

    Args:
        network: Loaded network
        output: Output index to measure

    Returns:
        (input name, change) per input, in input order
    """
    zeros = np.zeros(network.num_inputs)
    start = float(network.full_forward(zeros)[output])

    effects = []
    for i in range(network.num_inputs):
        values = zeros.copy()
        values[i] = 1.0
        value = float(network.forward(values)[output])
        effects.append((network.input_names[i] or f"Input {i}", value - start))
    return effects


def summary_table(path: Path, network: Network) -> Table:
    table = Table(title=str(path), show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", justify="right")

    n_in, n_hid, n_out = network.shape
    table.add_row("Inputs", str(n_in))
    table.add_row("Hidden nodes", str(n_hid))
    table.add_row("Outputs", str(n_out))
    table.add_row("Training games", str(network.num_training))
    for label, weights in (("Hidden", network.hidden_weights), ("Output", network.output_weights)):
        table.add_row(f"{label} weights mean", f"{weights.mean():+.5f}")
        table.add_row(f"{label} weights std", f"{weights.std():.5f}")
        table.add_row(f"{label} weights max |w|", f"{np.abs(weights).max():.5f}")
    return table


def effects_table(effects: List[Tuple[str, float]], output: int, top: int) -> Table:
    ranked = sorted(effects, key=lambda item: -abs(item[1]))[:top]

    table = Table(title=f"Strongest inputs for output {output}")
    table.add_column("Input")
    table.add_column("Effect", justify="right")
    for name, effect in ranked:
        style = "green" if effect > 0 else "red"
        table.add_row(name, f"[{style}]{effect:+.6f}[/{style}]")
    return table


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Inspect a Galaxy AI weight file")

    parser.add_argument("path", type=Path, help="Weight file to inspect")
    parser.add_argument("--output", type=int, default=0,
                        help="Output whose input effects are listed")
    parser.add_argument("--top", type=int, default=20,
                        help="Number of inputs to list (0 for none)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Verbose logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function.

    Returns:
        Exit code: 0 on success, 1 for an unreadable weight file or an
        output index out of range, 2 if the weight file does not exist
    """
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        network = read_network(args.path)
    except FileNotFoundError:
        logger.error(f"No such weight file: {args.path}")
        return 2
    except NetworkShapeError as e:
        logger.error(f"Cannot read {args.path}: {e}")
        return 1

    if not 0 <= args.output < network.num_outputs:
        logger.error(f"Output {args.output} out of range (network has {network.num_outputs})")
        return 1

    console.print(summary_table(args.path, network))
    if args.top > 0:
        console.print(effects_table(input_effects(network, args.output), args.output, args.top))
    return 0


if __name__ == "__main__":
    sys.exit(main())

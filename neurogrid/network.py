import logging
import math
import threading
import numpy as np
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .config import ConfigurationError, HomeostasisConfig, validate_grid
from .neuron import InputNeuron, LogicNeuron

logger = logging.getLogger(__name__)

AnyNeuron = Union[InputNeuron, LogicNeuron]


class Network:
    """
    A width x height grid of binary neurons wired into a pseudo-random layered graph.

    Layer 0 (the bottom row) holds input neurons; every other layer holds logic
    neurons reading K connections from the layer directly below. The last layer
    (the top row) is the output layer.

    Features:
    - Random wiring and per-neuron rewiring
    - Homeostatic threshold multiplier keeping about half the grid active
    - Stake-targeted reinforcement (stimulate)
    - Change log of activation flips for incremental displays

    The network performs no locking of its own. `lock` is the exclusion
    boundary for this generation and is acquired by callers around cycles and
    reinforcement.
    """

    def __init__(self,
                 width: int,
                 height: int,
                 incoming: int,
                 homeostasis: Optional[HomeostasisConfig] = None,
                 seed: Optional[int] = None,
                 rng: Optional[np.random.Generator] = None):
        """
        Initialize and randomly wire a network.

        Args:
            width: Neurons per layer
            height: Number of layers, input layer included (at least 2)
            incoming: Incoming connections per logic neuron (K)
            homeostasis: Threshold controller settings (defaults if None)
            seed: Seed for a fresh random generator (ignored when rng is given)
            rng: Random generator to draw from
        """
        validate_grid(width, height, incoming)
        self.width = width
        self.height = height
        self.incoming = incoming
        self.homeostasis = homeostasis if homeostasis is not None else HomeostasisConfig()
        self.rng = rng if rng is not None else np.random.default_rng(seed)

        self.threshold_multiplier = self.homeostasis.initial_multiplier
        self.activation_fraction = 0.0
        self.input_bits: List[bool] = [False] * width

        self.lock = threading.Lock()
        self._changes: List[Tuple[int, int, bool]] = []

        self.layers: List[List[AnyNeuron]] = []
        self._initialize_layers()
        self.initialize()

    def _initialize_layers(self):
        """Allocate the grid: input neurons in layer 0, logic neurons above."""
        self.layers = [[InputNeuron(0, i) for i in range(self.width)]]
        for layer_index in range(1, self.height):
            self.layers.append(
                [LogicNeuron(layer_index, i, self.incoming) for i in range(self.width)])

    def initialize(self):
        """Wire every logic neuron to uniformly random neurons of the layer below."""
        for neuron in self.logic_neurons():
            self.rewire_random(neuron)

    def rewire_random(self, neuron: LogicNeuron):
        """
        Re-sample all incoming connections and weights of one neuron.

        Args:
            neuron: Logic neuron to rewire
        """
        if neuron.is_input:
            return
        previous_width = len(self.layers[neuron.layer_index - 1])
        neuron.sources = self.rng.integers(0, previous_width, size=self.incoming)
        neuron.weights = self.rng.random(self.incoming) < 0.5
        neuron.cursor = 0

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def total_units(self) -> int:
        return self.width * self.height

    @property
    def input_layer(self) -> List[InputNeuron]:
        return self.layers[0]

    @property
    def output_layer(self) -> List[LogicNeuron]:
        return self.layers[-1]

    def neuron_at(self, layer_index: int, index: int) -> AnyNeuron:
        return self.layers[layer_index][index]

    def neurons(self):
        """Iterate over every neuron, layer by layer."""
        for layer in self.layers:
            yield from layer

    def logic_neurons(self):
        for layer in self.layers[1:]:
            yield from layer

    def matrix_state(self) -> np.ndarray:
        """Activations as a (height, width) boolean array indexed [layer, index]."""
        return np.array([[n.activated for n in layer] for layer in self.layers], dtype=bool)

    def stakes(self) -> np.ndarray:
        return np.array([[n.stake for n in layer] for layer in self.layers], dtype=np.int64)

    def output_bits(self, output_width: int) -> List[bool]:
        """Read `output_width` bits from the output layer, position 0 first."""
        if not 1 <= output_width <= self.width:
            raise ConfigurationError(
                f"output_width must be between 1 and {self.width}, got {output_width}")
        return [n.activated for n in self.output_layer[:output_width]]

    # ------------------------------------------------------------------
    # Inputs and change log
    # ------------------------------------------------------------------

    def set_inputs(self, bits: Sequence[bool]):
        """
        Assign the input layer from a bit sequence.

        Positions beyond len(bits) are switched off.

        Args:
            bits: At most `width` booleans, position 0 first
        """
        if len(bits) > self.width:
            raise ConfigurationError(
                f"{len(bits)} input bits do not fit in a layer of width {self.width}")
        self.input_bits = [bool(b) for b in bits] + [False] * (self.width - len(bits))
        for neuron, bit in zip(self.input_layer, self.input_bits):
            neuron.compute_activation(self, bit)

    def input_bit(self, index: int) -> bool:
        return self.input_bits[index]

    def record_change(self, layer_index: int, index: int, activated: bool):
        self._changes.append((layer_index, index, activated))

    def pop_changes(self) -> List[Tuple[int, int, bool]]:
        """Return and clear the (layer, index, activated) flips recorded since the last call."""
        changes, self._changes = self._changes, []
        return changes

    # ------------------------------------------------------------------
    # Homeostasis
    # ------------------------------------------------------------------

    def compute_activation_fraction(self) -> float:
        active = sum(1 for n in self.neurons() if n.activated)
        self.activation_fraction = active / self.total_units
        return self.activation_fraction

    def update_threshold_multiplier(self) -> float:
        """
        One homeostasis step.

        Moves the threshold multiplier by a log-damped correction proportional to
        the deviation of the activation fraction from its target, plus a slow pull
        of the multiplier itself toward the target. An over-active grid becomes
        stricter, an idle grid laxer.

        Returns:
            The updated threshold multiplier
        """
        config = self.homeostasis
        deviation = self.compute_activation_fraction() - config.target_fraction
        damping = math.log(abs(deviation) + 1.0) / math.log(config.damping_base)
        self.threshold_multiplier += damping * deviation * config.learning_rate
        self.threshold_multiplier += (
            (config.target_fraction - self.threshold_multiplier) * config.pull_rate)
        return self.threshold_multiplier

    # ------------------------------------------------------------------
    # Reinforcement
    # ------------------------------------------------------------------

    def accumulate_output_stakes(self, max_depth: int):
        """Credit stake from every output neuron down through its fan-in tree."""
        for neuron in self.output_layer:
            neuron.accumulate_stake(self, max_depth, 0)

    def clear_stakes(self):
        for neuron in self.logic_neurons():
            neuron.clear_stake()

    def stimulate(self, reward: bool) -> List[LogicNeuron]:
        """
        Reinforce the network by mutating the logic neurons at one end of the stake order.

        On reward every neuron tied for the lowest stake is mutated (underused
        wiring gets nudged). On punishment every neuron tied for the highest stake
        is mutated (the most responsible wiring gets changed), then all stakes are
        reset to zero.

        Args:
            reward: True for positive reinforcement, False for negative

        Returns:
            The neurons that were mutated
        """
        ranked = sorted(self.logic_neurons(), key=lambda n: n.stake)
        extreme = ranked[0].stake if reward else ranked[-1].stake
        targets = [n for n in ranked if n.stake == extreme]
        for neuron in targets:
            neuron.mutate(self)

        if not reward:
            self.clear_stakes()
        logger.debug("stimulate(reward=%s): mutated %d neurons at stake %d",
                     reward, len(targets), extreme)
        return targets

    def punish_output(self, index: int, inverse_probability: int):
        """Punish one output neuron and its ancestors by depth."""
        self.output_layer[index].punish_by_depth(self, inverse_probability)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_network_stats(self) -> Dict:
        """Get network statistics."""
        matrix = self.matrix_state()
        stakes = [n.stake for n in self.logic_neurons()]
        return {
            'width': self.width,
            'height': self.height,
            'incoming': self.incoming,
            'total_units': self.total_units,
            'active_units': int(matrix.sum()),
            'activation_fraction': self.activation_fraction,
            'threshold_multiplier': self.threshold_multiplier,
            'layer_activity': [int(row.sum()) for row in matrix],
            'max_stake': max(stakes),
            'min_stake': min(stakes),
        }

    def __repr__(self):
        return (f"Network({self.width}x{self.height}, K={self.incoming}, "
                f"threshold={self.threshold_multiplier:.4f}, active={self.activation_fraction:.2f})")

import math
import numpy as np
from typing import TYPE_CHECKING, Tuple

from .config import MAX_INVERSE_PROBABILITY

if TYPE_CHECKING:
    from .network import Network


class Neuron:
    """
    Identity and output state shared by both kinds of neuron.

    Attributes:
        layer_index: Index of the layer this neuron belongs to
        index: Position of the neuron inside its layer
        activated: Current output state
    """

    is_input = False

    def __init__(self, layer_index: int, index: int):
        self.layer_index = layer_index
        self.index = index
        self.activated = False

    def _set_activated(self, network: 'Network', value: bool):
        if value != self.activated:
            self.activated = value
            network.record_change(self.layer_index, self.index, value)


class InputNeuron(Neuron):
    """
    A neuron whose activation is assigned from outside the network.

    Input neurons sit in layer 0. They have no incoming connections, never
    mutate and carry no stake.
    """

    is_input = True
    stake = 0

    def compute_activation(self, network: 'Network', bias_bit: bool) -> bool:
        """Assign the activation directly from the bias bit."""
        self._set_activated(network, bool(bias_bit))
        return self.activated

    def mutate(self, network: 'Network'):
        # Controlled externally
        return None

    def accumulate_stake(self, network: 'Network', max_depth: int, current_depth: int = 0):
        return None

    def punish_by_depth(self, network: 'Network', inverse_probability: int):
        return None

    def clear_stake(self):
        return None

    def wiring(self) -> Tuple:
        return ()

    def __repr__(self):
        return f"InputNeuron(layer={self.layer_index}, index={self.index}, activated={self.activated})"


class LogicNeuron(Neuron):
    """
    A binary threshold neuron reading K weighted connections from the layer below.

    Connections are stored as indices into the previous layer, so the whole
    grid is an arena addressed by (layer, index).

    Attributes:
        sources: Indices (into the previous layer) of the K incoming neurons
        weights: Boolean weight per connection; False connections never excite
        cursor: Rotating pointer selecting the next neuron to visit in a traversal
        stake: Depth-weighted count of recent causal contribution to the outputs
    """

    def __init__(self, layer_index: int, index: int, incoming: int):
        """
        Initialize a logic neuron with unwired connections.

        Args:
            layer_index: Index of the layer (must be at least 1)
            index: Position inside the layer
            incoming: Number of incoming connections (K)
        """
        assert layer_index >= 1, "logic neurons cannot live in the input layer"
        super().__init__(layer_index, index)
        self.sources = np.zeros(incoming, dtype=np.int64)
        self.weights = np.zeros(incoming, dtype=bool)
        self.cursor = 0
        self.stake = 0

    @property
    def incoming(self) -> int:
        return len(self.sources)

    def _check_slots(self):
        assert len(self.sources) == len(self.weights), (
            f"neuron {self.layer_index},{self.index} has {len(self.sources)} sources "
            f"but {len(self.weights)} weights")

    def source_neurons(self, network: 'Network'):
        """Get the neurons this neuron reads from, in connection order."""
        previous = network.layers[self.layer_index - 1]
        return [previous[i] for i in self.sources]

    def threshold(self, network: 'Network') -> int:
        """Activation threshold: threshold_multiplier * K, rounded half up."""
        return int(math.floor(network.threshold_multiplier * self.incoming + 0.5))

    def compute_activation(self, network: 'Network', bias_bit: bool) -> bool:
        """
        Recompute the activation from the current state of the incoming neurons.

        Args:
            network: Network that owns this neuron
            bias_bit: Adds one to the activation sum when True

        Returns:
            The new activation
        """
        self._check_slots()
        threshold = self.threshold(network)
        previous = network.layers[self.layer_index - 1]

        activation_sum = 0
        for source, weight in zip(self.sources, self.weights):
            if activation_sum >= threshold:
                break
            if weight and previous[source].activated:
                activation_sum += 1
        if bias_bit:
            activation_sum += 1

        self._set_activated(network, activation_sum >= threshold)
        return self.activated

    def next_source(self) -> int:
        """
        Get the index (in the previous layer) of the next neuron to visit.

        Advances the cursor, wrapping modulo K.
        """
        self._check_slots()
        if self.cursor >= self.incoming:
            self.cursor = 0
        source = int(self.sources[self.cursor])
        self.cursor = (self.cursor + 1) % self.incoming
        return source

    def mutate(self, network: 'Network'):
        """
        Apply one small random change, chosen uniformly:
        re-point a connection, flip a weight, or move the cursor.
        """
        self._check_slots()
        rng = network.rng
        change_type = int(rng.integers(3))
        if change_type == 0:
            self._change_random_source(network)
        elif change_type == 1:
            self._flip_random_weight(network)
        else:
            self._change_cursor(network)

    def _change_random_source(self, network: 'Network'):
        rng = network.rng
        slot = int(rng.integers(self.incoming))
        self.sources[slot] = rng.integers(len(network.layers[self.layer_index - 1]))

    def _flip_random_weight(self, network: 'Network'):
        slot = int(network.rng.integers(self.incoming))
        self.weights[slot] = not self.weights[slot]

    def _change_cursor(self, network: 'Network'):
        # A single connection leaves no other value to move to
        if self.incoming < 2:
            return
        offset = int(network.rng.integers(1, self.incoming))
        self.cursor = (self.cursor + offset) % self.incoming

    def accumulate_stake(self, network: 'Network', max_depth: int, current_depth: int = 0):
        """
        Add 2^(max_depth - current_depth) to this neuron's stake and recurse into its sources.

        Ancestors reachable through several paths are credited once per path.

        Args:
            network: Network that owns this neuron
            max_depth: Deepest level that still receives stake
            current_depth: Depth of this neuron below the starting neuron
        """
        if current_depth > max_depth:
            return
        self.stake += 2 ** (max_depth - current_depth)
        for neuron in self.source_neurons(network):
            neuron.accumulate_stake(network, max_depth, current_depth + 1)

    def punish_by_depth(self, network: 'Network', inverse_probability: int):
        """
        Mutate with probability 1/inverse_probability, then punish the sources with
        the odds divided by K, so the expected number of mutations stays bounded.

        Args:
            network: Network that owns this neuron
            inverse_probability: Denominator of the mutation probability
        """
        if inverse_probability <= 0 or inverse_probability > MAX_INVERSE_PROBABILITY:
            return
        if network.rng.random() < 1.0 / inverse_probability:
            self.mutate(network)
        next_inverse = inverse_probability * self.incoming
        for neuron in self.source_neurons(network):
            neuron.punish_by_depth(network, next_inverse)

    def clear_stake(self):
        self.stake = 0

    def wiring(self) -> Tuple:
        """Hashable snapshot of sources, weights and cursor."""
        return (tuple(int(s) for s in self.sources),
                tuple(bool(w) for w in self.weights),
                self.cursor)

    def __repr__(self):
        return (f"LogicNeuron(layer={self.layer_index}, index={self.index}, "
                f"activated={self.activated}, stake={self.stake})")

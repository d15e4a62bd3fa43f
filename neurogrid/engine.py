import logging
import numpy as np
from typing import Callable, Iterator, List, Optional

from .config import ConfigurationError, CycleConfig, MAX_BIT_WIDTH
from .network import Network

logger = logging.getLogger(__name__)

# Drift decisions are drawn this many at a time
DRIFT_CHUNK_SIZE = 65_536


class CycleEngine:
    """
    Runs stochastic update sweeps over a network and reads its output bits.

    A sweep is a long random walk: starting at the top-left neuron (first
    neuron of the output layer), each visited neuron may drift (a rare random
    mutation), recomputes its activation, and hands over to the incoming
    neuron picked by its cursor. Reaching an input neuron wraps the walk back
    to the output layer. By default the wrap rotates through the output
    neurons so that every output is settled; with `wrap_mode="first"` it always
    returns to the first output neuron.

    With `settle_repeats > 0` the walk is replaced by settling: the logic
    layers are re-evaluated bottom-up until the output bits come out the same
    `settle_repeats` times in a row, within the same step budget.

    The engine has no internal concurrency and never locks; see
    `Network.lock`.
    """

    def __init__(self,
                 network: Network,
                 config: Optional[CycleConfig] = None,
                 on_progress: Optional[Callable[[int, int], None]] = None):
        """
        Initialize the engine.

        Args:
            network: Network to drive
            config: Sweep parameters (defaults if None)
            on_progress: Called with (current_step, total_steps) every
                config.progress_every steps
        """
        self.network = network
        self.config = config if config is not None else CycleConfig()
        self.on_progress = on_progress

        if self.config.injection_layer >= network.height:
            raise ConfigurationError(
                f"injection_layer {self.config.injection_layer} is outside a network "
                f"of height {network.height}")

        self.min_steps = network.total_units
        if self.config.steps_per_cycle is None:
            self.steps_per_cycle = network.total_units ** 3
        else:
            self.steps_per_cycle = self.config.steps_per_cycle

        self.current_step = 0
        self.cycles_run = 0
        self.settle_rounds = 0
        self.last_output: List[bool] = []

    @property
    def total_steps(self) -> int:
        return self.steps_per_cycle

    def shorten_cycle(self, steps: int = 1) -> int:
        """Reduce the sweep length, never below one step per neuron."""
        self.steps_per_cycle = max(self.min_steps, self.steps_per_cycle - steps)
        return self.steps_per_cycle

    def _bias_bit(self, layer_index: int, index: int) -> bool:
        if layer_index == 0 or layer_index == self.config.injection_layer:
            return self.network.input_bit(index)
        return False

    def _drift_draws(self, steps: int) -> Iterator[bool]:
        """Yield one drift decision per step, drawing them in fixed-size chunks."""
        inverse = self.config.drift_inverse_probability
        remaining = steps
        while remaining > 0:
            size = min(DRIFT_CHUNK_SIZE, remaining)
            if inverse > 0:
                chunk = self.network.rng.random(size) < 1.0 / inverse
            else:
                chunk = np.zeros(size, dtype=bool)
            yield from chunk
            remaining -= size

    def _after_step(self, step: int, steps: int):
        config = self.config
        if config.homeostasis_every and step % config.homeostasis_every == 0:
            self.network.update_threshold_multiplier()
        if self.on_progress is not None and config.progress_every \
                and step % config.progress_every == 0:
            self.on_progress(step, steps)

    def sweep(self):
        """Perform one full update sweep (steps_per_cycle visits)."""
        network = self.network
        layers = network.layers
        last_layer = network.height - 1
        rotate = self.config.wrap_mode == "rotate"
        steps = self.steps_per_cycle

        wrap_position = 0
        layer_index, index = last_layer, 0
        for step, drift in zip(range(steps), self._drift_draws(steps)):
            self.current_step = step
            neuron = layers[layer_index][index]
            if drift:
                neuron.mutate(network)
            neuron.compute_activation(network, self._bias_bit(layer_index, index))

            if neuron.is_input:
                if rotate:
                    wrap_position = (wrap_position + 1) % network.width
                layer_index, index = last_layer, wrap_position
            else:
                layer_index, index = layer_index - 1, neuron.next_source()

            self._after_step(step + 1, steps)

        self.current_step = steps
        network.update_threshold_multiplier()

    def settle(self):
        """
        Re-evaluate the logic layers bottom-up until the outputs repeat.

        The first round only records the outputs; each later round that
        reproduces them counts as a repeat, and any change starts the count
        over. Stops after `settle_repeats` repeats or once steps_per_cycle
        neuron visits have been spent.
        """
        network = self.network
        steps = self.steps_per_cycle
        draws = self._drift_draws(steps)

        step = 0
        repeats = 0
        self.settle_rounds = 0
        last_result: Optional[List[bool]] = None
        while repeats < self.config.settle_repeats and step < steps:
            for layer_index in range(1, network.height):
                for index, neuron in enumerate(network.layers[layer_index]):
                    if next(draws, False):
                        neuron.mutate(network)
                    neuron.compute_activation(network, self._bias_bit(layer_index, index))
                    step += 1
                    self.current_step = step
                    self._after_step(step, steps)
            self.settle_rounds += 1

            result = network.output_bits(network.width)
            if last_result is not None:
                repeats = repeats + 1 if result == last_result else 0
            last_result = result

        if repeats < self.config.settle_repeats:
            logger.debug("outputs did not settle within %d steps (%d repeats)", steps, repeats)
        network.update_threshold_multiplier()

    def run_cycle(self, output_width: int) -> List[bool]:
        """
        Run one cycle and collect the output bits.

        Args:
            output_width: Number of output bits to read (1..width, at most 16)

        Returns:
            Output bits, most significant first
        """
        if not 1 <= output_width <= min(self.network.width, MAX_BIT_WIDTH):
            raise ConfigurationError(
                f"output_width must be between 1 and {min(self.network.width, MAX_BIT_WIDTH)}, "
                f"got {output_width}")

        self.current_step = 0
        if self.config.settle_repeats:
            self.settle()
        else:
            self.sweep()
        self.network.accumulate_output_stakes(self.config.stake_depth)

        self.last_output = self.network.output_bits(output_width)
        self.cycles_run += 1
        logger.debug("cycle %d: %d steps, output=%s, active=%.3f, threshold=%.5f",
                     self.cycles_run, self.current_step,
                     ''.join('1' if b else '0' for b in self.last_output),
                     self.network.activation_fraction, self.network.threshold_multiplier)
        return self.last_output

    def stimulate(self, reward: bool):
        return self.network.stimulate(reward)

    def __repr__(self):
        return f"CycleEngine({self.network!r}, steps_per_cycle={self.steps_per_cycle}, cycles={self.cycles_run})"

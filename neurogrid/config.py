"""Configuration for the neuron grid, its cycle engine and the auto-grader.

Defaults follow the values the simulator was tuned with: a 7x2 grid where
every logic neuron reads from 2 neurons of the layer below, 7 result bits,
a 1 in 10,000 chance of background drift per visited neuron and a growth
trigger after 100,000 cycles without reaching the best streak.
"""
from dataclasses import dataclass, field
from typing import Optional


DEFAULT_GRID_WIDTH = 7
DEFAULT_GRID_HEIGHT = 2
DEFAULT_INCOMING = 2
DEFAULT_OUTPUT_WIDTH = 7
DEFAULT_STAGNATION_LIMIT = 100_000
DEFAULT_DRIFT_INVERSE_PROBABILITY = 10_000
DEFAULT_STAKE_DEPTH = 5
MAX_BIT_WIDTH = 16
MAX_INVERSE_PROBABILITY = 1_000_000
# Bits needed to encode every goal letter up to 'Z'
MIN_OUTPUT_WIDTH = ord('Z').bit_length()

TIE_POLICIES = ("punish", "reward", "ignore")
WRAP_MODES = ("rotate", "first")


class ConfigurationError(ValueError):
    """Raised when a grid, cycle or grader parameter is out of range."""


@dataclass
class GridConfig:
    """Shape of one network generation."""
    width: int = DEFAULT_GRID_WIDTH        # Neurons per layer
    height: int = DEFAULT_GRID_HEIGHT      # Number of layers (input layer included)
    incoming: int = DEFAULT_INCOMING       # K, incoming connections per logic neuron

    def __post_init__(self):
        validate_grid(self.width, self.height, self.incoming)

    @property
    def total_units(self) -> int:
        return self.width * self.height


@dataclass
class HomeostasisConfig:
    """Controller that keeps roughly half of the grid activated."""
    target_fraction: float = 0.5
    learning_rate: float = 1e-5      # Scale of the damped correction
    pull_rate: float = 5e-7          # Slow pull of the multiplier toward target_fraction
    damping_base: float = 10.0       # Base of the logarithmic damping factor
    initial_multiplier: float = 0.5

    def __post_init__(self):
        if not 0.0 < self.target_fraction < 1.0:
            raise ConfigurationError(
                f"target_fraction must lie in (0, 1), got {self.target_fraction}")
        if self.learning_rate < 0 or self.pull_rate < 0:
            raise ConfigurationError("learning_rate and pull_rate must be non-negative")
        if self.damping_base <= 1.0:
            raise ConfigurationError(
                f"damping_base must be greater than 1, got {self.damping_base}")


@dataclass
class CycleConfig:
    """Parameters of one stochastic update sweep."""
    steps_per_cycle: Optional[int] = None    # None means total_units ** 3
    drift_inverse_probability: int = DEFAULT_DRIFT_INVERSE_PROBABILITY
    stake_depth: int = DEFAULT_STAKE_DEPTH
    homeostasis_every: int = 0               # Extra homeostasis steps inside a sweep (0 = off)
    injection_layer: int = 0                 # Layer whose neurons receive the input bits as bias
    progress_every: int = 0                  # Progress callback period in steps (0 = off)
    settle_repeats: int = 0                  # Repeat outputs until stable this many times (0 = fixed walk)
    wrap_mode: str = "rotate"                # After an input neuron: next output neuron, or always the first

    def __post_init__(self):
        if self.steps_per_cycle is not None and self.steps_per_cycle < 1:
            raise ConfigurationError(
                f"steps_per_cycle must be positive, got {self.steps_per_cycle}")
        if self.drift_inverse_probability < 0:
            raise ConfigurationError("drift_inverse_probability must be non-negative")
        if self.stake_depth < 0:
            raise ConfigurationError(f"stake_depth must be non-negative, got {self.stake_depth}")
        if self.homeostasis_every < 0 or self.progress_every < 0:
            raise ConfigurationError("homeostasis_every and progress_every must be non-negative")
        if self.injection_layer < 0:
            raise ConfigurationError(
                f"injection_layer must be non-negative, got {self.injection_layer}")
        if self.settle_repeats < 0:
            raise ConfigurationError(
                f"settle_repeats must be non-negative, got {self.settle_repeats}")
        if self.wrap_mode not in WRAP_MODES:
            raise ConfigurationError(
                f"wrap_mode must be one of {WRAP_MODES}, got {self.wrap_mode!r}")


@dataclass
class GraderConfig:
    """Auto-grader settings."""
    grid: GridConfig = field(default_factory=GridConfig)
    output_width: int = DEFAULT_OUTPUT_WIDTH
    stagnation_limit: int = DEFAULT_STAGNATION_LIMIT
    tie_policy: str = "punish"                   # What an unchanged mismatch distance earns
    punish_mismatched_outputs: bool = False      # Punish wrong output bits by depth
    punish_inverse_probability: int = 1000
    history_size: int = 1000

    def __post_init__(self):
        validate_bit_width(self.output_width)
        if self.output_width < MIN_OUTPUT_WIDTH:
            raise ConfigurationError(
                f"output_width {self.output_width} cannot encode the goal letters A..Z "
                f"(needs at least {MIN_OUTPUT_WIDTH} bits)")
        if self.output_width > self.grid.width:
            raise ConfigurationError(
                f"output_width {self.output_width} exceeds grid width {self.grid.width}")
        if self.stagnation_limit < 1:
            raise ConfigurationError(
                f"stagnation_limit must be positive, got {self.stagnation_limit}")
        if self.tie_policy not in TIE_POLICIES:
            raise ConfigurationError(
                f"tie_policy must be one of {TIE_POLICIES}, got {self.tie_policy!r}")
        if self.punish_inverse_probability < 1:
            raise ConfigurationError("punish_inverse_probability must be positive")


def validate_grid(width: int, height: int, incoming: int):
    """
    Reject grid shapes the network cannot be built with.

    Args:
        width: Neurons per layer
        height: Number of layers, input layer included
        incoming: Incoming connections per logic neuron
    """
    if width < 1:
        raise ConfigurationError(f"width must be positive, got {width}")
    if height < 2:
        raise ConfigurationError(
            f"height must be at least 2 (input layer + one logic layer), got {height}")
    if incoming < 1:
        raise ConfigurationError(f"incoming must be positive, got {incoming}")


def validate_bit_width(width: int):
    if not 1 <= width <= MAX_BIT_WIDTH:
        raise ConfigurationError(
            f"bit width must be between 1 and {MAX_BIT_WIDTH}, got {width}")

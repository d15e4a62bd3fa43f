import logging
import numpy as np
from collections import deque
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .bits import bits_to_symbol, hamming_distance, symbol_to_bits
from .config import CycleConfig, GraderConfig, GridConfig, HomeostasisConfig
from .engine import CycleEngine
from .network import Network

logger = logging.getLogger(__name__)

ALPHABET_START = ord('A')
ALPHABET_SIZE = 26


@dataclass
class CycleResult:
    """Outcome of one graded cycle."""
    bits: List[bool]
    answer: str
    target: str
    matched: bool
    distance: int
    stimulus: Optional[bool]   # True = reward, False = punish, None = nothing applied
    grew: bool = False


def next_dimensions(width: int, height: int) -> Tuple[int, int]:
    """
    Dimensions of the next network generation.

    The grid first grows taller until it is square, then grows by one in both
    directions: 7x2 -> 7x3 -> ... -> 7x7 -> 8x8 -> 9x9.

    Args:
        width: Current neurons per layer
        height: Current number of layers

    Returns:
        (new_width, new_height)
    """
    if height < width:
        return width, height + 1
    return width + 1, height + 1


class Grader:
    """
    Drives a network toward emitting the alphabet, one letter per cycle.

    Each cycle feeds the current goal letter into the input layer, runs the
    cycle engine and decodes the output bits as a letter. A match is rewarded
    and advances the goal; a miss is rewarded only when it is closer (in
    Hamming distance) to its goal than the previous attempt, and resets the
    goal to 'A'. When the streak has not reached its best length for
    `stagnation_limit` cycles, the network is discarded and replaced by a
    larger one.

    Attributes:
        target_index: Goal letter as an offset from 'A'
        current_streak: Letters matched in a row since the last miss
        best_streak: Longest streak so far (kept across growth)
        last_mismatch_distance: Distance of the previous attempt to its goal (None before any)
        stagnation_counter: Cycles since the streak last reached the best length
    """

    def __init__(self,
                 config: Optional[GraderConfig] = None,
                 cycle_config: Optional[CycleConfig] = None,
                 homeostasis: Optional[HomeostasisConfig] = None,
                 seed: Optional[int] = None,
                 rng: Optional[np.random.Generator] = None):
        """
        Initialize the grader and its first network generation.

        Args:
            config: Grader settings, including the initial grid shape
            cycle_config: Sweep parameters for every generation
            homeostasis: Threshold controller settings for every generation
            seed: Seed for the random generator shared by all generations
            rng: Random generator to draw from (overrides seed)
        """
        self.config = config if config is not None else GraderConfig()
        self.cycle_config = cycle_config if cycle_config is not None else CycleConfig()
        self.homeostasis = homeostasis
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.output_width = self.config.output_width

        self.network: Network = None
        self.engine: CycleEngine = None
        self.grid = self.config.grid
        self._build_network(self.grid)

        self.target_index = 0
        self.current_streak = ""
        self.best_streak = ""
        self.last_mismatch_distance: Optional[int] = None
        self.last_distance: Optional[int] = None
        self.last_answer: Optional[str] = None
        self.stagnation_counter = 0

        self.generation = 0
        self.cycles_run = 0
        self.matches = 0
        self.rewards = 0
        self.punishments = 0

        self.distance_history = deque(maxlen=self.config.history_size)
        self.streak_history = deque(maxlen=self.config.history_size)
        self._grow_listeners: List[Callable[[Network], None]] = []

    def _build_network(self, grid: GridConfig):
        self.grid = grid
        self.network = Network(grid.width, grid.height, grid.incoming,
                               homeostasis=self.homeostasis, rng=self.rng)
        self.engine = CycleEngine(self.network, self.cycle_config)

    # ------------------------------------------------------------------
    # Goal
    # ------------------------------------------------------------------

    @property
    def goal(self) -> str:
        return chr(ALPHABET_START + self.target_index)

    @property
    def goal_bits(self) -> List[bool]:
        return symbol_to_bits(self.goal, self.output_width)

    def _advance_goal(self):
        self.target_index = (self.target_index + 1) % ALPHABET_SIZE

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def run_cycle(self) -> CycleResult:
        """
        Run one graded cycle: present the goal, run the engine, score and reinforce.

        Returns:
            CycleResult describing the attempt
        """
        target = self.goal
        self.network.set_inputs(self.goal_bits)
        bits = self.engine.run_cycle(self.output_width)
        answer = bits_to_symbol(bits)
        self.last_answer = answer
        self.cycles_run += 1

        if answer == target:
            result = self._handle_match(bits, answer, target)
        else:
            result = self._handle_miss(bits, answer, target)

        self.distance_history.append(result.distance)
        self.streak_history.append(len(self.current_streak))
        return result

    def _apply_stimulus(self, reward: bool):
        self.network.stimulate(reward)
        if reward:
            self.rewards += 1
        else:
            self.punishments += 1

    def _handle_match(self, bits: List[bool], answer: str, target: str) -> CycleResult:
        self._apply_stimulus(True)
        self.matches += 1

        self.current_streak += answer
        if len(self.current_streak) >= len(self.best_streak):
            self.stagnation_counter = 0
        if len(self.current_streak) > len(self.best_streak):
            self.best_streak = self.current_streak
            logger.info("New best streak %r (generation %d, cycle %d)",
                        self.best_streak, self.generation, self.cycles_run)

        self._advance_goal()
        self.engine.shorten_cycle()
        self.last_mismatch_distance = 0
        self.last_distance = 0
        return CycleResult(bits, answer, target, True, 0, True)

    def _handle_miss(self, bits: List[bool], answer: str, target: str) -> CycleResult:
        distance = hamming_distance(answer, target)
        previous = self.last_mismatch_distance

        if previous is None or distance < previous:
            stimulus = True
        elif distance > previous:
            stimulus = False
        else:
            stimulus = {'punish': False, 'reward': True, 'ignore': None}[self.config.tie_policy]
        if stimulus is not None:
            self._apply_stimulus(stimulus)

        if self.config.punish_mismatched_outputs:
            for index, (got, wanted) in enumerate(zip(bits, self.goal_bits)):
                if got != wanted:
                    self.network.punish_output(index, self.config.punish_inverse_probability)

        self.last_mismatch_distance = distance
        self.last_distance = distance
        self.current_streak = ""
        self.target_index = 0
        self.stagnation_counter += 1

        grew = False
        if self.stagnation_counter >= self.config.stagnation_limit:
            self.grow()
            grew = True
        return CycleResult(bits, answer, target, False, distance, stimulus, grew)

    # ------------------------------------------------------------------
    # Growth
    # ------------------------------------------------------------------

    def add_grow_listener(self, listener: Callable[[Network], None]):
        self._grow_listeners.append(listener)

    def grow(self) -> Network:
        """
        Replace the network with a fresh, larger one.

        Best streak and goal carry over; the current streak, stagnation counter
        and last mismatch distance start over. Nothing of the old wiring is kept.

        Returns:
            The new network
        """
        width, height = next_dimensions(self.grid.width, self.grid.height)
        old = self.network
        self._build_network(GridConfig(width, height, self.grid.incoming))

        self.current_streak = ""
        self.stagnation_counter = 0
        self.last_mismatch_distance = None
        self.generation += 1

        logger.info("Grew network %dx%d -> %dx%d (generation %d, best streak %r)",
                    old.width, old.height, width, height, self.generation, self.best_streak)
        for listener in self._grow_listeners:
            listener(self.network)
        return self.network

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    @property
    def cycles_until_growth(self) -> int:
        return max(0, self.config.stagnation_limit - self.stagnation_counter)

    @property
    def current_distance(self) -> Optional[int]:
        if self.last_answer is None:
            return None
        return hamming_distance(self.last_answer, self.goal)

    def get_average_distance(self, last_n: int = 100) -> float:
        if len(self.distance_history) == 0:
            return 0.0
        return float(np.mean(list(self.distance_history)[-last_n:]))

    def get_statistics(self) -> Dict:
        """Get grader statistics."""
        return {
            'generation': self.generation,
            'cycles_run': self.cycles_run,
            'goal': self.goal,
            'current_streak': self.current_streak,
            'best_streak': self.best_streak,
            'last_answer': self.last_answer,
            'last_mismatch_distance': self.last_mismatch_distance,
            'stagnation_counter': self.stagnation_counter,
            'cycles_until_growth': self.cycles_until_growth,
            'matches': self.matches,
            'rewards': self.rewards,
            'punishments': self.punishments,
            'avg_distance_100': self.get_average_distance(100),
            'steps_per_cycle': self.engine.steps_per_cycle,
            'network': self.network.get_network_stats(),
        }

    def print_summary(self):
        """Print a summary of the grader and its network."""
        stats = self.get_statistics()
        net = stats['network']

        print("\n" + "="*60)
        print("AUTO-GRADER SUMMARY")
        print("="*60)
        print(f"Generation: {stats['generation']} ({net['width']}x{net['height']}, K={net['incoming']})")
        print(f"Cycles Run: {stats['cycles_run']}")
        print(f"Goal: {stats['goal']}  Last Answer: {stats['last_answer']!r}")
        print(f"Current Streak: {stats['current_streak']!r}")
        print(f"Best Streak: {stats['best_streak']!r}")
        print(f"Matches: {stats['matches']}  Rewards: {stats['rewards']}  Punishments: {stats['punishments']}")
        print(f"Avg Distance (100): {stats['avg_distance_100']:.3f}")
        print(f"Cycles Until Growth: {stats['cycles_until_growth']}")
        print(f"Steps Per Cycle: {stats['steps_per_cycle']}")
        print(f"Activation Fraction: {net['activation_fraction']:.3f}")
        print(f"Threshold Multiplier: {net['threshold_multiplier']:.6f}")
        print("="*60 + "\n")

    def __repr__(self):
        return (f"Grader(generation={self.generation}, goal={self.goal!r}, "
                f"streak={self.current_streak!r}, best={self.best_streak!r})")

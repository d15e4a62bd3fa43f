"""
Boolean Neuron Grid Package

A grid of binary threshold neurons that learns by biased random mutation:
stake-targeted reward/punishment, homeostatic thresholds, and an auto-grader
that grows the grid when progress stalls.
"""

from .bits import symbol_to_bits, bits_to_symbol, hamming_distance
from .config import (ConfigurationError, GridConfig, HomeostasisConfig,
                     CycleConfig, GraderConfig)
from .neuron import InputNeuron, LogicNeuron
from .network import Network
from .engine import CycleEngine
from .grader import Grader, CycleResult, next_dimensions
from .driver import CycleDriver
from .display import GridSnapshot, snapshot, render_ascii, ConsoleDisplay

__all__ = [
    'symbol_to_bits',
    'bits_to_symbol',
    'hamming_distance',
    'ConfigurationError',
    'GridConfig',
    'HomeostasisConfig',
    'CycleConfig',
    'GraderConfig',
    'InputNeuron',
    'LogicNeuron',
    'Network',
    'CycleEngine',
    'Grader',
    'CycleResult',
    'next_dimensions',
    'CycleDriver',
    'GridSnapshot',
    'snapshot',
    'render_ascii',
    'ConsoleDisplay',
]

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from neurogrid import CycleConfig, Grader, GraderConfig, GridConfig, Network  # noqa: E402


class AlwaysRng:
    """Random source stub whose random() always fires."""

    def random(self, size=None):
        return 0.0


@pytest.fixture
def network():
    """A seeded 7x2 network with K=2."""
    return Network(7, 2, 2, seed=1234)


@pytest.fixture
def chain_network():
    """One neuron per layer, three layers: every connection points at index 0."""
    return Network(1, 3, 2, seed=7)


@pytest.fixture
def mutation_log(monkeypatch):
    """Replace LogicNeuron.mutate with a recorder; returns the list of mutated neurons."""
    from neurogrid.neuron import LogicNeuron

    log = []
    monkeypatch.setattr(LogicNeuron, "mutate", lambda self, network: log.append(self))
    return log


@pytest.fixture
def grader():
    """A 7x2 grader with short cycles."""
    config = GraderConfig(grid=GridConfig(7, 2, 2), output_width=7, stagnation_limit=1000)
    return Grader(config=config, cycle_config=CycleConfig(steps_per_cycle=100), seed=42)

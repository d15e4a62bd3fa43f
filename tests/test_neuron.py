"""Tests for input and logic neurons."""
import numpy as np

from neurogrid import Network
from neurogrid.neuron import InputNeuron, LogicNeuron

from conftest import AlwaysRng


def wire(neuron, sources, weights, cursor=0):
    neuron.sources = np.array(sources, dtype=np.int64)
    neuron.weights = np.array(weights, dtype=bool)
    neuron.cursor = cursor


class TestInputNeuron:

    def test_activation_follows_bias_bit(self, network):
        neuron = network.neuron_at(0, 3)
        assert isinstance(neuron, InputNeuron)
        assert neuron.compute_activation(network, True) is True
        assert neuron.activated is True
        assert neuron.compute_activation(network, False) is False

    def test_reinforcement_is_a_no_op(self, network):
        neuron = network.neuron_at(0, 0)
        neuron.mutate(network)
        neuron.accumulate_stake(network, 5, 0)
        neuron.punish_by_depth(network, 1)
        assert neuron.stake == 0
        assert neuron.wiring() == ()


class TestLogicActivation:

    def test_threshold_rounds_half_up(self):
        network = Network(3, 2, 3, seed=0)
        neuron = network.neuron_at(1, 0)
        network.threshold_multiplier = 0.5
        assert neuron.threshold(network) == 2   # 1.5 -> 2
        network.threshold_multiplier = 0.4
        assert neuron.threshold(network) == 1   # 1.2 -> 1

    def test_weighted_sum_reaches_threshold(self, network):
        neuron = network.neuron_at(1, 0)
        wire(neuron, [0, 1], [True, True])
        network.set_inputs([True, False])
        assert neuron.compute_activation(network, False) is True

        network.set_inputs([False, False])
        assert neuron.compute_activation(network, False) is False

    def test_false_weight_never_excites(self, network):
        neuron = network.neuron_at(1, 0)
        wire(neuron, [0, 1], [False, True])
        network.set_inputs([True, False])
        assert neuron.compute_activation(network, False) is False

    def test_bias_bit_adds_one(self, network):
        neuron = network.neuron_at(1, 0)
        wire(neuron, [0, 1], [False, False])
        network.set_inputs([True, True])
        assert neuron.compute_activation(network, False) is False
        assert neuron.compute_activation(network, True) is True

    def test_zero_threshold_always_activates(self, network):
        neuron = network.neuron_at(1, 2)
        wire(neuron, [0, 1], [False, False])
        network.threshold_multiplier = 0.0
        assert neuron.compute_activation(network, False) is True

    def test_activation_is_always_a_bool(self, network):
        for neuron in network.logic_neurons():
            assert neuron.compute_activation(network, False) in (True, False)
            assert isinstance(neuron.activated, bool)


class TestTraversalCursor:

    def test_next_source_rotates(self, network):
        neuron = network.neuron_at(1, 0)
        wire(neuron, [3, 5], [True, True])
        assert [neuron.next_source() for _ in range(5)] == [3, 5, 3, 5, 3]

    def test_out_of_range_cursor_wraps(self, network):
        neuron = network.neuron_at(1, 0)
        wire(neuron, [4, 6], [True, True], cursor=9)
        assert neuron.next_source() == 4


class TestMutate:

    def test_reading_wiring_is_idempotent(self, network):
        neuron = network.neuron_at(1, 4)
        first = neuron.wiring()
        assert all(neuron.wiring() == first for _ in range(10))

    def test_each_mutation_changes_one_aspect(self):
        network = Network(7, 2, 2, seed=99)
        neuron = network.neuron_at(1, 0)
        changed = {'sources': 0, 'weights': 0, 'cursor': 0}

        for _ in range(300):
            sources, weights, cursor = neuron.wiring()
            neuron.mutate(network)
            new_sources, new_weights, new_cursor = neuron.wiring()

            diffs = [sources != new_sources, weights != new_weights, cursor != new_cursor]
            assert sum(diffs) <= 1
            if weights != new_weights:
                assert sum(a != b for a, b in zip(weights, new_weights)) == 1
                changed['weights'] += 1
            if sources != new_sources:
                assert sum(a != b for a, b in zip(sources, new_sources)) == 1
                changed['sources'] += 1
            if cursor != new_cursor:
                changed['cursor'] += 1

            assert len(new_sources) == len(new_weights) == 2
            assert all(0 <= s < 7 for s in new_sources)

        assert all(count > 0 for count in changed.values())

    def test_cursor_change_always_moves(self):
        network = Network(4, 2, 4, seed=5)
        neuron = network.neuron_at(1, 1)
        for _ in range(50):
            before = neuron.cursor
            neuron._change_cursor(network)
            assert neuron.cursor != before
            assert 0 <= neuron.cursor < 4

    def test_single_connection_keeps_cursor(self):
        network = Network(4, 2, 1, seed=5)
        neuron = network.neuron_at(1, 1)
        for _ in range(20):
            neuron.mutate(network)
            assert neuron.cursor == 0


class TestStake:

    def test_shared_ancestor_credited_once_per_path(self, chain_network):
        top = chain_network.neuron_at(2, 0)
        middle = chain_network.neuron_at(1, 0)
        top.accumulate_stake(chain_network, 5, 0)
        assert top.stake == 32
        # Both of top's connections point at the single middle neuron
        assert middle.stake == 2 * 16

    def test_depth_limit(self, chain_network):
        top = chain_network.neuron_at(2, 0)
        middle = chain_network.neuron_at(1, 0)
        top.accumulate_stake(chain_network, 0, 0)
        assert top.stake == 1
        assert middle.stake == 0

    def test_clear_stake(self, chain_network):
        top = chain_network.neuron_at(2, 0)
        top.accumulate_stake(chain_network, 3, 0)
        top.clear_stake()
        assert top.stake == 0


class TestPunishByDepth:

    def test_invalid_odds_do_nothing(self, chain_network, mutation_log):
        top = chain_network.neuron_at(2, 0)
        chain_network.rng = AlwaysRng()
        top.punish_by_depth(chain_network, 0)
        top.punish_by_depth(chain_network, -3)
        top.punish_by_depth(chain_network, 1_000_001)
        assert mutation_log == []

    def test_recurses_through_every_path(self, chain_network, mutation_log):
        top = chain_network.neuron_at(2, 0)
        middle = chain_network.neuron_at(1, 0)
        chain_network.rng = AlwaysRng()
        top.punish_by_depth(chain_network, 1)
        assert mutation_log == [top, middle, middle]

    def test_odds_shrink_by_fan_in(self, chain_network, mutation_log):
        top = chain_network.neuron_at(2, 0)
        chain_network.rng = AlwaysRng()
        # Children receive 1.2 million, beyond the cut-off
        top.punish_by_depth(chain_network, 600_000)
        assert mutation_log == [top]

    def test_logic_neuron_type(self, chain_network):
        assert isinstance(chain_network.neuron_at(2, 0), LogicNeuron)

"""Tests for the cycle driver."""
import threading
import time

import pytest

from neurogrid import CycleDriver, GridSnapshot


def wait_for(predicate, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def bare_driver(network):
    driver = CycleDriver(network=network)
    driver.engine.steps_per_cycle = 50
    return driver


class TestConstruction:

    def test_needs_grader_or_network(self):
        with pytest.raises(ValueError):
            CycleDriver()

    def test_bare_network_reads_full_width(self, bare_driver, network):
        assert bare_driver.network is network
        assert bare_driver.output_width == 7
        assert bare_driver.grader is None

    def test_grader_supplies_network(self, grader):
        driver = CycleDriver(grader=grader)
        assert driver.network is grader.network
        assert driver.engine is grader.engine
        assert driver.output_width == 7


class TestCommands:

    def test_run_one_cycle(self, bare_driver):
        assert bare_driver.run_one_cycle() is True
        assert bare_driver.cycles_completed == 1
        assert len(bare_driver.last_output) == 7
        assert bare_driver.engine.cycles_run == 1

    def test_rejected_while_locked(self, bare_driver, network):
        network.lock.acquire()
        try:
            assert bare_driver.run_one_cycle(blocking=False) is False
            assert bare_driver.apply_stimulus(True, blocking=False) is False
        finally:
            network.lock.release()
        assert bare_driver.cycles_completed == 0

    def test_manual_stimulus_without_grader(self, bare_driver, network, monkeypatch):
        calls = []
        monkeypatch.setattr(network, "stimulate", lambda reward: calls.append(reward))
        assert bare_driver.apply_stimulus(False) is True
        assert calls == [False]

    def test_manual_stimulus_with_idle_grader(self, grader, monkeypatch):
        calls = []
        monkeypatch.setattr(grader.network, "stimulate", lambda reward: calls.append(reward))
        driver = CycleDriver(grader=grader)
        driver.apply_stimulus(True)
        assert calls == [True]

    def test_grader_cycle_follows_growth(self, grader):
        driver = CycleDriver(grader=grader)
        driver.run_one_cycle()
        grader.grow()
        assert driver.network is grader.network
        assert driver.run_one_cycle() is True
        assert driver.cycles_completed == 2


class TestBackground:

    def test_start_and_stop(self, bare_driver):
        bare_driver.start()
        try:
            assert bare_driver.running
            with pytest.raises(RuntimeError):
                bare_driver.start()
            assert wait_for(lambda: bare_driver.cycles_completed >= 3)
        finally:
            assert bare_driver.stop(timeout=5.0)
        assert not bare_driver.running
        completed = bare_driver.cycles_completed
        time.sleep(0.05)
        assert bare_driver.cycles_completed == completed

    def test_manual_stimulus_refused_while_grading(self, grader):
        driver = CycleDriver(grader=grader)
        driver.start()
        try:
            with pytest.raises(RuntimeError):
                driver.apply_stimulus(True)
        finally:
            driver.stop(timeout=5.0)

    def test_waiting_cycle_follows_growth_to_new_lock(self, grader):
        """A cycle queued on a generation that grows runs under the new generation's lock."""
        driver = CycleDriver(grader=grader)
        old = grader.network
        old.lock.acquire()
        worker = threading.Thread(target=driver.run_one_cycle)
        worker.start()
        time.sleep(0.05)

        grader.grow()
        new = grader.network
        new.lock.acquire()
        old.lock.release()
        time.sleep(0.05)
        # The new generation is busy, so the queued cycle must still be waiting
        assert driver.cycles_completed == 0

        new.lock.release()
        worker.join(5.0)
        assert driver.cycles_completed == 1
        assert grader.cycles_run == 1
        assert not old.lock.locked()
        assert not new.lock.locked()

    def test_stimulus_waits_for_cycle(self, bare_driver, network):
        network.lock.acquire()
        applied = []
        worker = threading.Thread(target=lambda: applied.append(bare_driver.apply_stimulus(True)))
        worker.start()
        time.sleep(0.05)
        assert applied == []
        network.lock.release()
        worker.join(5.0)
        assert applied == [True]


class TestDisplay:

    def test_display_receives_snapshots(self, grader):
        seen = []
        driver = CycleDriver(grader=grader, display=seen.append)
        driver.run_one_cycle()
        assert len(seen) == 1
        state = seen[0]
        assert isinstance(state, GridSnapshot)
        assert state.matrix.shape == (2, 7)
        assert state.goal == grader.goal
        assert state.total_steps == 100

    def test_failing_display_is_detached(self, bare_driver, caplog):
        def broken(state):
            raise RuntimeError("screen gone")

        bare_driver.display = broken
        with caplog.at_level("ERROR", logger="neurogrid.driver"):
            assert bare_driver.run_one_cycle() is True
        assert bare_driver.display is None
        assert "Display failed" in caplog.text
        assert bare_driver.run_one_cycle() is True
        assert bare_driver.cycles_completed == 2

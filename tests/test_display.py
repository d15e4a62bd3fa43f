"""Tests for snapshots and renderers."""
import numpy as np

from neurogrid import ConsoleDisplay, CycleConfig, CycleEngine, render_ascii, snapshot
from neurogrid.display import save_matrix_png


class TestSnapshot:

    def test_bare_network(self, network):
        network.set_inputs([True] * 7)
        state = snapshot(network)
        assert state.matrix.shape == (2, 7)
        assert state.matrix.dtype == bool
        assert state.matrix[0].all()
        assert (0, 0, True) in state.changes
        assert state.goal is None
        # The change log is drained
        assert network.pop_changes() == []

    def test_with_engine_and_grader(self, grader):
        grader.run_cycle()
        state = snapshot(grader.network, grader.engine, grader)
        assert state.current_step == 100
        assert state.total_steps == 100
        assert state.best_streak == grader.best_streak
        assert state.cycles_until_growth == grader.cycles_until_growth
        assert state.threshold_multiplier == grader.network.threshold_multiplier


class TestRender:

    def test_ascii_rows(self, network):
        network.set_inputs([True, False, False, False, False, False, False])
        engine = CycleEngine(network, CycleConfig(steps_per_cycle=20))
        text = render_ascii(snapshot(network, engine))
        lines = text.splitlines()
        assert lines[0].strip().startswith("OUT")
        assert lines[1].strip() == "IN  ● ○ ○ ○ ○ ○ ○"
        assert "step 0/20" in lines[2]

    def test_console_display_every(self, network, capsys):
        display = ConsoleDisplay(every=2)
        state = snapshot(network)
        display(state)
        assert capsys.readouterr().out == ""
        display(state)
        assert "OUT" in capsys.readouterr().out

    def test_save_png(self, network, tmp_path):
        path = tmp_path / "grid.png"
        save_matrix_png(snapshot(network), str(path))
        assert path.exists()
        assert path.stat().st_size > 0

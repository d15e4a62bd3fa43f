"""
Display collaborators: the snapshot a display receives, plus ASCII and PNG renderers.

The simulation core never imports this module's renderers; the driver hands
snapshots to whatever callable is attached.
"""
import numpy as np
import matplotlib.pyplot as plt
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass
class GridSnapshot:
    """State published to a display after a cycle or stimulus."""
    matrix: np.ndarray                       # (height, width) activations, row 0 = input layer
    changes: List[Tuple[int, int, bool]] = field(default_factory=list)
    current_step: int = 0
    total_steps: int = 0
    activation_fraction: float = 0.0
    threshold_multiplier: float = 0.0
    # Only filled when a grader drives the network
    current_streak: Optional[str] = None
    best_streak: Optional[str] = None
    goal: Optional[str] = None
    current_distance: Optional[int] = None
    previous_distance: Optional[int] = None
    cycles_until_growth: Optional[int] = None


def snapshot(network, engine=None, grader=None) -> GridSnapshot:
    """
    Capture the current state of a network (and its engine and grader).

    Drains the network's change log.

    Args:
        network: Network to capture
        engine: CycleEngine driving it (optional)
        grader: Grader driving it (optional)

    Returns:
        GridSnapshot
    """
    state = GridSnapshot(
        matrix=network.matrix_state(),
        changes=network.pop_changes(),
        current_step=engine.current_step if engine is not None else 0,
        total_steps=engine.total_steps if engine is not None else 0,
        activation_fraction=network.activation_fraction,
        threshold_multiplier=network.threshold_multiplier,
    )
    if grader is not None:
        state.current_streak = grader.current_streak
        state.best_streak = grader.best_streak
        state.goal = grader.goal
        state.current_distance = grader.current_distance
        state.previous_distance = grader.last_mismatch_distance
        state.cycles_until_growth = grader.cycles_until_growth
    return state


def render_ascii(state: GridSnapshot) -> str:
    """Render a snapshot as text, output layer on top."""
    height, width = state.matrix.shape
    lines = []
    for layer_index in range(height - 1, -1, -1):
        row = state.matrix[layer_index]
        label = "OUT" if layer_index == height - 1 else "IN " if layer_index == 0 else f"L{layer_index:<2d}"
        lines.append(f"  {label} " + " ".join("●" if cell else "○" for cell in row))
    lines.append(f"  step {state.current_step}/{state.total_steps} | "
                 f"active={state.activation_fraction:.3f} | "
                 f"threshold={state.threshold_multiplier:.6f}")
    if state.goal is not None:
        lines.append(f"  goal={state.goal} streak={state.current_streak!r} best={state.best_streak!r} "
                     f"distance={state.current_distance} previous={state.previous_distance} "
                     f"growth_in={state.cycles_until_growth}")
    return "\n".join(lines)


class ConsoleDisplay:
    """Prints every snapshot as ASCII."""

    def __init__(self, every: int = 1):
        self.every = max(1, every)
        self.updates = 0

    def __call__(self, state: GridSnapshot):
        self.updates += 1
        if self.updates % self.every == 0:
            print(render_ascii(state))
            print()


def save_matrix_png(state: GridSnapshot, path: str):
    """
    Save the activation matrix as a PNG image (output layer on top).

    Args:
        state: Snapshot to draw
        path: Destination file
    """
    height, width = state.matrix.shape
    fig, ax = plt.subplots(figsize=(max(4, width * 0.6), max(3, height * 0.6)))
    ax.imshow(state.matrix[::-1].astype(float), cmap='Greens', vmin=0, vmax=1)
    ax.set_xticks(range(width))
    ax.set_yticks(range(height))
    ax.set_yticklabels([str(height - 1 - i) for i in range(height)])
    ax.set_xlabel('Neuron')
    ax.set_ylabel('Layer')
    title = f"active={state.activation_fraction:.2f}  threshold={state.threshold_multiplier:.4f}"
    if state.goal is not None:
        title += f"  goal={state.goal}  best={state.best_streak!r}"
    ax.set_title(title)
    plt.tight_layout()
    plt.savefig(path, dpi=150, bbox_inches='tight')
    plt.close(fig)

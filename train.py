import sys
import time
import numpy as np
import matplotlib.pyplot as plt
from neurogrid import (ConsoleDisplay, CycleConfig, CycleDriver, Grader,
                       GraderConfig, GridConfig, snapshot)
from neurogrid.display import save_matrix_png


# ============================================================================
# CONFIGURATION
# ============================================================================

GRID_WIDTH = 7
GRID_HEIGHT = 2
INCOMING = 2
OUTPUT_WIDTH = 7
STAGNATION_LIMIT = 100_000
N_CYCLES = 2000  # Cycles for the fixed-length run
PRINT_INTERVAL = 100  # Print status every N cycles
SEED = None


def build_grader() -> Grader:
    """Create the grader with the configured grid."""
    config = GraderConfig(
        grid=GridConfig(GRID_WIDTH, GRID_HEIGHT, INCOMING),
        output_width=OUTPUT_WIDTH,
        stagnation_limit=STAGNATION_LIMIT,
        punish_mismatched_outputs="--punish-outputs" in sys.argv,
    )
    return Grader(config=config, cycle_config=CycleConfig(), seed=SEED)


def print_status(grader: Grader):
    """Print one status line."""
    stats = grader.get_statistics()
    net = stats['network']
    print(f"[Cycle {stats['cycles_run']:6d}] "
          f"Gen={stats['generation']} ({net['width']}x{net['height']}) | "
          f"Goal={stats['goal']} Answer={stats['last_answer']!r} | "
          f"Streak={len(stats['current_streak'])} Best={len(stats['best_streak'])} | "
          f"Dist={stats['avg_distance_100']:.2f} | "
          f"Active={net['activation_fraction']:.3f} | "
          f"Threshold={net['threshold_multiplier']:.5f} | "
          f"Growth in {stats['cycles_until_growth']}")


def train_fixed(n_cycles: int = N_CYCLES):
    """Run the grader for a fixed number of cycles and plot the progress."""
    grader = build_grader()
    print(f"\nTraining {grader.network} for {n_cycles} cycles")
    print("-"*60)

    distances = []
    best_lengths = []
    network_sizes = []

    start = time.time()
    for cycle in range(n_cycles):
        result = grader.run_cycle()
        distances.append(result.distance)
        best_lengths.append(len(grader.best_streak))
        network_sizes.append(grader.network.total_units)

        if result.grew:
            print(f"  Grew network to {grader.network.width}x{grader.network.height}")
        if (cycle + 1) % PRINT_INTERVAL == 0:
            print_status(grader)

    print(f"\nFinished in {time.time() - start:.1f}s")
    grader.print_summary()

    save_matrix_png(snapshot(grader.network, grader.engine, grader), 'grid_state.png')
    print("Grid snapshot saved as 'grid_state.png'")
    visualize_training(distances, best_lengths, network_sizes)


def visualize_training(distances, best_lengths, network_sizes, window: int = 50):
    """Plot distance to goal, best streak and network size over cycles."""
    fig, axes = plt.subplots(3, 1, figsize=(12, 10), sharex=True)

    distances = np.array(distances, dtype=float)
    if len(distances) >= window:
        smoothed = np.convolve(distances, np.ones(window) / window, mode='valid')
    else:
        smoothed = distances
    axes[0].plot(distances, 'b.', alpha=0.2, markersize=2)
    axes[0].plot(np.arange(len(smoothed)) + len(distances) - len(smoothed), smoothed, 'b-', linewidth=2)
    axes[0].set_ylabel('Hamming Distance')
    axes[0].set_title('Distance To Goal')
    axes[0].grid(True, alpha=0.3)

    axes[1].plot(best_lengths, 'g-', linewidth=2)
    axes[1].set_ylabel('Letters')
    axes[1].set_title('Best Streak')
    axes[1].grid(True, alpha=0.3)

    axes[2].plot(network_sizes, 'r-', linewidth=2)
    axes[2].set_xlabel('Cycle')
    axes[2].set_ylabel('Neurons')
    axes[2].set_title('Network Size')
    axes[2].grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig('training_results.png', dpi=150, bbox_inches='tight')
    print("Visualization saved as 'training_results.png'")


def train_continuous():
    """Cycle in the background until Ctrl+C."""
    grader = build_grader()
    display = ConsoleDisplay(every=PRINT_INTERVAL) if "--display" in sys.argv else None
    driver = CycleDriver(grader=grader, display=display)

    print("\n" + "="*70)
    print("CONTINUOUS MODE - Press Ctrl+C to stop")
    print("="*70)

    driver.start()
    try:
        last_reported = 0
        while True:
            time.sleep(1.0)
            if grader.cycles_run - last_reported >= PRINT_INTERVAL:
                last_reported = grader.cycles_run
                print_status(grader)
    except KeyboardInterrupt:
        print("\n\n⚠ Stopping after the current cycle...")
    finally:
        driver.stop()

    grader.print_summary()


if __name__ == "__main__":
    print("\n" + "="*60)
    print("BOOLEAN NEURON GRID - AUTO-GRADER")
    print("="*60)
    print("Usage:")
    print("  python train.py                 - Fixed-length run with plots")
    print("  python train.py --continuous    - Run until Ctrl+C")
    print("  python train.py --display       - Also print the grid (continuous mode)")
    print("  python train.py --punish-outputs - Punish wrong output bits by depth")
    print("="*60)

    if "--continuous" in sys.argv:
        train_continuous()
    else:
        train_fixed()

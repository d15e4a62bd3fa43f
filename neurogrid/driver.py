import logging
import threading
from typing import Callable, List, Optional

from .display import snapshot
from .engine import CycleEngine
from .grader import Grader
from .network import Network

logger = logging.getLogger(__name__)


class CycleDriver:
    """
    Runs cycles one at a time, either on request or continuously in a background thread.

    Every cycle and every manual stimulus holds the lock of the network
    generation it runs on, so the two never interleave. The stop flag is a
    separate event checked at each cycle boundary; a stop request never waits
    behind the lock.

    A display, if attached, receives a GridSnapshot after each state change.
    A display that raises is detached and the failure logged; cycling goes on.
    """

    def __init__(self,
                 grader: Optional[Grader] = None,
                 network: Optional[Network] = None,
                 output_width: Optional[int] = None,
                 display: Optional[Callable] = None,
                 interval: float = 0.0):
        """
        Initialize the driver.

        Args:
            grader: Grader to drive (takes precedence over network)
            network: Bare network to drive when no grader is given
            output_width: Output bits read per cycle for a bare network (defaults to its width)
            display: Callable receiving a GridSnapshot after state changes
            interval: Pause in seconds between background cycles
        """
        if grader is None and network is None:
            raise ValueError("CycleDriver needs a grader or a network")
        self.grader = grader
        self._network = network
        self._engine = CycleEngine(network) if grader is None else None
        self.output_width = output_width if output_width is not None else (
            grader.output_width if grader is not None else network.width)
        self.display = display
        self.interval = interval

        self.cycles_completed = 0
        self.last_output: List[bool] = []
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def network(self) -> Network:
        return self.grader.network if self.grader is not None else self._network

    @property
    def engine(self) -> CycleEngine:
        return self.grader.engine if self.grader is not None else self._engine

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _acquire_network(self, blocking: bool) -> Optional[Network]:
        """
        Lock the active network generation.

        A grow can swap the network while a caller waits on the old lock; the
        stale lock is then released and the new generation's lock taken instead.

        Returns:
            The locked network, or None if the lock was busy and blocking is False
        """
        while True:
            network = self.network
            if not network.lock.acquire(blocking):
                return None
            if network is self.network:
                return network
            network.lock.release()

    def run_one_cycle(self, blocking: bool = True) -> bool:
        """
        Run a single cycle under the current generation's lock.

        Args:
            blocking: Wait for an in-flight cycle to finish; if False, reject instead

        Returns:
            True if a cycle ran, False if it was rejected
        """
        network = self._acquire_network(blocking)
        if network is None:
            return False
        try:
            if self.grader is not None:
                self.last_output = self.grader.run_cycle().bits
            else:
                self.last_output = self._engine.run_cycle(self.output_width)
            self.cycles_completed += 1
        finally:
            network.lock.release()
        self._publish()
        return True

    def apply_stimulus(self, reward: bool, blocking: bool = True) -> bool:
        """
        Apply a manual reward or punishment to the current network.

        Not allowed while a grader is cycling automatically.

        Args:
            reward: True to reward, False to punish
            blocking: Wait for an in-flight cycle to finish; if False, reject instead

        Returns:
            True if the stimulus was applied, False if it was rejected
        """
        if self.grader is not None and self.running:
            raise RuntimeError("Manual stimulus is disabled while the grader cycles automatically")
        network = self._acquire_network(blocking)
        if network is None:
            return False
        try:
            network.stimulate(reward)
        finally:
            network.lock.release()
        self._publish()
        return True

    # ------------------------------------------------------------------
    # Background cycling
    # ------------------------------------------------------------------

    def start(self):
        """Start cycling in a background thread."""
        if self.running:
            raise RuntimeError("CycleDriver is already running")
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="cycle-driver", daemon=True)
        self._thread.start()
        logger.info("Background cycling started")

    def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Ask the background loop to stop at the next cycle boundary and wait for it.

        Args:
            timeout: Seconds to wait for the thread (None waits indefinitely)

        Returns:
            True if the loop has stopped
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                return False
            self._thread = None
        logger.info("Background cycling stopped after %d cycles", self.cycles_completed)
        return True

    def _run_loop(self):
        while not self._stop_event.is_set():
            self.run_one_cycle(blocking=True)
            if self.interval > 0:
                self._stop_event.wait(self.interval)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def _publish(self):
        if self.display is None:
            return
        with self.network.lock:
            state = snapshot(self.network, self.engine, self.grader)
        try:
            self.display(state)
        except Exception:
            logger.exception("Display failed; detaching it")
            self.display = None

    def __repr__(self):
        status = "running" if self.running else "idle"
        return f"CycleDriver({status}, cycles={self.cycles_completed})"

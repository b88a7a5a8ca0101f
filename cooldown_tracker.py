# cooldown_tracker.py
import threading
import time

from protocol_constants import DEFAULT_COOLDOWN_TICK_S
from client_utils import log_message


def format_duration(milliseconds):
    """'1h 2m 3s', '2m 3s' or '3s'."""
    total_seconds = int(milliseconds // 1000)
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


class CooldownTracker:
    """
    Tracks the placement cooldown the server reports with 0xC2 frames.

    The server is authoritative: every notice overwrites the previous
    deadline. While a cooldown is running, an optional ticker thread calls
    on_tick(remaining_seconds) every tick_interval seconds and calls
    on_ready() once when the deadline passes, then exits until the next
    notice starts it again.
    """

    def __init__(self, clock=time.monotonic, tick_interval=DEFAULT_COOLDOWN_TICK_S,
                 on_tick=None, on_ready=None, wall_clock=time.time):
        self.clock = clock
        self.wall_clock = wall_clock
        self.tick_interval = tick_interval
        self.on_tick = on_tick
        self.on_ready = on_ready
        self.ready_at = None        # monotonic deadline, None = no cooldown known
        self.ready_at_wall_ts = None
        self.armed = False
        self.lock = threading.Lock()
        self.stop_event = threading.Event()
        self.tick_thread = None

    def on_cooldown_notice(self, wait_seconds):
        with self.lock:
            self.ready_at = self.clock() + wait_seconds
            self.ready_at_wall_ts = self.wall_clock() + wait_seconds
            # a zero wait ending a running cooldown still counts as the ready transition
            self.armed = self.armed or wait_seconds > 0
        log_message(f"[COOLDOWN] {wait_seconds} seconds ({format_duration(wait_seconds * 1000)})")
        if self.armed and (self.on_tick or self.on_ready):
            self.start_ticking()

    def remaining(self) -> float:
        """Seconds until a pixel can be placed, never negative."""
        if self.ready_at is None:
            return 0.0
        return max(0.0, self.ready_at - self.clock())

    def remaining_ms(self) -> int:
        return int(self.remaining() * 1000)

    def is_ready(self) -> bool:
        return self.remaining() == 0

    def ready_at_wall(self):
        """Wall-clock time the cooldown ends, or None if none was ever reported."""
        return self.ready_at_wall_ts

    def poll(self) -> bool:
        """
        Run one tick. Returns True while the ticker should keep going.
        """
        with self.lock:
            if not self.armed:
                return False
            left = self.remaining()
            if left > 0:
                fire_ready = False
            else:
                self.armed = False
                fire_ready = True
        if fire_ready:
            if self.on_ready:
                self.on_ready()
            return False
        if self.on_tick:
            self.on_tick(left)
        return True

    def tick_loop(self, stop_event):
        while not stop_event.wait(self.tick_interval):
            if self.poll():
                continue
            with self.lock:
                # a notice that re-armed us after poll() keeps this thread going
                if self.armed:
                    continue
                if self.tick_thread is threading.current_thread():
                    self.tick_thread = None
                return

    def start_ticking(self):
        with self.lock:
            if self.tick_thread is not None and self.tick_thread.is_alive():
                return
            self.stop_event = threading.Event()
            self.tick_thread = threading.Thread(target=self.tick_loop, args=(self.stop_event,), daemon=True)
            self.tick_thread.start()

    def stop_ticking(self):
        self.stop_event.set()
        thread = self.tick_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        self.tick_thread = None

    def set_tick_interval(self, seconds):
        self.tick_interval = seconds
        if self.tick_thread is not None and self.tick_thread.is_alive():
            self.stop_ticking()
            self.start_ticking()

    def reset(self):
        self.stop_ticking()
        with self.lock:
            self.ready_at = None
            self.ready_at_wall_ts = None
            self.armed = False

    def status(self):
        return {
            'remaining_ms': self.remaining_ms(),
            'ready_at': self.ready_at_wall_ts,
            'ticking': self.tick_thread is not None and self.tick_thread.is_alive(),
            'tick_interval': self.tick_interval,
        }

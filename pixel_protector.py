# pixel_protector.py
"""
Keeps a protected rectangle of the canvas at its expected colors.

Every point of the rectangle gets an expected color when protect() is
called. Pixel updates from the server are compared against that map; a
mismatch is recorded as a Violation and, with auto-fix on, a corrective
SetPixel is scheduled fix_delay_ms later. There is at most one pending
correction per point: a second violation on the same point before the
first fix goes out replaces the pending one instead of queueing another.

pause() and stop() cancel every pending correction so nothing is written
after protection has been switched off.
"""
import threading
from collections import deque, namedtuple

from protocol_constants import DEFAULT_FIX_DELAY_MS, DEFAULT_AUTO_FIX, VIOLATION_HISTORY, MAX_CHUNK_INDEX, CHUNK_SIZE
from protocol_errors import NoActiveRegion
from command_utils import build_set_pixel, check_color, check_range
from client_utils import log_message

STOPPED = 'STOPPED'
ACTIVE = 'ACTIVE'
PAUSED = 'PAUSED'

WORLD_MAX = (MAX_CHUNK_INDEX + 1) * CHUNK_SIZE - 1

Violation = namedtuple('Violation', ['x', 'y', 'actual_color', 'expected'])


class ProtectedRegion:
    def __init__(self, x1, y1, x2, y2, default_color):
        self.x1 = min(x1, x2)
        self.y1 = min(y1, y2)
        self.x2 = max(x1, x2)
        self.y2 = max(y1, y2)
        self.default_color = default_color

    def contains(self, x, y):
        return self.x1 <= x <= self.x2 and self.y1 <= y <= self.y2

    @property
    def width(self):
        return self.x2 - self.x1 + 1

    @property
    def height(self):
        return self.y2 - self.y1 + 1

    @property
    def size(self):
        return self.width * self.height

    def points(self):
        for x in range(self.x1, self.x2 + 1):
            for y in range(self.y1, self.y2 + 1):
                yield (x, y)


class PendingFix:
    def __init__(self, x, y, color):
        self.x = x
        self.y = y
        self.color = color
        self.timer = None


class PixelProtector:
    def __init__(self, send, fix_delay_ms=DEFAULT_FIX_DELAY_MS, auto_fix=DEFAULT_AUTO_FIX,
                 timer_factory=threading.Timer, on_violation=None):
        self.send = send
        self.fix_delay_ms = fix_delay_ms
        self.auto_fix = auto_fix
        self.timer_factory = timer_factory
        self.on_violation = on_violation

        self.region = None
        self.pixel_map = {}         # (x, y) -> expected color
        self.monitoring = False
        self.pending = {}           # (x, y) -> PendingFix
        self.violations = deque(maxlen=VIOLATION_HISTORY)
        self.fixes_sent = 0
        self.lock = threading.Lock()

    @property
    def state(self):
        if self.region is None:
            return STOPPED
        return ACTIVE if self.monitoring else PAUSED

    # --- lifecycle ---
    def protect(self, x1, y1, x2, y2, default_color):
        for name, value in (("x1", x1), ("y1", y1), ("x2", x2), ("y2", y2)):
            check_range(name, value, 0, WORLD_MAX)
        check_color(default_color)
        region = ProtectedRegion(x1, y1, x2, y2, default_color)
        with self.lock:
            self._cancel_pending()
            self.region = region
            self.pixel_map = {point: default_color for point in region.points()}
            self.monitoring = True
        log_message(f"[PROTECT] Protecting ({region.x1},{region.y1}) to ({region.x2},{region.y2}), "
                    f"{region.width}x{region.height} ({region.size} pixels), color {default_color}")
        return region

    def stop(self):
        with self.lock:
            self._cancel_pending()
            self.region = None
            self.pixel_map = {}
            self.monitoring = False
        log_message("[PROTECT] Protection stopped")

    def pause(self):
        with self.lock:
            self._cancel_pending()
            self.monitoring = False
        log_message("[PROTECT] Protection paused")

    def resume(self):
        with self.lock:
            self._require_region()
            self.monitoring = True
        log_message("[PROTECT] Protection resumed")

    # --- expected colors ---
    def set_pixel(self, x, y, color):
        check_color(color)
        with self.lock:
            self._require_region()
            self.pixel_map[(x, y)] = color

    def set_area(self, x1, y1, x2, y2, color):
        check_color(color)
        with self.lock:
            self._require_region()
            count = 0
            for x in range(min(x1, x2), max(x1, x2) + 1):
                for y in range(min(y1, y2), max(y1, y2) + 1):
                    self.pixel_map[(x, y)] = color
                    count += 1
        return count

    def load_template(self, start_x, start_y, template):
        """
        template is a list of rows, row 0 at start_y. None cells are left
        untouched. Returns the number of pixels set.
        """
        cells = []
        for dy, row in enumerate(template):
            for dx, color in enumerate(row):
                if color is not None:
                    check_color(color)
                    cells.append(((start_x + dx, start_y + dy), color))
        with self.lock:
            self._require_region()
            for point, color in cells:
                self.pixel_map[point] = color
        log_message(f"[PROTECT] Loaded template: {len(cells)} pixels")
        return len(cells)

    def expected_color(self, x, y):
        with self.lock:
            if self.region is None:
                return None
            return self.pixel_map.get((x, y), self.region.default_color)

    def export_state(self):
        with self.lock:
            return dict(self.pixel_map)

    def import_state(self, mapping):
        imported = {}
        for key, color in mapping.items():
            if (not isinstance(key, tuple) or len(key) != 2
                    or not all(isinstance(v, int) and not isinstance(v, bool) for v in key)):
                raise TypeError(f"pixel map key must be an (x, y) int pair, got {key!r}")
            if not isinstance(color, int) or isinstance(color, bool):
                raise TypeError(f"pixel map color must be an int, got {color!r}")
            imported[key] = check_color(color)
        with self.lock:
            self._require_region()
            self.pixel_map = imported
        log_message(f"[PROTECT] Imported {len(imported)} pixels")
        return len(imported)

    # --- configuration ---
    def set_auto_fix(self, enabled):
        with self.lock:
            self.auto_fix = bool(enabled)
            if not self.auto_fix:
                self._cancel_pending()
        log_message(f"[PROTECT] Auto-fix {'enabled' if enabled else 'disabled'}")

    def set_fix_delay(self, milliseconds):
        if milliseconds < 0:
            raise ValueError("fix delay cannot be negative")
        self.fix_delay_ms = milliseconds

    # --- event handling ---
    def on_pixel_update(self, x, y, actual_color):
        """
        Compare one server pixel update with the expected map.
        Returns the Violation, or None when nothing is wrong or protection
        is not active.
        """
        with self.lock:
            if not self.monitoring or self.region is None:
                return None
            if not self.region.contains(x, y):
                return None
            expected = self.pixel_map.get((x, y), self.region.default_color)
            if actual_color == expected:
                return None
            violation = Violation(x, y, actual_color, expected)
            self.violations.append(violation)
            if self.auto_fix:
                self._schedule_fix(x, y, expected)

        log_message(f"[PROTECT] GRIEFED: ({x}, {y}) changed to color {actual_color}, expected {expected}")
        if self.on_violation:
            self.on_violation(violation)
        return violation

    def pending_points(self):
        with self.lock:
            return sorted(self.pending)

    def status(self):
        with self.lock:
            region = self.region
            info = {
                'state': self.state,
                'auto_fix': self.auto_fix,
                'fix_delay_ms': self.fix_delay_ms,
                'pending': len(self.pending),
                'violations': len(self.violations),
                'fixes_sent': self.fixes_sent,
            }
            if region is not None:
                info.update({
                    'area': (region.x1, region.y1, region.x2, region.y2),
                    'size': (region.width, region.height),
                    'pixels': region.size,
                    'unique_colors': len(set(self.pixel_map.values())),
                })
        return info

    # --- internals (call with self.lock held) ---
    def _require_region(self):
        if self.region is None:
            raise NoActiveRegion("no protected area, call protect() first")

    def _schedule_fix(self, x, y, color):
        old = self.pending.pop((x, y), None)
        if old is not None:
            old.timer.cancel()
        fix = PendingFix(x, y, color)
        fix.timer = self.timer_factory(self.fix_delay_ms / 1000.0, self._fire_fix, args=(fix,))
        fix.timer.daemon = True
        self.pending[(x, y)] = fix
        fix.timer.start()

    def _cancel_pending(self):
        for fix in self.pending.values():
            fix.timer.cancel()
        self.pending.clear()

    def _fire_fix(self, fix):
        with self.lock:
            # superseded or cancelled while this timer was waiting
            if self.pending.get((fix.x, fix.y)) is not fix:
                return
            del self.pending[(fix.x, fix.y)]
            packet = build_set_pixel(fix.x, fix.y, fix.color)
            self.fixes_sent += 1
        self.send(packet)
        log_message(f"[PROTECT] Fixed pixel at ({fix.x}, {fix.y})")

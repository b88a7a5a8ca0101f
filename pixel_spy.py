# pixel_spy.py
import csv
import time
from collections import Counter, deque

import numpy as np

from protocol_constants import SPY_HISTORY
from coordinates import to_chunk, chunk_center


class PixelSpy:
    """
    Counts pixel traffic seen on subscribed chunks.
    Filters narrow what is counted; they never drop events for other consumers.
    """

    def __init__(self, clock=time.time, history=SPY_HISTORY):
        self.clock = clock
        self.history = history
        self.logging = False
        self.filter_area = None
        self.filter_colors = None
        self.reset()

    def reset(self):
        self.total = 0
        self.by_color = Counter()
        self.by_chunk = Counter()
        self.last_pixel = None
        self.arrivals = deque(maxlen=self.history)
        self.recent = deque(maxlen=self.history)
        self.start_time = self.clock()

    def start(self):
        self.logging = True
        self.start_time = self.clock()

    def stop(self):
        self.logging = False

    pause = stop

    def resume(self):
        self.logging = True

    def set_area_filter(self, x1, y1, x2, y2):
        self.filter_area = (min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2))

    def set_color_filter(self, colors):
        self.filter_colors = set(colors)

    def clear_filters(self):
        self.filter_area = None
        self.filter_colors = None

    def passes_filters(self, x, y, color):
        if self.filter_area:
            x1, y1, x2, y2 = self.filter_area
            if x < x1 or x > x2 or y < y1 or y > y2:
                return False
        if self.filter_colors is not None and color not in self.filter_colors:
            return False
        return True

    def on_pixel_update(self, x, y, color):
        if not self.logging or not self.passes_filters(x, y, color):
            return False
        self.total += 1
        self.by_color[color] += 1
        self.by_chunk[to_chunk(x, y)] += 1
        self.last_pixel = (x, y, color)
        self.recent.append(self.last_pixel)
        self.arrivals.append(self.clock())
        return True

    def last(self, count=10):
        """The newest counted pixels as (x, y, color), oldest first."""
        if count <= 0:
            return []
        return list(self.recent)[-count:]

    def elapsed(self):
        return max(self.clock() - self.start_time, 0.0)

    def hotspots(self, limit=10):
        """[(chunk, center, count)] busiest chunks first."""
        return [(chunk, chunk_center(chunk.i, chunk.j), count)
                for chunk, count in self.by_chunk.most_common(limit)]

    def color_stats(self, color):
        count = self.by_color.get(color, 0)
        percent = (count / self.total * 100) if self.total else 0.0
        return count, percent

    def summary(self):
        elapsed = self.elapsed()
        gaps = np.diff(np.array(list(self.arrivals), dtype=float)) if len(self.arrivals) > 1 else np.array([])
        return {
            'total': self.total,
            'elapsed_s': elapsed,
            'rate_px_s': self.total / elapsed if elapsed > 0 else 0.0,
            'mean_gap_s': float(np.mean(gaps)) if len(gaps) else 0.0,
            'p95_gap_s': float(np.percentile(gaps, 95)) if len(gaps) else 0.0,
            'unique_colors': len(self.by_color),
        }

    def export(self):
        data = self.summary()
        data['by_color'] = dict(self.by_color)
        data['by_chunk'] = {f"{c.i},{c.j}": n for c, n in self.by_chunk.items()}
        return data

    def save_csv(self, path):
        """One row per chunk: chunk_i, chunk_j, center_x, center_y, pixels."""
        with open(path, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=['chunk_i', 'chunk_j', 'center_x', 'center_y', 'pixels'])
            writer.writeheader()
            for chunk, center, count in self.hotspots(limit=None):
                writer.writerow({
                    'chunk_i': chunk.i,
                    'chunk_j': chunk.j,
                    'center_x': center.x,
                    'center_y': center.y,
                    'pixels': count,
                })

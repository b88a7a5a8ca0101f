# canvas_client.py
import argparse
import csv
import signal
import sys
import threading
import time
from collections import deque

import psutil
from websockets.exceptions import InvalidHandshake, InvalidURI

from protocol_constants import *
from client_utils import PixelUpdate, CooldownNotice, parse_frame, resolve_frame, current_time_ms, log_message
from command_utils import SetPixel, build_set_pixel, send_command
from cooldown_tracker import CooldownTracker, format_duration
from pixel_protector import PixelProtector
from canvas_manager import CanvasManager
from pixel_spy import PixelSpy
from protocol_errors import EncodeRangeError
from transport import WebSocketTransport

METRIC_FIELDS = ['recv_time_ms', 'opcode', 'event', 'frame_bytes', 'cpu_percent']


class CanvasClient:
    """
    Wires one transport to the decoder and to everything that consumes
    server events: cooldown tracking, area protection and traffic stats.
    """

    def __init__(self, transport, fix_delay_ms=DEFAULT_FIX_DELAY_MS, auto_fix=DEFAULT_AUTO_FIX,
                 timer_factory=threading.Timer, cooldown_tick_s=DEFAULT_COOLDOWN_TICK_S):
        self.transport = transport
        self.cooldown = CooldownTracker(tick_interval=cooldown_tick_s,
                                        on_tick=self._cooldown_tick, on_ready=self._cooldown_ready)
        self.protector = PixelProtector(transport.send, fix_delay_ms=fix_delay_ms, auto_fix=auto_fix,
                                        timer_factory=timer_factory)
        self.canvas = CanvasManager(transport.send)
        self.spy = PixelSpy()
        self.metrics = deque(maxlen=METRICS_HISTORY)
        self.metrics_lock = threading.Lock()
        self.stop_event = threading.Event()
        self.paint_stop = threading.Event()
        self.paint_thread = None
        self.frames_dropped = 0

    # --- outgoing ---
    def place_pixel(self, x, y, color):
        return send_command(self.transport, SetPixel(x, y, color))

    def paint_template(self, start_x, start_y, template, delay_ms=DEFAULT_PAINT_DELAY_MS):
        """
        Paint a template one pixel every delay_ms on a background thread.
        Every pixel is encoded up front, so a bad coordinate paints nothing.
        Returns the number of pixels queued.
        """
        packets = []
        for dy, row in enumerate(template):
            for dx, color in enumerate(row):
                if color is not None:
                    packets.append(build_set_pixel(start_x + dx, start_y + dy, color))
        self.cancel_paint()
        self.paint_stop = threading.Event()
        self.paint_thread = threading.Thread(target=self._paint_loop,
                                             args=(packets, delay_ms / 1000.0, self.paint_stop), daemon=True)
        self.paint_thread.start()
        eta_min = len(packets) * delay_ms / 60000
        log_message(f"[CLIENT] Painting template ({len(packets)} pixels, ETA: {eta_min:.1f} min)")
        return len(packets)

    def cancel_paint(self):
        self.paint_stop.set()
        if self.paint_thread is not None:
            self.paint_thread.join(timeout=2.0)
            self.paint_thread = None

    def _paint_loop(self, packets, delay, stop_event):
        for n, packet in enumerate(packets):
            if n and stop_event.wait(delay):
                return
            self.transport.send(packet)

    # --- incoming ---
    def handle_frame(self, raw):
        """Decode one inbound frame and hand the event to its consumers."""
        data = resolve_frame(raw)
        event = parse_frame(data)
        if event is None:
            self.frames_dropped += 1
            return None

        self._record_metric(data, event)

        if isinstance(event, PixelUpdate):
            self.spy.on_pixel_update(event.x, event.y, event.color)
            self.protector.on_pixel_update(event.x, event.y, event.color)
        elif isinstance(event, CooldownNotice):
            self.cooldown.on_cooldown_notice(event.wait_seconds)
        # Unknown opcodes (chat, online counters, ...) are not ours to handle
        return event

    def receive_loop(self, duration=None):
        start = time.time()
        for raw in self.transport.frames(self.stop_event):
            # None is a receive timeout, not a frame
            if raw is not None:
                self.handle_frame(raw)
            if duration is not None and time.time() - start >= duration:
                break
        log_message(f"[CLIENT] Receive loop ending. Collected {len(self.metrics)} metrics, "
                    f"dropped {self.frames_dropped} frames")

    def stop(self):
        self.stop_event.set()
        self.cancel_paint()
        self.cooldown.stop_ticking()
        self.protector.stop()

    # --- metrics ---
    def _record_metric(self, data, event):
        try:
            cpu_percent = psutil.cpu_percent(interval=None)
        except psutil.Error:
            cpu_percent = 0.0
        with self.metrics_lock:
            self.metrics.append({
                'recv_time_ms': current_time_ms(),
                'opcode': data[0],
                'event': type(event).__name__,
                'frame_bytes': len(data),
                'cpu_percent': cpu_percent,
            })

    def save_metrics(self, path):
        with self.metrics_lock:
            rows = list(self.metrics)
        with open(path, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=METRIC_FIELDS)
            writer.writeheader()
            writer.writerows(rows)
        log_message(f"[CLIENT] Saved {len(rows)} metrics to {path}")

    def _cooldown_tick(self, remaining):
        log_message(f"[COOLDOWN] Cooldown remaining: {format_duration(remaining * 1000)}")

    def _cooldown_ready(self):
        log_message("[COOLDOWN] Ready to place pixel")


def build_parser():
    parser = argparse.ArgumentParser(description="Headless pixel canvas client with area protection")
    parser.add_argument("--url", type=str, default=DEFAULT_SERVER_URL)
    parser.add_argument("--origin", type=str, default=None)
    parser.add_argument("--canvas", type=int, default=DEFAULT_CANVAS_ID)
    parser.add_argument("--protect", type=int, nargs=5, metavar=("X1", "Y1", "X2", "Y2", "COLOR"))
    parser.add_argument("--fix-delay", type=int, default=DEFAULT_FIX_DELAY_MS, help="milliseconds")
    parser.add_argument("--no-auto-fix", action="store_true")
    parser.add_argument("--cooldown-tick", type=float, default=DEFAULT_COOLDOWN_TICK_S, help="seconds")
    parser.add_argument("--duration", type=int, default=None, help="seconds, default runs until stopped")
    parser.add_argument("--metrics-csv", type=str, default=None)
    parser.add_argument("--spy-csv", type=str, default=None)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    transport = WebSocketTransport(args.url, origin=args.origin)
    client = CanvasClient(transport, fix_delay_ms=args.fix_delay, auto_fix=not args.no_auto_fix,
                          cooldown_tick_s=args.cooldown_tick)

    def signal_handler(sig, frame):
        log_message(f"[CLIENT] Received signal {sig}, shutting down...")
        client.stop_event.set()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    try:
        transport.connect()
    except (OSError, InvalidURI, InvalidHandshake) as e:
        log_message(f"[CLIENT] Connection failed: {e}")
        return 1

    try:
        client.canvas.register_canvas(args.canvas)
        if args.protect:
            x1, y1, x2, y2, color = args.protect
            try:
                client.protector.protect(x1, y1, x2, y2, color)
            except EncodeRangeError as e:
                log_message(f"[CLIENT] Invalid --protect area: {e}")
                return 1
            client.canvas.register_area(x1, y1, x2, y2)
        client.spy.start()
        client.receive_loop(args.duration)
    finally:
        client.stop()
        transport.close()
        if args.metrics_csv:
            client.save_metrics(args.metrics_csv)
        if args.spy_csv:
            client.spy.save_csv(args.spy_csv)
        log_message("[CLIENT] Disconnected")
    return 0


if __name__ == "__main__":
    sys.exit(main())

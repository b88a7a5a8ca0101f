import pytest


class FakeTransport:
    def __init__(self, frames=()):
        self.sent = []
        self.inbound = list(frames)

    def send(self, packet):
        self.sent.append(packet)

    def frames(self, stop_event=None):
        for frame in self.inbound:
            if stop_event is not None and stop_event.is_set():
                return
            yield frame


class FakeTimer:
    """Stands in for threading.Timer; tests fire it by hand."""
    created = []

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.started and not self.cancelled:
            self.function(*self.args, **self.kwargs)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def timers():
    FakeTimer.created = []
    yield FakeTimer
    FakeTimer.created = []


@pytest.fixture
def clock():
    return FakeClock()

# transport.py
from websockets.exceptions import ConnectionClosed
from websockets.sync.client import connect

from protocol_constants import DEFAULT_SERVER_URL, MAX_FRAME_BYTES
from client_utils import log_message


class WebSocketTransport:
    """
    Duplex frame channel to the canvas service.
    send() takes encoded bytes, frames() yields whatever arrives.
    """

    def __init__(self, url=DEFAULT_SERVER_URL, origin=None, recv_timeout=0.1):
        self.url = url
        self.origin = origin
        self.recv_timeout = recv_timeout
        self.ws = None

    def connect(self):
        self.ws = connect(self.url, origin=self.origin, max_size=MAX_FRAME_BYTES)
        log_message(f"[CLIENT] Connected to {self.url}")
        return self

    def send(self, packet: bytes):
        if self.ws is None:
            raise ConnectionError("transport is not connected")
        self.ws.send(packet)

    def frames(self, stop_event=None):
        """
        Yield inbound frames until the socket closes or stop_event is set.
        Yields None each time recv_timeout passes with nothing received, so
        callers can check their own deadlines on a quiet socket.
        """
        while stop_event is None or not stop_event.is_set():
            try:
                yield self.ws.recv(timeout=self.recv_timeout)
            except TimeoutError:
                yield None
            except ConnectionClosed as e:
                log_message(f"[CLIENT] Connection closed: {e}")
                return

    def close(self):
        if self.ws is not None:
            self.ws.close()
            self.ws = None

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc, tb):
        self.close()

# canvas_manager.py
from command_utils import (
    SubscribeCanvas, SubscribeChunk, SubscribeChunks, RequestChatHistory,
    encode_command, batch_chunk_ids,
)
from coordinates import chunk_id, chunk_from_id, chunk_center, chunks_covering
from client_utils import log_message


class CanvasManager:
    """Canvas and chunk subscriptions for one connection."""

    def __init__(self, send):
        self.send = send
        self.current_canvas = None
        self.registered = set()

    def register_canvas(self, canvas_id):
        self.send(encode_command(SubscribeCanvas(canvas_id)))
        self.current_canvas = canvas_id
        log_message(f"[CANVAS] Registered canvas: {canvas_id}")

    def register_chunk(self, cid):
        self.send(encode_command(SubscribeChunk(cid)))
        self.registered.add(cid)

    def register_chunk_by_coords(self, i, j):
        self.register_chunk(chunk_id(i, j))

    def register_chunks(self, chunk_ids):
        """Subscribe to many chunks, one frame per 255 ids. Returns frames sent."""
        batches = batch_chunk_ids(chunk_ids)
        # encode everything first so a bad id sends nothing
        packets = [encode_command(SubscribeChunks(batch)) for batch in batches]
        for packet in packets:
            self.send(packet)
        for batch in batches:
            self.registered.update(batch)
        log_message(f"[CANVAS] Registered {sum(len(b) for b in batches)} chunks")
        return len(packets)

    def register_area(self, x1, y1, x2, y2):
        return self.register_chunks(chunks_covering(x1, y1, x2, y2))

    def request_chat_history(self):
        self.send(encode_command(RequestChatHistory()))

    def registered_chunks(self):
        """Sorted [(chunk_id, (i, j), center)]."""
        listing = []
        for cid in sorted(self.registered):
            coord = chunk_from_id(cid)
            listing.append((cid, coord, chunk_center(coord.i, coord.j)))
        return listing

    def clear_registered(self):
        self.registered.clear()

    def status(self):
        return {
            'current_canvas': self.current_canvas,
            'registered_chunks': len(self.registered),
        }

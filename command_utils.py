# command_utils.py
import struct
from collections import namedtuple

from protocol_constants import (
    OP_SUBSCRIBE_CANVAS, OP_SUBSCRIBE_CHUNK, OP_SUBSCRIBE_CHUNKS, OP_CHAT_HISTORY, OP_PIXEL,
    SUBSCRIBE_CANVAS_FMT, SUBSCRIBE_CHUNK_FMT, SUBSCRIBE_CHUNKS_HEADER_FMT, CHUNK_ID_FMT,
    CHAT_HISTORY_FMT, PIXEL_FMT,
    MAX_CHUNK_INDEX, MAX_CHUNK_ID, MAX_OFFSET, MAX_CHUNKS_PER_BATCH, MAX_COLOR, MAX_CANVAS_ID,
)
from protocol_errors import EncodeRangeError
from coordinates import to_chunk, to_offset

# Outgoing commands
SetPixel = namedtuple('SetPixel', ['x', 'y', 'color'])
SubscribeCanvas = namedtuple('SubscribeCanvas', ['canvas_id'])
SubscribeChunk = namedtuple('SubscribeChunk', ['chunk_id'])
SubscribeChunks = namedtuple('SubscribeChunks', ['chunk_ids'])
RequestChatHistory = namedtuple('RequestChatHistory', [])


def check_range(name, value, low, high):
    if not isinstance(value, int) or isinstance(value, bool):
        raise EncodeRangeError(f"{name} must be an int, got {value!r}")
    if value < low or value > high:
        raise EncodeRangeError(f"{name}={value} outside [{low}, {high}]")
    return value


def check_color(color):
    return check_range("color", color, 0, MAX_COLOR)


def build_set_pixel(x: int, y: int, color: int) -> bytes:
    """
    0xC1 | i | j | offset >> 16 | offset & 0xFFFF (BE) | color
    i and j must each fit one byte, which bounds the world to 65536 x 65536.
    """
    check_range("x", x, 0, (MAX_CHUNK_INDEX + 1) * 256 - 1)
    check_range("y", y, 0, (MAX_CHUNK_INDEX + 1) * 256 - 1)
    check_color(color)
    i, j = to_chunk(x, y)
    offset = check_range("offset", to_offset(x, y), 0, MAX_OFFSET)
    return struct.pack(PIXEL_FMT, OP_PIXEL, i, j, offset >> 16, offset & 0xFFFF, color)


def build_subscribe_canvas(canvas_id: int) -> bytes:
    check_range("canvas_id", canvas_id, 0, MAX_CANVAS_ID)
    return struct.pack(SUBSCRIBE_CANVAS_FMT, OP_SUBSCRIBE_CANVAS, canvas_id)


def build_subscribe_chunk(chunk_id: int) -> bytes:
    check_range("chunk_id", chunk_id, 0, MAX_CHUNK_ID)
    return struct.pack(SUBSCRIBE_CHUNK_FMT, OP_SUBSCRIBE_CHUNK, chunk_id)


def build_subscribe_chunks(chunk_ids) -> bytes:
    chunk_ids = list(chunk_ids)
    if len(chunk_ids) > MAX_CHUNKS_PER_BATCH:
        raise EncodeRangeError(
            f"{len(chunk_ids)} chunk ids do not fit one frame (max {MAX_CHUNKS_PER_BATCH}); batch them")
    packet = struct.pack(SUBSCRIBE_CHUNKS_HEADER_FMT, OP_SUBSCRIBE_CHUNKS, len(chunk_ids))
    for cid in chunk_ids:
        check_range("chunk_id", cid, 0, MAX_CHUNK_ID)
        packet += struct.pack(CHUNK_ID_FMT, cid)
    return packet


def build_chat_history() -> bytes:
    return struct.pack(CHAT_HISTORY_FMT, OP_CHAT_HISTORY)


def encode_command(cmd) -> bytes:
    if isinstance(cmd, SetPixel):
        return build_set_pixel(cmd.x, cmd.y, cmd.color)
    if isinstance(cmd, SubscribeCanvas):
        return build_subscribe_canvas(cmd.canvas_id)
    if isinstance(cmd, SubscribeChunk):
        return build_subscribe_chunk(cmd.chunk_id)
    if isinstance(cmd, SubscribeChunks):
        return build_subscribe_chunks(cmd.chunk_ids)
    if isinstance(cmd, RequestChatHistory):
        return build_chat_history()
    raise TypeError(f"not a command: {cmd!r}")


def batch_chunk_ids(chunk_ids, size=MAX_CHUNKS_PER_BATCH):
    """Split chunk ids into lists that each fit one SubscribeChunks frame."""
    chunk_ids = list(chunk_ids)
    return [chunk_ids[p:p + size] for p in range(0, len(chunk_ids), size)]


def send_command(transport, cmd) -> bytes:
    """
    Encode and hand to the transport. Range errors surface here, before
    anything goes on the wire.
    """
    packet = encode_command(cmd)
    transport.send(packet)
    return packet

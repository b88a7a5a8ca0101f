# client_utils.py
import struct
import time
from collections import namedtuple

from protocol_constants import OP_PIXEL, OP_COOLDOWN, PIXEL_FMT, PIXEL_SIZE, COOLDOWN_FMT, COOLDOWN_SIZE
from protocol_errors import TruncatedFrame
from coordinates import from_chunk_offset

# Incoming events
PixelUpdate = namedtuple('PixelUpdate', ['x', 'y', 'color'])
CooldownNotice = namedtuple('CooldownNotice', ['wait_seconds'])
Unknown = namedtuple('Unknown', ['opcode'])


def current_time_ms():
    return int(time.time() * 1000)


def log_message(msg):
    print(msg)


def resolve_frame(data):
    """
    Turn whatever the transport delivered into a byte buffer.
    Text frames are not part of the binary protocol and resolve to None.
    """
    if data is None or isinstance(data, str):
        return None
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    if hasattr(data, 'read'):
        # deferred-readable handle: read it fully before decoding
        return resolve_frame(data.read())
    raise TypeError(f"cannot read frame from {type(data).__name__}")


def parse_pixel_update(raw: bytes) -> PixelUpdate:
    if len(raw) < PIXEL_SIZE:
        raise TruncatedFrame(OP_PIXEL, PIXEL_SIZE, len(raw))
    _, i, j, off_hi, off_lo, color = struct.unpack(PIXEL_FMT, raw[:PIXEL_SIZE])
    offset = (off_hi << 16) | off_lo
    x, y = from_chunk_offset(i, j, offset)
    return PixelUpdate(x, y, color)


def parse_cooldown(raw: bytes) -> CooldownNotice:
    if len(raw) < COOLDOWN_SIZE:
        raise TruncatedFrame(OP_COOLDOWN, COOLDOWN_SIZE, len(raw))
    _, wait_seconds = struct.unpack(COOLDOWN_FMT, raw[:COOLDOWN_SIZE])
    return CooldownNotice(wait_seconds)


EVENT_PARSERS = {
    OP_PIXEL: parse_pixel_update,
    OP_COOLDOWN: parse_cooldown,
}


def decode_event(raw: bytes):
    """
    Decode one server frame.
    Raises TruncatedFrame for an empty frame or a known opcode that is cut
    short. Opcodes this client does not consume come back as Unknown.
    Bytes past the fixed layout are ignored.
    """
    if len(raw) < 1:
        raise TruncatedFrame(None, 1, 0)
    opcode = raw[0]
    parser = EVENT_PARSERS.get(opcode)
    if parser is None:
        return Unknown(opcode)
    return parser(raw)


def parse_frame(raw):
    """
    Resolve and decode a frame for a receive loop.
    Returns None if the frame is text or malformed.
    """
    data = resolve_frame(raw)
    if data is None:
        return None
    try:
        return decode_event(data)
    except TruncatedFrame:
        return None

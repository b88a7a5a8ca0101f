# protocol_constants.py
# Opcodes (first byte of every frame)
OP_SUBSCRIBE_CANVAS = 0xA0
OP_SUBSCRIBE_CHUNK = 0xA1
OP_SUBSCRIBE_CHUNKS = 0xA3
OP_CHAT_HISTORY = 0xA5
OP_PIXEL = 0xC1        # SetPixel out, PixelUpdate in
OP_COOLDOWN = 0xC2

# Frame layouts (for struct.pack/unpack), opcode included
SUBSCRIBE_CANVAS_FMT = '!B B'        # 2 bytes
SUBSCRIBE_CHUNK_FMT = '!B H'         # 3 bytes
SUBSCRIBE_CHUNKS_HEADER_FMT = '!B B' # 2 bytes, then N x '!H'
CHUNK_ID_FMT = '!H'
CHAT_HISTORY_FMT = '!B'              # 1 byte
PIXEL_FMT = '!B B B B H B'           # 7 bytes: op, i, j, offset hi, offset lo16, color
COOLDOWN_FMT = '!B H'                # 3 bytes

PIXEL_SIZE = 7
COOLDOWN_SIZE = 3

# Canvas geometry
CHUNK_SIZE = 256
MAX_CHUNK_INDEX = 255                # i, j travel as one byte each
MAX_CHUNK_ID = 0xFFFF
MAX_OFFSET = CHUNK_SIZE * CHUNK_SIZE - 1
MAX_CHUNKS_PER_BATCH = 255           # count field is one byte
MAX_COLOR = 255
MAX_CANVAS_ID = 255

# Default behavior / limits
DEFAULT_SERVER_URL = 'wss://pixelplanet.fun/ws'
DEFAULT_CANVAS_ID = 0
DEFAULT_FIX_DELAY_MS = 2000
DEFAULT_AUTO_FIX = True
DEFAULT_COOLDOWN_TICK_S = 30
DEFAULT_PAINT_DELAY_MS = 1000
MAX_FRAME_BYTES = 65536
VIOLATION_HISTORY = 100
METRICS_HISTORY = 10000              # per-frame client metrics kept in memory
SPY_HISTORY = 1000                   # recent pixels and arrival times kept by the spy

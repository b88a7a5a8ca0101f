# coordinates.py
"""
World <-> chunk <-> offset transforms for the tiled canvas.

The world is an unbounded integer plane cut into CHUNK_SIZE x CHUNK_SIZE
tiles. A pixel is addressed on the wire by its chunk (i, j) plus an offset
inside the chunk:
    offset = local_x + local_y * CHUNK_SIZE

Chunk ids used for subscriptions pack (i, j) as i + j * CHUNK_SIZE. That only
round-trips for 0 <= i <= 255; a wider i collides with another (i, j) pair.
The live service uses the same packing, so the bound is kept as-is.
"""
from collections import namedtuple

from protocol_constants import CHUNK_SIZE

WorldPoint = namedtuple('WorldPoint', ['x', 'y'])
ChunkCoord = namedtuple('ChunkCoord', ['i', 'j'])


def to_chunk(x: int, y: int) -> ChunkCoord:
    return ChunkCoord(x // CHUNK_SIZE, y // CHUNK_SIZE)


def to_offset(x: int, y: int) -> int:
    # Python's % is already floored; negative coords land in [0, 255]
    local_x = x % CHUNK_SIZE
    local_y = y % CHUNK_SIZE
    return local_x + local_y * CHUNK_SIZE


def from_chunk_offset(i: int, j: int, offset: int) -> WorldPoint:
    local_x = offset % CHUNK_SIZE
    local_y = offset // CHUNK_SIZE
    return WorldPoint(i * CHUNK_SIZE + local_x, j * CHUNK_SIZE + local_y)


def chunk_id(i: int, j: int) -> int:
    return i + j * CHUNK_SIZE


def chunk_from_id(cid: int) -> ChunkCoord:
    return ChunkCoord(cid % CHUNK_SIZE, cid // CHUNK_SIZE)


def chunks_covering(x1: int, y1: int, x2: int, y2: int) -> list:
    """Chunk ids of every chunk touching the rectangle, i-major then j."""
    first = to_chunk(min(x1, x2), min(y1, y2))
    last = to_chunk(max(x1, x2), max(y1, y2))
    ids = []
    for i in range(first.i, last.i + 1):
        for j in range(first.j, last.j + 1):
            ids.append(chunk_id(i, j))
    return ids


def chunk_bounds(i: int, j: int):
    """Inclusive world rectangle (x1, y1, x2, y2) of chunk (i, j)."""
    x1 = i * CHUNK_SIZE
    y1 = j * CHUNK_SIZE
    return (x1, y1, x1 + CHUNK_SIZE - 1, y1 + CHUNK_SIZE - 1)


def chunk_center(i: int, j: int) -> WorldPoint:
    half = CHUNK_SIZE // 2
    return WorldPoint(i * CHUNK_SIZE + half, j * CHUNK_SIZE + half)


def describe(x: int, y: int) -> dict:
    chunk = to_chunk(x, y)
    return {
        'x': x,
        'y': y,
        'chunk': chunk,
        'chunk_id': chunk_id(chunk.i, chunk.j),
        'offset': to_offset(x, y),
        'bounds': chunk_bounds(chunk.i, chunk.j),
    }

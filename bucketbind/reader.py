from __future__ import annotations

from collections.abc import Iterator

from bucketbind.errors import ReadError
from bucketbind.storage import ObjectHandle, StorageError

# largest single ranged read issued against the backend (256 KiB)
READ_BUFFER_MAX = 0x40000


def chunk_spans(size: int, chunk: int = READ_BUFFER_MAX) -> Iterator[tuple[int, int]]:
    """Yield ``(offset, length)`` pairs covering ``[0, size)`` in order.

    Every span is ``chunk`` bytes long except the last one, which is shrunk to
    the bytes remaining so no read runs past the end of the object.
    """
    if chunk <= 0:
        raise ValueError(f"chunk must be positive, got {chunk}")
    if size < 0:
        raise ValueError(f"size must not be negative, got {size}")
    offset = 0
    while offset < size:
        end = offset + chunk
        length = chunk
        if end > size:
            length = size - offset
        yield offset, length
        offset = end


async def read_all(handle: ObjectHandle, size: int, chunk: int = READ_BUFFER_MAX) -> bytes:
    """Read exactly ``size`` bytes from ``handle`` into a single buffer.

    Any chunk that comes back short, or whose read fails, discards the whole
    buffer: a partial object is never returned.
    """
    buf = bytearray(size)
    view = memoryview(buf)
    for offset, length in chunk_spans(size, chunk):
        try:
            n = await handle.readinto_at(view[offset : offset + length], offset)
        except StorageError as exc:
            raise ReadError(f"readat error: {exc} at {offset} size: 0/{length}") from exc
        if n != length:
            raise ReadError(f"readat error: short read at {offset} size: {n}/{length}")
    return bytes(buf)

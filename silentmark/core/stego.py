"""
Steganographic Codec (LSB)
==========================
Hides payload bytes in the least significant bits of an image's colour
channels and reads them back.

Technical Notes:
- Only non-transparent pixels (alpha > 0) carry bits, three each (R, G, B)
- The alpha channel is never written, so the set of carrier pixels is the
  same before and after embedding and extraction can replay the walk
- Slots are visited in a pseudo-random order fixed by WALK_SEED; no key is
  needed to extract
- Several payloads share one walk back to back, in embedding order
- Lossless formats (PNG) preserve the payload, JPEG destroys it

Frame format (bytes):
    [MAGIC "SM" (2)][KIND (1)][LENGTH (4, big endian)][DATA][CRC32 (4)]
"""

import hashlib
import logging
import math
import struct
import zlib
from typing import Optional

import numpy as np

from ..errors import NoPayloadFoundError, PayloadTooLargeError
from .models import EmbeddedPayload, PayloadKind
from .pixels import PixelBuffer

logger = logging.getLogger(__name__)

# Fixed walk seed. Changing it makes previously embedded images unreadable.
WALK_SEED = 0x5EED_CA7E

# Colour channels used as carriers (R, G, B)
CHANNELS = (0, 1, 2)


class BitWalk:
    """
    Cursor over the pseudo-random sequence of carrier slots of a buffer.

    Slot ``k`` of the walk is ``(a * k + b) mod n`` where ``n`` is the
    number of carrier slots and ``a`` is coprime with ``n``, so the walk
    visits each slot exactly once. ``a`` and ``b`` are derived from
    WALK_SEED and ``n``; nothing proportional to the image is stored.

    A walk only moves forward.
    """

    # Pixels scanned per block while collecting carrier indices
    CHUNK_PIXELS = 1 << 20

    def __init__(self, buffer: PixelBuffer, seed: int = WALK_SEED):
        self._carriers = self._carrier_indices(buffer.alpha.reshape(-1))
        self._slot_count = int(self._carriers.size) * len(CHANNELS)
        self._step, self._offset = self._walk_parameters(seed, self._slot_count)
        self._position = 0

    @classmethod
    def _carrier_indices(cls, alpha: np.ndarray) -> np.ndarray:
        """
        Flat indices of pixels with alpha > 0.

        Stored as int32 whenever the image allows it (4 bytes per carrier
        instead of 8), and collected block by block so no full-size int64
        temporary is created.
        """
        index_type = np.int32 if alpha.size <= np.iinfo(np.int32).max else np.int64
        blocks = [
            (np.flatnonzero(alpha[start:start + cls.CHUNK_PIXELS]) + start).astype(index_type)
            for start in range(0, alpha.size, cls.CHUNK_PIXELS)
        ]
        if not blocks:
            return np.empty(0, dtype=index_type)
        return np.concatenate(blocks)

    @staticmethod
    def _walk_parameters(seed: int, slot_count: int):
        if slot_count == 0:
            return 1, 0

        digest = hashlib.sha256(f"{seed}:{slot_count}".encode("utf-8")).digest()
        step = int.from_bytes(digest[:8], byteorder="big") % slot_count or 1
        offset = int.from_bytes(digest[8:16], byteorder="big") % slot_count

        while math.gcd(step, slot_count) != 1:
            step = step % slot_count + 1

        return step, offset

    @property
    def capacity(self) -> int:
        """Total number of bits the walk can carry."""
        return self._slot_count

    @property
    def position(self) -> int:
        return self._position

    @property
    def remaining(self) -> int:
        return self._slot_count - self._position

    def take(self, count: int):
        """
        Advance by ``count`` slots.

        Returns:
            (pixel_indices, channel_indices) into the buffer's flattened
            (width * height, 4) view.
        """
        if count > self.remaining:
            raise PayloadTooLargeError(count, self.remaining)

        k = np.arange(self._position, self._position + count, dtype=np.int64)
        slots = (k * self._step + self._offset) % self._slot_count
        self._position += count

        channel_count = len(CHANNELS)
        pixel_indices = self._carriers[slots // channel_count]
        channel_indices = np.asarray(CHANNELS, dtype=np.int64)[slots % channel_count]
        return pixel_indices, channel_indices


class LsbCodec:
    """
    Embeds and extracts framed payloads.

    The codec holds no per-image state; the walk passed between calls does.
    """

    MAGIC_BYTES = b"SM"
    _HEADER = struct.Struct(">2sBI")  # magic, kind, length
    _TRAILER = struct.Struct(">I")  # crc32 of data

    HEADER_SIZE = _HEADER.size * 8  # bits
    TRAILER_SIZE = _TRAILER.size * 8  # bits
    OVERHEAD_SIZE = HEADER_SIZE + TRAILER_SIZE

    def _frame(self, payload: bytes, kind: PayloadKind) -> bytes:
        header = self._HEADER.pack(self.MAGIC_BYTES, kind.value, len(payload))
        trailer = self._TRAILER.pack(zlib.crc32(payload))
        return header + payload + trailer

    @staticmethod
    def _write_bits(buffer: PixelBuffer, walk: BitWalk, data: bytes) -> None:
        bits = np.unpackbits(np.frombuffer(data, dtype=np.uint8))
        pixel_indices, channel_indices = walk.take(bits.size)

        flat = buffer.pixels.reshape(-1, 4)
        current = flat[pixel_indices, channel_indices]
        flat[pixel_indices, channel_indices] = (current & 0xFE) | bits

    @staticmethod
    def _read_bytes(buffer: PixelBuffer, walk: BitWalk, count: int) -> bytes:
        pixel_indices, channel_indices = walk.take(count * 8)
        flat = buffer.pixels.reshape(-1, 4)
        bits = flat[pixel_indices, channel_indices] & 1
        return np.packbits(bits).tobytes()

    def capacity(self, buffer: PixelBuffer) -> int:
        """Number of bits that can be hidden in the buffer."""
        return BitWalk(buffer).capacity

    def max_payload_bytes(self, buffer: PixelBuffer) -> int:
        """Largest single payload (in bytes) the buffer can hold."""
        return max(0, (self.capacity(buffer) - self.OVERHEAD_SIZE) // 8)

    def embed(
            self,
            buffer: PixelBuffer,
            payload: bytes,
            kind: PayloadKind = PayloadKind.TEXT,
            walk: Optional[BitWalk] = None
    ) -> BitWalk:
        """
        Hide ``payload`` in ``buffer`` (modified in place).

        Args:
            buffer: Carrier image.
            payload: Bytes to hide.
            kind: Recorded in the frame so reveal can tell text from images.
            walk: Walk to continue from; a fresh walk is started if None.
                  It must have been created for this buffer.

        Returns:
            The walk, positioned after the embedded frame.

        Raises:
            PayloadTooLargeError: If the frame needs more bits than remain.
        """
        if walk is None:
            walk = BitWalk(buffer)

        frame = self._frame(bytes(payload), kind)
        required = len(frame) * 8
        if required > walk.remaining:
            raise PayloadTooLargeError(required, walk.remaining)

        self._write_bits(buffer, walk, frame)
        logger.debug(
            "Embedded %d byte %s payload (%d/%d bits used)",
            len(payload), kind.name.lower(), walk.position, walk.capacity
        )
        return walk

    def extract(
            self,
            buffer: PixelBuffer,
            expected_kind: Optional[PayloadKind] = None,
            walk: Optional[BitWalk] = None
    ) -> EmbeddedPayload:
        """
        Read the next payload from ``buffer``.

        Args:
            buffer: Image to read from.
            expected_kind: If given, a payload of another kind is rejected.
            walk: Walk to continue from; a fresh walk is started if None.

        Returns:
            The recovered payload.

        Raises:
            NoPayloadFoundError: If no valid frame starts at the walk position.
        """
        if walk is None:
            walk = BitWalk(buffer)

        if walk.remaining < self.OVERHEAD_SIZE:
            raise NoPayloadFoundError("Not enough carrier bits left for a payload header")

        header = self._read_bytes(buffer, walk, self._HEADER.size)
        magic, kind_value, length = self._HEADER.unpack(header)

        if magic != self.MAGIC_BYTES:
            raise NoPayloadFoundError(
                "Invalid payload header. "
                "The image may not contain hidden data or was re-encoded lossily."
            )

        try:
            kind = PayloadKind(kind_value)
        except ValueError:
            raise NoPayloadFoundError(f"Unknown payload kind: {kind_value}")

        if expected_kind is not None and kind is not expected_kind:
            raise NoPayloadFoundError(
                f"Expected a {expected_kind.name.lower()} payload, found {kind.name.lower()}"
            )

        if length * 8 + self.TRAILER_SIZE > walk.remaining:
            raise NoPayloadFoundError(
                f"Invalid payload length: {length} bytes exceeds the remaining capacity"
            )

        data = self._read_bytes(buffer, walk, length)
        (checksum,) = self._TRAILER.unpack(self._read_bytes(buffer, walk, self._TRAILER.size))
        if checksum != zlib.crc32(data):
            raise NoPayloadFoundError("Payload checksum mismatch, data is corrupted")

        return EmbeddedPayload(kind=kind, data=data)


# Convenience functions
def embed_payload(
        buffer: PixelBuffer,
        payload: bytes,
        kind: PayloadKind = PayloadKind.TEXT
) -> BitWalk:
    """Hide a single payload at the start of the buffer's walk."""
    return LsbCodec().embed(buffer, payload, kind)


def extract_payload(
        buffer: PixelBuffer,
        expected_kind: Optional[PayloadKind] = None
) -> EmbeddedPayload:
    """Read the first payload of the buffer's walk."""
    return LsbCodec().extract(buffer, expected_kind)

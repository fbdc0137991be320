"""Growable byte arena backing the single glTF buffer of an export session."""
from typing import Tuple

from gltf_types import DEFAULT_RESERVED
from packer_logging import get_logger

logger = get_logger(__name__)


class ArenaCapacityError(Exception):
    """Raised when a non-growable arena runs out of reserved space."""


def padding_for(length: int, alignment: int = 4) -> int:
    """Number of bytes needed to pad length up to the alignment boundary."""
    return (alignment - length % alignment) % alignment


class ArenaBuffer:
    """Append-only byte region with a write cursor.

    Every append starts on an alignment boundary. Gaps created by alignment
    are zero filled and never belong to a returned range. Growth copies the
    region into a larger one; offsets are cursor relative from the start, so
    ranges handed out earlier stay valid.
    """

    def __init__(self, reserved: int = DEFAULT_RESERVED, alignment: int = 4, growable: bool = True):
        if reserved < 0:
            raise ValueError(f"Invalid reservation: {reserved}")
        if alignment <= 0:
            raise ValueError(f"Invalid alignment: {alignment}")
        self._data = bytearray(reserved)
        self._cursor = 0
        self.alignment = alignment
        self.growable = growable

    @property
    def cursor(self) -> int:
        """Number of occupied bytes."""
        return self._cursor

    @property
    def capacity(self) -> int:
        return len(self._data)

    def __len__(self) -> int:
        return self._cursor

    def _ensure_capacity(self, required: int):
        if required <= len(self._data):
            return
        if not self.growable:
            raise ArenaCapacityError(
                f"Arena exhausted: need {required} bytes, reserved {len(self._data)}"
            )
        new_capacity = max(len(self._data), 1024)
        while new_capacity < required:
            new_capacity *= 2
        logger.debug("Growing arena from %d to %d bytes", len(self._data), new_capacity)
        self._data.extend(bytes(new_capacity - len(self._data)))

    def append(self, data: bytes, element_stride: int = 0) -> Tuple[int, int]:
        """Write bytes at the cursor.

        Args:
            data: Raw bytes to store
            element_stride: Size of one element, used to reject truncated data

        Returns:
            (byte_offset, byte_length) of the written range

        Raises:
            ValueError: If data is not a whole number of elements
            ArenaCapacityError: If the arena is full and cannot grow
        """
        byte_length = len(data)
        if element_stride > 0 and byte_length % element_stride != 0:
            raise ValueError(
                f"Data length {byte_length} is not a multiple of element stride {element_stride}"
            )

        byte_offset = self._cursor + padding_for(self._cursor, self.alignment)
        self._ensure_capacity(byte_offset + byte_length)

        # alignment gap
        self._data[self._cursor:byte_offset] = bytes(byte_offset - self._cursor)
        self._data[byte_offset:byte_offset + byte_length] = data
        self._cursor = byte_offset + byte_length

        logger.debug("Appended %d bytes at offset %d", byte_length, byte_offset)
        return byte_offset, byte_length

    @property
    def bin_bytes(self) -> bytes:
        """Copy of the occupied bytes; unaffected by later appends."""
        return bytes(self._data[:self._cursor])

    def padded_bytes(self, alignment: int = 4) -> bytes:
        """Occupied bytes zero-padded to the alignment boundary."""
        return self.bin_bytes + bytes(padding_for(self._cursor, alignment))

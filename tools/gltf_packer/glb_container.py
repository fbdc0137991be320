"""GLB binary container.

Layout (all integers little-endian uint32):
- Header (12 bytes): magic "glTF", version 2, total length
- JSON chunk: length, type "JSON", UTF-8 text padded with spaces to 4 bytes
- BIN chunk: length, type "BIN\\0", payload padded with zeros to 4 bytes
"""
import struct

from arena_buffer import padding_for

GLB_MAGIC = b"glTF"
GLB_VERSION = 2
HEADER_SIZE = 12
CHUNK_TYPE_JSON = 0x4E4F534A  # "JSON"
CHUNK_TYPE_BIN = 0x004E4942   # "BIN\0"


def _chunk(chunk_type: int, payload: bytes, pad_byte: bytes) -> bytes:
    payload = payload + pad_byte * padding_for(len(payload))
    return struct.pack("<II", len(payload), chunk_type) + payload


def build_glb(json_text: str, bin_data: bytes) -> bytes:
    """Assemble a GLB container from JSON text and buffer bytes.

    Args:
        json_text: Serialized glTF document
        bin_data: Contents of buffer 0

    Returns:
        Complete GLB file contents
    """
    json_chunk = _chunk(CHUNK_TYPE_JSON, json_text.encode("utf-8"), b" ")
    bin_chunk = _chunk(CHUNK_TYPE_BIN, bytes(bin_data), b"\x00")

    total_length = HEADER_SIZE + len(json_chunk) + len(bin_chunk)
    header = GLB_MAGIC + struct.pack("<II", GLB_VERSION, total_length)
    return header + json_chunk + bin_chunk

"""Type definitions shared by the glTF packer."""
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional

import numpy as np

# glTF componentType codes
BYTE = 5120
UNSIGNED_BYTE = 5121
SHORT = 5122
UNSIGNED_SHORT = 5123
UNSIGNED_INT = 5125
FLOAT = 5126

# Returned instead of an index when there was nothing to pack
NO_INDEX = -1

DEFAULT_RESERVED = 50 * 1024 * 1024


class BufferTarget(IntEnum):
    """Usage hint stored on a bufferView."""
    NONE = 0
    ARRAY_BUFFER = 34962          # vertex attributes
    ELEMENT_ARRAY_BUFFER = 34963  # triangle indices


@dataclass(frozen=True)
class ElementFormat:
    """How one element of a packed array is described in glTF."""

    component_type: int
    accessor_type: str
    dtype: np.dtype
    components: int

    @property
    def element_size(self) -> int:
        return self.dtype.itemsize * self.components

    @property
    def element_shape(self) -> tuple:
        if self.accessor_type == "SCALAR":
            return ()
        if self.accessor_type.startswith("MAT"):
            side = int(self.accessor_type[3:])
            return (side, side)
        return (self.components,)


class ElementKind(Enum):
    """Supported element shapes."""
    FLOAT_SCALAR = ElementFormat(FLOAT, "SCALAR", np.dtype("<f4"), 1)
    VEC2 = ElementFormat(FLOAT, "VEC2", np.dtype("<f4"), 2)
    VEC3 = ElementFormat(FLOAT, "VEC3", np.dtype("<f4"), 3)
    VEC4 = ElementFormat(FLOAT, "VEC4", np.dtype("<f4"), 4)
    MAT4 = ElementFormat(FLOAT, "MAT4", np.dtype("<f4"), 16)
    UBYTE = ElementFormat(UNSIGNED_BYTE, "SCALAR", np.dtype("<u1"), 1)
    USHORT = ElementFormat(UNSIGNED_SHORT, "SCALAR", np.dtype("<u2"), 1)
    UINT = ElementFormat(UNSIGNED_INT, "SCALAR", np.dtype("<u4"), 1)
    UBYTE4 = ElementFormat(UNSIGNED_BYTE, "VEC4", np.dtype("<u1"), 4)
    USHORT4 = ElementFormat(UNSIGNED_SHORT, "VEC4", np.dtype("<u2"), 4)

    @property
    def format(self) -> ElementFormat:
        return self.value


# (dtype string without byte order, element shape) -> kind
_KIND_LOOKUP = {
    (kind.value.dtype.str[1:], kind.value.element_shape): kind
    for kind in ElementKind
}


def element_format(kind: ElementKind) -> ElementFormat:
    """Get the glTF format of an element kind."""
    return kind.value


def infer_element_kind(array: np.ndarray) -> ElementKind:
    """Infer the element kind from an array's dtype and trailing shape.

    A 1D array holds scalars, an (N, k) array holds k-vectors and an
    (N, 4, 4) array holds 4x4 matrices.

    Raises:
        ValueError: If the dtype/shape combination is not supported
    """
    array = np.asarray(array)
    key = (array.dtype.str[1:], tuple(array.shape[1:]))
    kind = _KIND_LOOKUP.get(key)
    if kind is None:
        raise ValueError(
            f"Unsupported element type: dtype={array.dtype}, shape={array.shape}"
        )
    return kind


def component_dtype(component_type: int) -> np.dtype:
    """Get the little-endian numpy dtype of a glTF componentType."""
    dtypes = {
        BYTE: "<i1",
        UNSIGNED_BYTE: "<u1",
        SHORT: "<i2",
        UNSIGNED_SHORT: "<u2",
        UNSIGNED_INT: "<u4",
        FLOAT: "<f4",
    }
    if component_type not in dtypes:
        raise ValueError(f"Unknown componentType: {component_type}")
    return np.dtype(dtypes[component_type])


# accessor type -> number of components
ACCESSOR_COMPONENTS = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT2": 4,
    "MAT3": 9,
    "MAT4": 16,
}


@dataclass
class ExportSettings:
    """Settings for one export session."""

    reserved: int = DEFAULT_RESERVED
    alignment: int = 4
    growable: bool = True
    indent: int = 2
    generator: str = "glTF Packer"


@dataclass
class BufferPayload:
    """Binary payload to persist next to a linked .gltf file."""

    uri: Optional[str]
    data: bytes

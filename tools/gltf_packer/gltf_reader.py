"""Decodes accessors of a parsed glTF document back into numpy arrays."""
from typing import Optional

import numpy as np

from gltf_types import ACCESSOR_COMPONENTS, UNSIGNED_INT, component_dtype


def _element_shape(accessor_type: str, components: int) -> tuple:
    if accessor_type == "SCALAR":
        return ()
    if accessor_type.startswith("MAT"):
        side = int(accessor_type[3:])
        return (side, side)
    return (components,)


def _read_view(document: dict, bin_data: bytes, view_index: int, byte_offset: int,
               dtype: np.dtype, components: int, count: int) -> np.ndarray:
    """Read count elements of components values each from a bufferView."""
    view = document["bufferViews"][view_index]
    view_start = view.get("byteOffset") or 0
    start = view_start + byte_offset
    element_size = dtype.itemsize * components
    stride = view.get("byteStride") or element_size

    if count == 0:
        return np.zeros((0, components), dtype=dtype)
    if start + stride * (count - 1) + element_size > view_start + view["byteLength"]:
        raise ValueError(f"Accessor exceeds bufferView {view_index}")

    if stride == element_size:
        data = np.frombuffer(bin_data, dtype=dtype, count=components * count, offset=start)
        return data.reshape(count, components)

    # interleaved: pick each element out of its stride-sized row
    rows = np.frombuffer(bin_data, dtype=np.uint8, count=stride * (count - 1) + element_size, offset=start)
    out = np.empty((count, element_size), dtype=np.uint8)
    for i in range(count):
        out[i] = rows[i * stride:i * stride + element_size]
    return out.view(dtype).reshape(count, components)


def read_accessor(document: dict, bin_data: bytes, index: int) -> np.ndarray:
    """Decode an accessor into an array.

    Dense accessors are read from their bufferView. Sparse accessors start
    from their bufferView (or zeros when there is none) and are overridden
    at the sparse indices.

    Args:
        document: Parsed glTF JSON
        bin_data: Contents of buffer 0
        index: Accessor index

    Returns:
        Array of shape (count,), (count, n) or (count, n, n)
    """
    accessor = document["accessors"][index]
    dtype = component_dtype(accessor["componentType"])
    accessor_type = accessor["type"]
    components = ACCESSOR_COMPONENTS[accessor_type]
    count = accessor["count"]

    view_index: Optional[int] = accessor.get("bufferView")
    if view_index is None:
        values = np.zeros((count, components), dtype=dtype)
    else:
        values = _read_view(
            document, bin_data, view_index, accessor.get("byteOffset") or 0,
            dtype, components, count,
        ).copy()

    sparse = accessor.get("sparse")
    if sparse:
        sparse_count = sparse["count"]
        indices_info = sparse["indices"]
        indices = _read_view(
            document, bin_data, indices_info["bufferView"],
            indices_info.get("byteOffset") or 0,
            component_dtype(indices_info.get("componentType", UNSIGNED_INT)), 1, sparse_count,
        ).reshape(sparse_count)
        values_info = sparse["values"]
        overrides = _read_view(
            document, bin_data, values_info["bufferView"],
            values_info.get("byteOffset") or 0,
            dtype, components, sparse_count,
        )
        if len(indices) and int(indices.max()) >= count:
            raise ValueError(f"Sparse index out of range in accessor {index}")
        values[indices.astype(np.int64)] = overrides

    return values.reshape((count,) + _element_shape(accessor_type, components))

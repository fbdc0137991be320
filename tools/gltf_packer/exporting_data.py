"""Export session: packs typed arrays into one buffer and writes glTF/GLB."""
import json
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np
from pygltflib import (
    GLTF2,
    Accessor,
    AccessorSparseIndices,
    AccessorSparseValues,
    Asset,
    Buffer,
    BufferView,
    Sparse,
)

from arena_buffer import ArenaBuffer
from extension_pruner import prune_unused_extensions
from glb_container import build_glb
from gltf_types import (
    NO_INDEX,
    UNSIGNED_INT,
    BufferPayload,
    BufferTarget,
    ElementKind,
    ExportSettings,
    infer_element_kind,
)
from packer_logging import get_logger

logger = get_logger(__name__)


def _prepare(array, kind: Optional[ElementKind]) -> Tuple[np.ndarray, ElementKind]:
    """Convert array to the little-endian layout of its element kind."""
    if kind is None:
        array = np.asarray(array)
        kind = infer_element_kind(array)
    fmt = kind.format
    data = np.ascontiguousarray(array, dtype=fmt.dtype)
    if data.size % fmt.components != 0:
        raise ValueError(
            f"Array of {data.size} values does not hold whole {kind.name} elements"
        )
    return data.reshape((-1,) + fmt.element_shape), kind


def _bounds(data: np.ndarray) -> Tuple[List[float], List[float]]:
    """Per-component min/max of a packed array."""
    flat = data.reshape(len(data), -1)
    return flat.min(axis=0).tolist(), flat.max(axis=0).tolist()


class ExportingGltfData:
    """One export session: a glTF document and the arena behind buffer 0.

    Arrays are appended through the extend_* methods, which return stable
    bufferView/accessor indices assigned in call order. Empty arrays are
    not packed and yield NO_INDEX.
    """

    def __init__(self, settings: Optional[ExportSettings] = None):
        self.settings = settings or ExportSettings()
        self.arena = ArenaBuffer(
            reserved=self.settings.reserved,
            alignment=self.settings.alignment,
            growable=self.settings.growable,
        )
        self.gltf = GLTF2()
        self.gltf.asset = Asset(version="2.0", generator=self.settings.generator)
        # glb body and the external .bin of a .gltf share this buffer
        self.gltf.buffers = [Buffer(byteLength=0)]

    @property
    def bin_bytes(self) -> bytes:
        """Snapshot of the packed bytes."""
        return self.arena.bin_bytes

    def extend_buffer_and_get_view_index(
        self,
        array,
        target: BufferTarget = BufferTarget.NONE,
        kind: Optional[ElementKind] = None,
    ) -> int:
        """Pack an array and add a bufferView over it.

        Args:
            array: Elements to pack (numpy array or nested sequence)
            target: bufferView target hint
            kind: Element kind, inferred from the array when omitted

        Returns:
            Index of the new bufferView, or NO_INDEX for an empty array
        """
        if len(array) == 0:
            return NO_INDEX
        data, kind = _prepare(array, kind)
        return self._add_view(data, kind, target)

    def _add_view(self, data: np.ndarray, kind: ElementKind, target: BufferTarget) -> int:
        element_size = kind.format.element_size
        byte_offset, byte_length = self.arena.append(data.tobytes(), element_size)

        view = BufferView(
            buffer=0,
            byteOffset=byte_offset,
            byteLength=byte_length,
        )
        if target:
            view.target = int(target)
        if target == BufferTarget.ARRAY_BUFFER and element_size % 4 == 0:
            view.byteStride = element_size

        view_index = len(self.gltf.bufferViews)
        self.gltf.bufferViews.append(view)
        self.gltf.buffers[0].byteLength = self.arena.cursor
        logger.debug("bufferView %d: offset=%d length=%d", view_index, byte_offset, byte_length)
        return view_index

    def extend_buffer_and_get_accessor_index(
        self,
        array,
        target: BufferTarget = BufferTarget.NONE,
        kind: Optional[ElementKind] = None,
        min_max: bool = False,
    ) -> int:
        """Pack an array and add an accessor over a new bufferView.

        Args:
            array: Elements to pack
            target: bufferView target hint
            kind: Element kind, inferred from the array when omitted
            min_max: Record per-component bounds (required for POSITION)

        Returns:
            Index of the new accessor, or NO_INDEX for an empty array
        """
        if len(array) == 0:
            return NO_INDEX
        data, kind = _prepare(array, kind)
        view_index = self._add_view(data, kind, target)

        # index buffer's byteStride is unnecessary
        self.gltf.bufferViews[view_index].byteStride = None

        fmt = kind.format
        accessor = Accessor(
            bufferView=view_index,
            byteOffset=0,
            componentType=fmt.component_type,
            type=fmt.accessor_type,
            count=len(data),
        )
        if min_max:
            accessor.min, accessor.max = _bounds(data)

        accessor_index = len(self.gltf.accessors)
        self.gltf.accessors.append(accessor)
        return accessor_index

    def extend_sparse_buffer_and_get_accessor_index(
        self,
        accessor_count: int,
        sparse_values,
        sparse_indices,
        sparse_indices_view_index: int,
        target: BufferTarget = BufferTarget.NONE,
        kind: Optional[ElementKind] = None,
    ) -> int:
        """Add a sparse accessor over zero-filled base data.

        Only sparse_values is packed here. sparse_indices must already be
        packed as uint32 into the view sparse_indices_view_index, so one
        index view can serve several value sets with the same pattern.

        Args:
            accessor_count: Logical element count of the accessor
            sparse_values: Values of the overridden elements
            sparse_indices: Increasing element indices matching sparse_values
            sparse_indices_view_index: bufferView holding sparse_indices
            target: bufferView target hint for the values
            kind: Element kind of the values, inferred when omitted

        Returns:
            Index of the new accessor, or NO_INDEX for empty sparse_values

        Raises:
            ValueError: If indices and values differ in length
        """
        if len(sparse_values) == 0:
            return NO_INDEX
        data, kind = _prepare(sparse_values, kind)
        if len(sparse_indices) != len(data):
            raise ValueError(
                f"Sparse indices ({len(sparse_indices)}) and values "
                f"({len(data)}) differ in length"
            )

        values_view_index = self._add_view(data, kind, target)

        fmt = kind.format
        accessor_index = len(self.gltf.accessors)
        self.gltf.accessors.append(
            Accessor(
                bufferView=None,
                byteOffset=None,
                componentType=fmt.component_type,
                type=fmt.accessor_type,
                count=accessor_count,
                sparse=Sparse(
                    count=len(sparse_indices),
                    indices=AccessorSparseIndices(
                        bufferView=sparse_indices_view_index,
                        componentType=UNSIGNED_INT,
                    ),
                    values=AccessorSparseValues(
                        bufferView=values_view_index,
                    ),
                ),
            )
        )
        return accessor_index

    def add_zero_accessor(self, accessor_count: int, kind: ElementKind) -> int:
        """Add an accessor with neither bufferView nor sparse, read as all zeros."""
        fmt = kind.format
        accessor_index = len(self.gltf.accessors)
        self.gltf.accessors.append(
            Accessor(
                bufferView=None,
                byteOffset=None,
                componentType=fmt.component_type,
                type=fmt.accessor_type,
                count=accessor_count,
            )
        )
        return accessor_index

    def add_extension(self, name: str, data: dict):
        """Attach root extension data and declare it in extensionsUsed."""
        self.gltf.extensions[name] = data
        self.use_extension(name)

    def use_extension(self, name: str):
        if name not in self.gltf.extensionsUsed:
            self.gltf.extensionsUsed.append(name)

    def to_json_text(self) -> str:
        """Serialize the document, dropping extensions not in extensionsUsed."""
        self.gltf.buffers[0].byteLength = self.arena.cursor
        tree = json.loads(self.gltf.to_json())
        return prune_unused_extensions(
            tree, self.gltf.extensionsUsed, indent=self.settings.indent
        )

    def to_glb_bytes(self) -> bytes:
        """Build a single-file GLB container."""
        self.gltf.buffers[0].uri = None
        json_text = self.to_json_text()
        return build_glb(json_text, self.bin_bytes)

    def to_gltf(self, gltf_path: Union[str, Path]) -> Tuple[str, List[BufferPayload]]:
        """Build linked-file output.

        The buffer uri becomes "<stem of gltf_path>.bin".

        Returns:
            (json_text, payloads) where each payload is written next to the
            .gltf file under its uri

        Raises:
            NotImplementedError: If the document holds more than one buffer
        """
        if len(self.gltf.buffers) != 1:
            raise NotImplementedError(
                f"Linked export supports exactly one buffer, found {len(self.gltf.buffers)}"
            )
        self.gltf.buffers[0].uri = f"{Path(gltf_path).stem}.bin"

        json_text = self.to_json_text()
        payloads = [BufferPayload(uri=self.gltf.buffers[0].uri, data=self.bin_bytes)]
        return json_text, payloads

    def write_glb(self, output_path: Union[str, Path]):
        """Write a .glb file."""
        data = self.to_glb_bytes()
        Path(output_path).write_bytes(data)
        logger.info("Wrote %s (%d bytes)", output_path, len(data))

    def write_gltf(self, output_path: Union[str, Path]):
        """Write a .gltf file and its .bin payload in the same directory."""
        output_path = Path(output_path)
        json_text, payloads = self.to_gltf(output_path)
        output_path.write_text(json_text, encoding="utf-8")
        for payload in payloads:
            (output_path.parent / payload.uri).write_bytes(payload.data)
        logger.info("Wrote %s with %d buffer file(s)", output_path, len(payloads))

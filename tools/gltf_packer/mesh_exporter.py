"""Mesh export on top of an ExportingGltfData session.

Turns plain mesh descriptions (positions, indices, optional skin and morph
targets) into glTF meshes, nodes and skins. All binary data goes through the
session's extend_* methods.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
from pygltflib import Mesh, Node, Primitive, Scene, Skin

from exporting_data import ExportingGltfData
from gltf_types import NO_INDEX, BufferTarget, ElementKind, ExportSettings
from packer_logging import get_logger

logger = get_logger(__name__)

TRIANGLES = 4


@dataclass
class MorphTarget:
    """Per-vertex position (and optional normal) offsets of a blend shape."""
    name: str
    position_deltas: np.ndarray
    normal_deltas: Optional[np.ndarray] = None


@dataclass
class Joint:
    """A skeleton joint."""
    name: str
    parent: int = -1  # index into the joint list, -1 for root joints
    translation: Optional[List[float]] = None
    inverse_bind_matrix: Optional[List[float]] = None  # 16 floats, column-major

    @property
    def is_root(self) -> bool:
        return self.parent == -1


@dataclass
class SkinData:
    """Skeleton plus per-vertex influences."""
    joints: List[Joint]
    vertex_joints: np.ndarray   # (N, 4) joint indices
    vertex_weights: np.ndarray  # (N, 4) weights


@dataclass
class MeshData:
    """Geometry of one mesh."""
    name: str
    positions: np.ndarray
    indices: Optional[np.ndarray] = None
    normals: Optional[np.ndarray] = None
    uvs: Optional[np.ndarray] = None
    morph_targets: List[MorphTarget] = field(default_factory=list)
    skin: Optional[SkinData] = None

    @property
    def vertex_count(self) -> int:
        return len(self.positions)


def sparsify(deltas: np.ndarray, tolerance: float = 0.0) -> Tuple[np.ndarray, np.ndarray]:
    """Split per-vertex deltas into (indices, values) of the non-zero rows.

    Returns:
        uint32 indices in increasing order and the matching rows
    """
    deltas = np.asarray(deltas, dtype=np.float32)
    if deltas.ndim == 1:
        deltas = deltas[:, None]
    mask = np.any(np.abs(deltas) > tolerance, axis=1)
    indices = np.nonzero(mask)[0].astype(np.uint32)
    return indices, deltas[indices]


def _identity_matrix() -> List[float]:
    """Create a 4x4 identity matrix as a flat list."""
    return [
        1.0, 0.0, 0.0, 0.0,
        0.0, 1.0, 0.0, 0.0,
        0.0, 0.0, 1.0, 0.0,
        0.0, 0.0, 0.0, 1.0,
    ]


class MeshExporter:
    """Builds a glTF scene from MeshData objects."""

    def __init__(self, settings: Optional[ExportSettings] = None):
        self.data = ExportingGltfData(settings)
        self.gltf = self.data.gltf
        self.gltf.scenes = [Scene(nodes=[])]
        self.gltf.scene = 0
        # sparsity pattern bytes -> bufferView holding those indices
        self._sparse_index_views: Dict[bytes, int] = {}

    def _sparse_indices_view(self, indices: np.ndarray) -> int:
        """Pack sparse indices once per distinct pattern."""
        key = indices.tobytes()
        view_index = self._sparse_index_views.get(key)
        if view_index is None:
            view_index = self.data.extend_buffer_and_get_view_index(indices, kind=ElementKind.UINT)
            self._sparse_index_views[key] = view_index
        return view_index

    def _sparse_accessor(self, count: int, deltas: np.ndarray) -> int:
        indices, values = sparsify(deltas)
        if len(indices) == 0:
            return self.data.add_zero_accessor(count, ElementKind.VEC3)
        view_index = self._sparse_indices_view(indices)
        return self.data.extend_sparse_buffer_and_get_accessor_index(
            count, values, indices, view_index, kind=ElementKind.VEC3,
        )

    def _pack_indices(self, indices: np.ndarray, vertex_count: int) -> int:
        indices = np.asarray(indices).reshape(-1)
        if len(indices) and int(indices.max()) >= vertex_count:
            raise ValueError(
                f"Index {int(indices.max())} out of range for {vertex_count} vertices"
            )
        kind = ElementKind.USHORT if vertex_count <= 0xFFFF else ElementKind.UINT
        return self.data.extend_buffer_and_get_accessor_index(
            indices, BufferTarget.ELEMENT_ARRAY_BUFFER, kind=kind,
        )

    def add_mesh(self, mesh: MeshData) -> int:
        """Pack a mesh and add a node for it to the scene.

        Args:
            mesh: Geometry to export

        Returns:
            Index of the new glTF mesh

        Raises:
            ValueError: If the mesh has no vertices or attribute lengths disagree
        """
        count = mesh.vertex_count
        if count == 0:
            raise ValueError(f"No vertex data in mesh {mesh.name!r}")

        attributes = {
            "POSITION": self.data.extend_buffer_and_get_accessor_index(
                mesh.positions, BufferTarget.ARRAY_BUFFER, kind=ElementKind.VEC3, min_max=True,
            )
        }
        for name, values, kind in (
            ("NORMAL", mesh.normals, ElementKind.VEC3),
            ("TEXCOORD_0", mesh.uvs, ElementKind.VEC2),
        ):
            if values is None:
                continue
            if len(values) != count:
                raise ValueError(f"{name} has {len(values)} entries, expected {count}")
            index = self.data.extend_buffer_and_get_accessor_index(values, BufferTarget.ARRAY_BUFFER, kind=kind)
            if index != NO_INDEX:
                attributes[name] = index

        if mesh.skin is not None:
            attributes["JOINTS_0"] = self.data.extend_buffer_and_get_accessor_index(
                mesh.skin.vertex_joints, BufferTarget.ARRAY_BUFFER, kind=ElementKind.USHORT4,
            )
            attributes["WEIGHTS_0"] = self.data.extend_buffer_and_get_accessor_index(
                mesh.skin.vertex_weights, BufferTarget.ARRAY_BUFFER, kind=ElementKind.VEC4,
            )

        primitive = Primitive(attributes=attributes, mode=TRIANGLES)
        if mesh.indices is not None:
            index = self._pack_indices(mesh.indices, count)
            if index != NO_INDEX:
                primitive.indices = index

        # Morph targets only store the vertices that actually move
        target_names = []
        targets = []
        for morph in mesh.morph_targets:
            if len(morph.position_deltas) != count:
                raise ValueError(f"Morph target {morph.name!r} does not match vertex count")
            if morph.normal_deltas is not None and len(morph.normal_deltas) != count:
                raise ValueError(f"Morph target {morph.name!r} normals do not match vertex count")
            target = {"POSITION": self._sparse_accessor(count, morph.position_deltas)}
            if morph.normal_deltas is not None:
                target["NORMAL"] = self._sparse_accessor(count, morph.normal_deltas)
            targets.append(target)
            target_names.append(morph.name)
        if targets:
            primitive.targets = targets

        gltf_mesh = Mesh(name=mesh.name, primitives=[primitive])
        if targets:
            gltf_mesh.weights = [0.0] * len(targets)
            gltf_mesh.extras = {"targetNames": target_names}

        mesh_index = len(self.gltf.meshes)
        self.gltf.meshes.append(gltf_mesh)

        node_index = len(self.gltf.nodes)
        self.gltf.nodes.append(Node(mesh=mesh_index, name=mesh.name))
        self.gltf.scenes[0].nodes.append(node_index)

        if mesh.skin is not None:
            self.gltf.nodes[node_index].skin = self._add_skin(mesh.skin)

        logger.debug("Mesh %s: %d vertices, %d morph targets", mesh.name, count, len(targets))
        return mesh_index

    def _add_skin(self, skin: SkinData) -> int:
        """Create joint nodes and a skin; returns the skin index."""
        joints = skin.joints
        if not joints:
            raise ValueError("Skin has no joints")

        joint_start_index = len(self.gltf.nodes)

        # Build parent-to-children mapping
        children_map: Dict[int, List[int]] = {}
        root_indices = []
        for idx, joint in enumerate(joints):
            if joint.is_root:
                root_indices.append(idx)
            elif 0 <= joint.parent < len(joints):
                children_map.setdefault(joint.parent, []).append(idx)
            else:
                raise ValueError(f"Joint {joint.name!r} has invalid parent {joint.parent}")

        for idx, joint in enumerate(joints):
            child_node_indices = [i + joint_start_index for i in children_map.get(idx, [])]
            self.gltf.nodes.append(
                Node(
                    name=joint.name,
                    children=child_node_indices if child_node_indices else None,
                    translation=joint.translation,
                )
            )

        matrices = np.array(
            [joint.inverse_bind_matrix or _identity_matrix() for joint in joints],
            dtype=np.float32,
        )
        ibm_accessor_index = self.data.extend_buffer_and_get_accessor_index(
            matrices, kind=ElementKind.MAT4,
        )

        # Find skeleton root (first root joint's node index)
        skeleton_root = joint_start_index + root_indices[0] if root_indices else joint_start_index

        skin_index = len(self.gltf.skins)
        self.gltf.skins.append(
            Skin(
                joints=[i + joint_start_index for i in range(len(joints))],
                skeleton=skeleton_root,
                inverseBindMatrices=ibm_accessor_index,
            )
        )
        self.gltf.scenes[0].nodes.extend(i + joint_start_index for i in root_indices)
        return skin_index

    def add_extension(self, name: str, data: dict):
        """Attach root extension data and declare it as used."""
        self.data.add_extension(name, data)

    def export(self, output_path: Union[str, Path]):
        """Write .glb, or .gltf with a sibling .bin, chosen by the suffix.

        Raises:
            ValueError: If nothing was added or the suffix is unknown
        """
        if not self.gltf.meshes:
            raise ValueError("No mesh data to export")

        output_path = Path(output_path)
        suffix = output_path.suffix.lower()
        if suffix == ".glb":
            self.data.write_glb(output_path)
        elif suffix == ".gltf":
            self.data.write_gltf(output_path)
        else:
            raise ValueError(f"Unknown output format: {output_path.suffix}")

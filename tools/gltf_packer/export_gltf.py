#!/usr/bin/env python3
"""Convert JSON mesh descriptions to glTF format.

Usage:
    python export_gltf.py <input> [-o <output>] [--format glb|gltf] [--reserve BYTES]

Examples:
    # Convert a single file to .glb
    python export_gltf.py avatar.json -o ./output

    # Convert every .json file in a directory to .gltf + .bin
    python export_gltf.py ./meshes/ -o ./output --format gltf

Input files hold either one mesh or a "meshes" list:

    {
      "meshes": [{
        "name": "face",
        "positions": [[0, 0, 0], [1, 0, 0], [0, 1, 0]],
        "indices": [0, 1, 2],
        "morph_targets": [{"name": "blink", "positions": [[0, 0, 0], [0, 0.1, 0], [0, 0, 0]]}]
      }],
      "extensions": {"EXT_example": {"value": 1}}
    }
"""
import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

import numpy as np

from gltf_types import DEFAULT_RESERVED, ExportSettings
from packer_logging import get_logger, setup_logging
from mesh_exporter import Joint, MeshData, MeshExporter, MorphTarget, SkinData

logger = get_logger(__name__)


def _optional_array(data: dict, key: str, dtype) -> Optional[np.ndarray]:
    if key not in data:
        return None
    return np.asarray(data[key], dtype=dtype)


def mesh_from_dict(data: dict, default_name: str = "mesh") -> MeshData:
    """Build MeshData from a parsed JSON mesh description.

    Raises:
        ValueError: If positions are missing
    """
    if not data.get("positions"):
        raise ValueError("No mesh data found in input")

    morph_targets = [
        MorphTarget(
            name=target.get("name", f"target_{i}"),
            position_deltas=np.asarray(target["positions"], dtype=np.float32),
            normal_deltas=_optional_array(target, "normals", np.float32),
        )
        for i, target in enumerate(data.get("morph_targets", []))
    ]

    skin = None
    if "skin" in data:
        skin_data = data["skin"]
        skin = SkinData(
            joints=[
                Joint(
                    name=joint.get("name", f"joint_{i}"),
                    parent=joint.get("parent", -1),
                    translation=joint.get("translation"),
                    inverse_bind_matrix=joint.get("inverse_bind_matrix"),
                )
                for i, joint in enumerate(skin_data["joints"])
            ],
            vertex_joints=np.asarray(skin_data["vertex_joints"], dtype=np.uint16),
            vertex_weights=np.asarray(skin_data["vertex_weights"], dtype=np.float32),
        )

    return MeshData(
        name=data.get("name", default_name),
        positions=np.asarray(data["positions"], dtype=np.float32),
        indices=_optional_array(data, "indices", np.uint32),
        normals=_optional_array(data, "normals", np.float32),
        uvs=_optional_array(data, "uvs", np.float32),
        morph_targets=morph_targets,
        skin=skin,
    )


def convert_file(input_file: Path, output_file: Path, settings: ExportSettings):
    """Convert one JSON mesh description to a .glb or .gltf file."""
    with open(input_file, "r", encoding="utf-8") as f:
        document = json.load(f)

    mesh_dicts: List[dict] = document.get("meshes", [document])

    exporter = MeshExporter(settings)
    for i, mesh_dict in enumerate(mesh_dicts):
        exporter.add_mesh(mesh_from_dict(mesh_dict, default_name=f"{input_file.stem}_{i}"))
    for name, extension in document.get("extensions", {}).items():
        exporter.add_extension(name, extension)
    exporter.export(output_file)


def main():
    parser = argparse.ArgumentParser(
        description="Convert JSON mesh descriptions to glTF format"
    )
    parser.add_argument(
        "input",
        help="Input JSON file or directory containing JSON files",
    )
    parser.add_argument(
        "-o", "--output",
        default="./output",
        help="Output directory for glTF files (default: ./output)",
    )
    parser.add_argument(
        "--format",
        choices=["glb", "gltf"],
        default="glb",
        help="Single .glb file or .gltf with a .bin file (default: glb)",
    )
    parser.add_argument(
        "--reserve",
        type=int,
        default=DEFAULT_RESERVED,
        help=f"Bytes reserved for the binary buffer (default: {DEFAULT_RESERVED})",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )

    args = parser.parse_args()

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    # Ensure output directory exists
    os.makedirs(args.output, exist_ok=True)

    # Collect input files
    input_path = Path(args.input)
    if input_path.is_file():
        files = [input_path]
    elif input_path.is_dir():
        files = sorted(input_path.glob("**/*.json"))
        if not files:
            print(f"No JSON files found in {input_path}", file=sys.stderr)
            return 1
    else:
        print(f"Input not found: {args.input}", file=sys.stderr)
        return 1

    settings = ExportSettings(reserved=args.reserve)

    success_count = 0
    fail_count = 0

    for input_file in files:
        output_file = Path(args.output) / f"{input_file.stem}.{args.format}"

        try:
            convert_file(input_file, output_file, settings)
            if args.verbose:
                print(f"Exported: {input_file} -> {output_file}")
            success_count += 1
        except Exception as e:
            logger.debug("Conversion of %s failed", input_file, exc_info=True)
            print(f"Failed: {input_file} - {e}", file=sys.stderr)
            fail_count += 1

    # Summary
    total = success_count + fail_count
    print(f"\nExported {success_count}/{total} files to {args.output}")

    return 0 if fail_count == 0 else 1


if __name__ == "__main__":
    sys.exit(main())

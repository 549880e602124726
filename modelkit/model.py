"""A loaded model: node hierarchy, materials, meshes and animations."""

from __future__ import annotations

import os
from collections.abc import Callable, Sequence
from itertools import pairwise
from pathlib import Path

import numpy as np
from PIL import Image

from .gltf_importer import GltfImporter
from .model_types import Animation, Material, Mesh, Node, NodePose
from .serialization import ModelData, ModelFormatError, read_model, write_model
from .xmath import compose, identity, lerp, slerp

_GLTF_EXTENSIONS = (".gltf", ".glb")
_CACHE_EXTENSION = ".cereal"
_DUMMY_BASE_COLOR = (0xFF, 0xFF, 0xFF, 0xFF)
_DUMMY_NORMAL_COLOR = (0x7F, 0x7F, 0xFF, 0xFF)


def _at(items: Sequence, index: int, kind: str):
    if not 0 <= index < len(items):
        raise IndexError(f"{kind} index {index} is out of range")
    return items[index]


def _dummy_texture(color: tuple[int, int, int, int]) -> Image.Image:
    return Image.new("RGBA", (1, 1), color)


def _load_texture(path: Path) -> Image.Image:
    with Image.open(path) as image:
        return image.convert("RGBA")


def _interpolate(keys: Sequence, time: float, blend: Callable, current):
    """Blend between the keys whose interval holds ``time``; the last match wins."""
    for key0, key1 in pairwise(keys):
        if key0.seconds <= time <= key1.seconds:
            span = key1.seconds - key0.seconds
            rate = (time - key0.seconds) / span if span != 0.0 else 0.0
            current = blend(key0.value, key1.value, rate)
    return current


class Model:
    """A model read from a cache file or from a glTF file."""

    def __init__(self, filename: str | os.PathLike, sample_rate: float = 60.0) -> None:
        filepath = Path(filename)
        directory = filepath.parent
        cache = filepath.with_suffix(_CACHE_EXTENSION)

        if cache.exists():
            data = read_model(cache)
        elif filepath.suffix in _GLTF_EXTENSIONS:
            importer = GltfImporter(filepath)
            materials = importer.load_materials()
            nodes = importer.load_nodes()
            data = ModelData(
                nodes=nodes,
                materials=materials,
                meshes=importer.load_meshes(nodes),
                animations=importer.load_animations(nodes, sample_rate),
            )
        else:
            raise ModelFormatError(f"found not model file: {filepath}")

        self.nodes: list[Node] = data.nodes
        self.materials: list[Material] = data.materials
        self.meshes: list[Mesh] = data.meshes
        self.animations: list[Animation] = data.animations

        self._build_materials(directory)
        self._link_nodes()
        self._link_meshes()
        self.update_transform(identity())

    def _build_materials(self, directory: Path) -> None:
        for material in self.materials:
            if material.base_map is None:
                if material.base_texture_file_name:
                    material.base_map = _load_texture(directory / material.base_texture_file_name)
                else:
                    material.base_map = _dummy_texture(_DUMMY_BASE_COLOR)
            if material.normal_map is None:
                if material.normal_texture_file_name:
                    material.normal_map = _load_texture(
                        directory / material.normal_texture_file_name
                    )
                else:
                    material.normal_map = _dummy_texture(_DUMMY_NORMAL_COLOR)

    def _link_nodes(self) -> None:
        for node in self.nodes:
            if node.parent_index >= 0:
                node.parent = _at(self.nodes, node.parent_index, "parent node")
                node.parent.children.append(node)
            else:
                node.parent = None

    def _link_meshes(self) -> None:
        for mesh in self.meshes:
            mesh.material = _at(self.materials, mesh.material_index, "material")
            mesh.node = _at(self.nodes, mesh.node_index, "node")
            for bone in mesh.bones:
                bone.node = _at(self.nodes, bone.node_index, "bone node")

    def append_animations(self, filename: str | os.PathLike) -> None:
        """Add the animations of another glTF file that shares this model's nodes."""
        filepath = Path(filename)
        if filepath.suffix not in _GLTF_EXTENSIONS:
            raise ModelFormatError(f"found not model file: {filepath}")
        importer = GltfImporter(filepath)
        self.animations.extend(importer.load_animations(self.nodes))

    def animation_index(self, name: str) -> int:
        """Index of the first animation called ``name``, or -1."""
        return next((i for i, a in enumerate(self.animations) if a.name == name), -1)

    def node_index(self, name: str) -> int:
        """Index of the first node called ``name``, or -1."""
        return next((i for i, n in enumerate(self.nodes) if n.name == name), -1)

    def update_transform(self, world_transform) -> None:
        """Recompute local, global and world matrices of every node."""
        parent_world = np.asarray(world_transform, dtype=np.float64)
        for node in self.nodes:
            local = compose(node.scale, node.rotation, node.position)
            parent_global = node.parent.global_transform if node.parent is not None else identity()
            global_ = local @ parent_global
            node.local_transform = local
            node.global_transform = global_
            node.world_transform = global_ @ parent_world

    def compute_node_animation(
        self, animation_index: int, node_index: int, time: float, pose: NodePose | None = None
    ) -> NodePose:
        """Sample one node's tracks at ``time`` into ``pose`` and return it.

        Tracks whose keys do not span ``time`` leave that part of the pose unchanged.
        """
        if pose is None:
            pose = NodePose()
        animation = _at(self.animations, animation_index, "animation")
        node_anim = _at(animation.node_anims, node_index, "node")
        pose.position = _interpolate(node_anim.position_keyframes, time, lerp, pose.position)
        pose.rotation = _interpolate(node_anim.rotation_keyframes, time, slerp, pose.rotation)
        pose.scale = _interpolate(node_anim.scale_keyframes, time, lerp, pose.scale)
        return pose

    def compute_animation(
        self, animation_index: int, time: float, poses: list[NodePose] | None = None
    ) -> list[NodePose]:
        """Sample every node at ``time``; ``poses`` is resized to the node count."""
        if poses is None:
            poses = []
        del poses[len(self.nodes):]
        poses.extend(NodePose() for _ in range(len(self.nodes) - len(poses)))
        for node_index, pose in enumerate(poses):
            self.compute_node_animation(animation_index, node_index, time, pose)
        return poses

    def set_node_poses(self, poses: Sequence[NodePose]) -> None:
        """Copy one pose onto each node."""
        if len(poses) < len(self.nodes):
            raise IndexError("fewer poses than nodes")
        for node, pose in zip(self.nodes, poses):
            node.position = pose.position
            node.rotation = pose.rotation
            node.scale = pose.scale

    def node_poses(self) -> list[NodePose]:
        """Return the current local pose of every node."""
        return [NodePose(n.position, n.rotation, n.scale) for n in self.nodes]

    def save(self, path: str | os.PathLike) -> None:
        """Write the model's data to a cache file."""
        write_model(
            path,
            ModelData(
                nodes=self.nodes,
                materials=self.materials,
                meshes=self.meshes,
                animations=self.animations,
            ),
        )
"""Data types that make up a loaded model."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

import numpy as np

Float2 = tuple[float, float]
Float3 = tuple[float, float, float]
Float4 = tuple[float, float, float, float]
UInt4 = tuple[int, int, int, int]


def _identity() -> np.ndarray:
    return np.identity(4)


class AlphaMode(enum.IntEnum):
    """How a material's alpha channel is used."""

    OPAQUE = 0
    MASK = 1
    BLEND = 2


@dataclass(eq=False)
class Node:
    """A node of the scene hierarchy with its local pose and computed transforms.

    Nodes compare by their stored data, not by runtime links or transforms.
    """

    name: str = ""
    parent_index: int = -1
    position: Float3 = (0.0, 0.0, 0.0)
    rotation: Float4 = (0.0, 0.0, 0.0, 1.0)
    scale: Float3 = (1.0, 1.0, 1.0)
    local_transform: np.ndarray = field(default_factory=_identity, repr=False)
    global_transform: np.ndarray = field(default_factory=_identity, repr=False)
    world_transform: np.ndarray = field(default_factory=_identity, repr=False)
    parent: Node | None = field(default=None, repr=False)
    children: list[Node] = field(default_factory=list, repr=False)

    def _key(self):
        return (self.name, self.parent_index, self.position, self.rotation, self.scale)

    def __eq__(self, other):
        if not isinstance(other, Node):
            return NotImplemented
        return self._key() == other._key()

    __hash__ = None


@dataclass
class Material:
    """Surface parameters and texture file names; ``*_map`` hold loaded textures."""

    name: str = ""
    base_texture_file_name: str = ""
    normal_texture_file_name: str = ""
    emissive_texture_file_name: str = ""
    occlusion_texture_file_name: str = ""
    metalness_roughness_texture_file_name: str = ""
    base_color: Float4 = (1.0, 1.0, 1.0, 1.0)
    emissive_color: Float3 = (1.0, 1.0, 1.0)
    metalness: float = 0.0
    roughness: float = 0.0
    occlusion_strength: float = 0.0
    alpha_cutoff: float = 0.5
    alpha_mode: AlphaMode = AlphaMode.OPAQUE
    base_map: object | None = field(default=None, compare=False, repr=False)
    normal_map: object | None = field(default=None, compare=False, repr=False)
    emissive_map: object | None = field(default=None, compare=False, repr=False)
    occlusion_map: object | None = field(default=None, compare=False, repr=False)
    metalness_roughness_map: object | None = field(default=None, compare=False, repr=False)


@dataclass
class Vertex:
    """One skinned mesh vertex."""

    position: Float3 = (0.0, 0.0, 0.0)
    normal: Float3 = (0.0, 0.0, 0.0)
    tangent: Float4 = (0.0, 0.0, 0.0, 1.0)
    texcoord: Float2 = (0.0, 0.0)
    bone_weight: Float4 = (1.0, 0.0, 0.0, 0.0)
    bone_index: UInt4 = (0, 0, 0, 0)


@dataclass(eq=False)
class Bone:
    """A skin joint: the node it follows and its inverse bind matrix."""

    node_index: int = 0
    offset_transform: np.ndarray = field(default_factory=_identity)
    node: Node | None = field(default=None, repr=False)

    def __eq__(self, other):
        if not isinstance(other, Bone):
            return NotImplemented
        return self.node_index == other.node_index and np.array_equal(
            self.offset_transform, other.offset_transform
        )

    __hash__ = None


@dataclass(eq=False)
class Mesh:
    """Triangle list geometry bound to a node and a material.

    Meshes compare by their stored data, not by the resolved links.
    """

    vertices: list[Vertex] = field(default_factory=list)
    indices: list[int] = field(default_factory=list)
    bones: list[Bone] = field(default_factory=list)
    node_index: int = 0
    material_index: int = 0
    material: Material | None = field(default=None, repr=False)
    node: Node | None = field(default=None, repr=False)

    def _key(self):
        return (self.vertices, self.indices, self.bones, self.node_index, self.material_index)

    def __eq__(self, other):
        if not isinstance(other, Mesh):
            return NotImplemented
        return self._key() == other._key()

    __hash__ = None


@dataclass
class VectorKeyframe:
    """A position or scale key."""

    seconds: float = 0.0
    value: Float3 = (0.0, 0.0, 0.0)


@dataclass
class QuaternionKeyframe:
    """A rotation key."""

    seconds: float = 0.0
    value: Float4 = (0.0, 0.0, 0.0, 1.0)


@dataclass
class NodeAnim:
    """The key tracks of one node in one animation."""

    position_keyframes: list[VectorKeyframe] = field(default_factory=list)
    rotation_keyframes: list[QuaternionKeyframe] = field(default_factory=list)
    scale_keyframes: list[VectorKeyframe] = field(default_factory=list)


@dataclass
class Animation:
    """A named clip with one track set per node."""

    name: str = ""
    seconds_length: float = 0.0
    node_anims: list[NodeAnim] = field(default_factory=list)


@dataclass
class NodePose:
    """The local pose of a node."""

    position: Float3 = (0.0, 0.0, 0.0)
    rotation: Float4 = (0.0, 0.0, 0.0, 1.0)
    scale: Float3 = (1.0, 1.0, 1.0)
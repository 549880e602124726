"""Binary model cache: little-endian fields, 64-bit counts before strings and lists."""

from __future__ import annotations

import os
import struct
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

import numpy as np

from .model_types import (
    AlphaMode,
    Animation,
    Bone,
    Material,
    Mesh,
    Node,
    NodeAnim,
    QuaternionKeyframe,
    VectorKeyframe,
    Vertex,
)

T = TypeVar("T")


class ModelFormatError(ValueError):
    """Raised when model data cannot be decoded."""


@dataclass
class ModelData:
    """Everything stored in a model file."""

    nodes: list[Node] = field(default_factory=list)
    materials: list[Material] = field(default_factory=list)
    meshes: list[Mesh] = field(default_factory=list)
    animations: list[Animation] = field(default_factory=list)


class _Writer:
    def __init__(self) -> None:
        self.data = bytearray()

    def pack(self, fmt: str, *values) -> None:
        self.data += struct.pack("<" + fmt, *values)

    def string(self, text: str) -> None:
        raw = text.encode("utf-8")
        self.pack("Q", len(raw))
        self.data += raw

    def sequence(self, items, write_item: Callable[[_Writer, T], None]) -> None:
        self.pack("Q", len(items))
        for item in items:
            write_item(self, item)


class _Reader:
    def __init__(self, blob: bytes) -> None:
        self._view = memoryview(blob)
        self._offset = 0

    def take(self, size: int) -> memoryview:
        end = self._offset + size
        if size < 0 or end > len(self._view):
            raise ModelFormatError("model data is truncated")
        chunk = self._view[self._offset:end]
        self._offset = end
        return chunk

    def unpack(self, fmt: str) -> tuple:
        layout = struct.Struct("<" + fmt)
        return layout.unpack(self.take(layout.size))

    def count(self) -> int:
        return self.unpack("Q")[0]

    def string(self) -> str:
        raw = bytes(self.take(self.count()))
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ModelFormatError("invalid text in model data") from exc

    def sequence(self, read_item: Callable[[_Reader], T]) -> list[T]:
        return [read_item(self) for _ in range(self.count())]


def _write_matrix(w: _Writer, m) -> None:
    w.pack("16f", *np.asarray(m, dtype=np.float64).reshape(16))


def _read_matrix(r: _Reader) -> np.ndarray:
    return np.array(r.unpack("16f"), dtype=np.float64).reshape(4, 4)


def _write_node(w: _Writer, node: Node) -> None:
    w.string(node.name)
    w.pack("i3f4f3f", node.parent_index, *node.position, *node.rotation, *node.scale)


def _read_node(r: _Reader) -> Node:
    name = r.string()
    values = r.unpack("i3f4f3f")
    return Node(
        name=name,
        parent_index=values[0],
        position=values[1:4],
        rotation=values[4:8],
        scale=values[8:11],
    )


def _write_material(w: _Writer, m: Material) -> None:
    for text in (
        m.name,
        m.base_texture_file_name,
        m.normal_texture_file_name,
        m.emissive_texture_file_name,
        m.occlusion_texture_file_name,
        m.metalness_roughness_texture_file_name,
    ):
        w.string(text)
    w.pack(
        "4f3f4fi",
        *m.base_color,
        *m.emissive_color,
        m.metalness,
        m.roughness,
        m.occlusion_strength,
        m.alpha_cutoff,
        int(m.alpha_mode),
    )


def _read_material(r: _Reader) -> Material:
    names = [r.string() for _ in range(6)]
    values = r.unpack("4f3f4fi")
    try:
        alpha_mode = AlphaMode(values[11])
    except ValueError as exc:
        raise ModelFormatError(f"unknown alpha mode {values[11]}") from exc
    return Material(
        name=names[0],
        base_texture_file_name=names[1],
        normal_texture_file_name=names[2],
        emissive_texture_file_name=names[3],
        occlusion_texture_file_name=names[4],
        metalness_roughness_texture_file_name=names[5],
        base_color=values[0:4],
        emissive_color=values[4:7],
        metalness=values[7],
        roughness=values[8],
        occlusion_strength=values[9],
        alpha_cutoff=values[10],
        alpha_mode=alpha_mode,
    )


def _write_vertex(w: _Writer, v: Vertex) -> None:
    w.pack("3f4f4I2f3f4f", *v.position, *v.bone_weight, *v.bone_index,
           *v.texcoord, *v.normal, *v.tangent)


def _read_vertex(r: _Reader) -> Vertex:
    values = r.unpack("3f4f4I2f3f4f")
    return Vertex(
        position=values[0:3],
        bone_weight=values[3:7],
        bone_index=values[7:11],
        texcoord=values[11:13],
        normal=values[13:16],
        tangent=values[16:20],
    )


def _write_bone(w: _Writer, bone: Bone) -> None:
    w.pack("i", bone.node_index)
    _write_matrix(w, bone.offset_transform)


def _read_bone(r: _Reader) -> Bone:
    (node_index,) = r.unpack("i")
    return Bone(node_index=node_index, offset_transform=_read_matrix(r))


def _write_mesh(w: _Writer, mesh: Mesh) -> None:
    w.sequence(mesh.vertices, _write_vertex)
    w.pack("Q", len(mesh.indices))
    w.pack(f"{len(mesh.indices)}I", *mesh.indices)
    w.sequence(mesh.bones, _write_bone)
    w.pack("ii", mesh.node_index, mesh.material_index)


def _read_mesh(r: _Reader) -> Mesh:
    vertices = r.sequence(_read_vertex)
    count = r.count()
    indices = list(struct.unpack(f"<{count}I", r.take(count * 4))) if count else []
    bones = r.sequence(_read_bone)
    node_index, material_index = r.unpack("ii")
    return Mesh(vertices=vertices, indices=indices, bones=bones,
                node_index=node_index, material_index=material_index)


def _write_vector_key(w: _Writer, key: VectorKeyframe) -> None:
    w.pack("f3f", key.seconds, *key.value)


def _read_vector_key(r: _Reader) -> VectorKeyframe:
    values = r.unpack("f3f")
    return VectorKeyframe(seconds=values[0], value=values[1:4])


def _write_quaternion_key(w: _Writer, key: QuaternionKeyframe) -> None:
    w.pack("f4f", key.seconds, *key.value)


def _read_quaternion_key(r: _Reader) -> QuaternionKeyframe:
    values = r.unpack("f4f")
    return QuaternionKeyframe(seconds=values[0], value=values[1:5])


def _write_node_anim(w: _Writer, anim: NodeAnim) -> None:
    w.sequence(anim.position_keyframes, _write_vector_key)
    w.sequence(anim.rotation_keyframes, _write_quaternion_key)
    w.sequence(anim.scale_keyframes, _write_vector_key)


def _read_node_anim(r: _Reader) -> NodeAnim:
    return NodeAnim(
        position_keyframes=r.sequence(_read_vector_key),
        rotation_keyframes=r.sequence(_read_quaternion_key),
        scale_keyframes=r.sequence(_read_vector_key),
    )


def _write_animation(w: _Writer, animation: Animation) -> None:
    w.string(animation.name)
    w.pack("f", animation.seconds_length)
    w.sequence(animation.node_anims, _write_node_anim)


def _read_animation(r: _Reader) -> Animation:
    name = r.string()
    (seconds_length,) = r.unpack("f")
    return Animation(name=name, seconds_length=seconds_length,
                     node_anims=r.sequence(_read_node_anim))


def encode(data: ModelData) -> bytes:
    """Serialise nodes, materials, meshes and animations, in that order."""
    w = _Writer()
    try:
        w.sequence(data.nodes, _write_node)
        w.sequence(data.materials, _write_material)
        w.sequence(data.meshes, _write_mesh)
        w.sequence(data.animations, _write_animation)
    except (struct.error, TypeError, ValueError) as exc:
        raise ModelFormatError(f"model serialize failed: {exc}") from exc
    return bytes(w.data)


def decode(blob: bytes) -> ModelData:
    """Rebuild model data from bytes produced by :func:`encode`."""
    r = _Reader(blob)
    return ModelData(
        nodes=r.sequence(_read_node),
        materials=r.sequence(_read_material),
        meshes=r.sequence(_read_mesh),
        animations=r.sequence(_read_animation),
    )


def write_model(path: str | os.PathLike, data: ModelData) -> None:
    """Write model data to ``path``."""
    blob = encode(data)
    with open(path, "wb") as stream:
        stream.write(blob)


def read_model(path: str | os.PathLike) -> ModelData:
    """Read model data from ``path``; a missing file raises FileNotFoundError."""
    with open(path, "rb") as stream:
        return decode(stream.read())
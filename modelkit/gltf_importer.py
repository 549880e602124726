"""Building model nodes, meshes, materials and animations from glTF files."""

from __future__ import annotations

import math
import os
from collections.abc import Callable, Sequence
from pathlib import Path, PurePosixPath

import numpy as np

from .axis import compute_tangents, convert_animation, convert_mesh, convert_node
from .gltf_document import ComponentType, GltfDocument, GltfError
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
from .xmath import decompose, near_equal

_KEY_EPSILON = 0.00001
_FRAME_TOLERANCE = 0.001
_TEXTURE_DIRECTORY = "Textures"
_FLOAT_MAX = np.float32(np.finfo(np.float32).max)

# attribute name -> (vertex field, width, {component type: divisor or None}, as integers)
_ANY_FLOAT = None
_ATTRIBUTES = {
    "POSITION": ("position", 3, _ANY_FLOAT, False),
    "NORMAL": ("normal", 3, _ANY_FLOAT, False),
    "TANGENT": ("tangent", 4, _ANY_FLOAT, False),
    "TEXCOORD_0": (
        "texcoord",
        2,
        {ComponentType.FLOAT: None, ComponentType.UNSIGNED_BYTE: 0xFF,
         ComponentType.UNSIGNED_SHORT: 0xFFFF},
        False,
    ),
    "JOINTS_0": (
        "bone_index",
        4,
        {ComponentType.UNSIGNED_BYTE: None, ComponentType.UNSIGNED_SHORT: None},
        True,
    ),
    "WEIGHTS_0": (
        "bone_weight",
        4,
        {ComponentType.FLOAT: None, ComponentType.UNSIGNED_BYTE: 0xFF,
         ComponentType.UNSIGNED_SHORT: 0xFFFF},
        False,
    ),
}

_INDEX_TYPES = (ComponentType.UNSIGNED_INT, ComponentType.UNSIGNED_SHORT)


def _f32(value) -> float:
    return float(np.float32(value))


def _at(items: Sequence, index, kind: str):
    if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(items):
        raise GltfError(f"{kind} index {index!r} is out of range")
    return items[index]


def _floats(values: Sequence[float], count: int, kind: str) -> tuple[float, ...]:
    if len(values) < count:
        raise GltfError(f"{kind} needs {count} values, got {len(values)}")
    return tuple(_f32(v) for v in values[:count])


def _round_half_away(value: float) -> float:
    return math.copysign(math.floor(abs(value) + 0.5), value)


def _collapse_constant(keys: list) -> None:
    first = keys[0].value
    if all(near_equal(first, key.value, _KEY_EPSILON) for key in keys[1:]):
        del keys[1:]


def _complete_track(keys: list, rest, length: float, make: Callable) -> None:
    if not keys:
        keys.append(make(0.0, rest))
    if len(keys) == 1:
        keys.append(make(length, keys[0].value))


class GltfImporter:
    """Reads one glTF file and converts its contents into model data."""

    def __init__(self, filename: str | os.PathLike) -> None:
        self.filepath = Path(filename)
        self.document = GltfDocument.load(self.filepath)

    def load_nodes(self) -> list[Node]:
        """Return one node per glTF node, with parents resolved and axes converted."""
        gltf_nodes = self.document.nodes
        nodes = [Node() for _ in gltf_nodes]
        for index, (gltf_node, node) in enumerate(zip(gltf_nodes, nodes)):
            node.name = gltf_node.get("name", "")
            for child in gltf_node.get("children", []):
                _at(nodes, child, "child node").parent_index = index

            matrix = gltf_node.get("matrix")
            if matrix:
                m = np.array(_floats(matrix, 16, "node matrix"), dtype=np.float64).reshape(4, 4)
                scale, rotation, position = decompose(m)
                node.scale = tuple(_f32(c) for c in scale)
                node.rotation = tuple(_f32(c) for c in rotation)
                node.position = tuple(_f32(c) for c in position)
            else:
                if gltf_node.get("scale"):
                    node.scale = _floats(gltf_node["scale"], 3, "node scale")
                if gltf_node.get("rotation"):
                    node.rotation = _floats(gltf_node["rotation"], 4, "node rotation")
                if gltf_node.get("translation"):
                    node.position = _floats(gltf_node["translation"], 3, "node translation")
            convert_node(node)
        return nodes

    def load_meshes(self, nodes: Sequence[Node]) -> list[Mesh]:
        """Return one mesh per primitive of every node that references a mesh."""
        meshes: list[Mesh] = []
        for node_index, gltf_node in enumerate(self.document.nodes):
            mesh_index = gltf_node.get("mesh", -1)
            if mesh_index < 0:
                continue
            gltf_mesh = _at(self.document.meshes, mesh_index, "mesh")
            for primitive in gltf_mesh.get("primitives", []):
                meshes.append(self._load_primitive(node_index, gltf_node, primitive))
        return meshes

    def _load_primitive(self, node_index: int, gltf_node: dict, primitive: dict) -> Mesh:
        doc = self.document
        mesh = Mesh(node_index=node_index, material_index=int(primitive.get("material", -1)))

        if gltf_node.get("skin", -1) >= 0:
            skin = _at(doc.skins, gltf_node["skin"], "skin")
            matrices = doc.read_accessor(skin.get("inverseBindMatrices", -1))
            joints = skin.get("joints", [])
            for i, matrix in enumerate(matrices):
                mesh.bones.append(
                    Bone(
                        node_index=int(_at(joints, i, "joint")),
                        offset_transform=np.asarray(matrix, dtype=np.float64).reshape(4, 4),
                    )
                )

        index_accessor = primitive.get("indices", -1)
        component = _at(doc.accessors, index_accessor, "accessor").get("componentType")
        if component not in _INDEX_TYPES:
            raise GltfError("This accessor component type is not supported.")
        mesh.indices = [int(i) for i in doc.read_accessor(index_accessor).reshape(-1)]

        attributes = primitive.get("attributes", {})
        if "POSITION" not in attributes:
            raise GltfError("primitive has no POSITION attribute")
        position_accessor = _at(doc.accessors, attributes["POSITION"], "accessor")
        mesh.vertices = [Vertex() for _ in range(int(position_accessor.get("count", 0)))]

        for name in sorted(attributes):
            if name in _ATTRIBUTES:
                self._read_attribute(mesh.vertices, name, attributes[name])

        if (
            "TANGENT" not in attributes
            and "TEXCOORD_0" in attributes
        ):
            compute_tangents(mesh.vertices, mesh.indices)

        convert_mesh(mesh)
        return mesh

    def _read_attribute(self, vertices: list[Vertex], name: str, accessor_index) -> None:
        field_name, width, divisors, as_int = _ATTRIBUTES[name]
        accessor = _at(self.document.accessors, accessor_index, "accessor")
        component = accessor.get("componentType")
        if divisors is not None and component not in divisors:
            raise GltfError(f"{name} component type {component!r} is not supported")
        values = self.document.read_accessor(accessor_index)
        if values.ndim != 2 or values.shape[1] != width:
            raise GltfError(f"{name} must have {width} components")
        if len(values) > len(vertices):
            raise GltfError(f"{name} has more elements than POSITION")

        if as_int:
            rows = [tuple(int(c) for c in row) for row in values.tolist()]
        else:
            data = values.astype(np.float32)
            divisor = divisors.get(ComponentType(component)) if divisors else None
            if divisor:
                data = data / np.float32(divisor)
            rows = [tuple(row) for row in data.tolist()]

        for vertex, row in zip(vertices, rows):
            setattr(vertex, field_name, row)

    def load_materials(self) -> list[Material]:
        """Return the materials; embedded images are written under ``Textures``."""
        directory = self.filepath.parent
        materials: list[Material] = []
        for gltf_material in self.document.materials:
            pbr = gltf_material.get("pbrMetallicRoughness", {})
            occlusion = gltf_material.get("occlusionTexture", {})
            alpha_mode = gltf_material.get("alphaMode", "OPAQUE")
            material = Material(
                name=gltf_material.get("name", ""),
                base_color=_floats(pbr.get("baseColorFactor", [1.0, 1.0, 1.0, 1.0]), 4,
                                   "baseColorFactor"),
                emissive_color=_floats(gltf_material.get("emissiveFactor", [0.0, 0.0, 0.0]), 3,
                                       "emissiveFactor"),
                metalness=_f32(pbr.get("metallicFactor", 1.0)),
                roughness=_f32(pbr.get("roughnessFactor", 1.0)),
                occlusion_strength=_f32(occlusion.get("strength", 1.0)),
                alpha_cutoff=_f32(gltf_material.get("alphaCutoff", 0.5)),
                alpha_mode={"BLEND": AlphaMode.BLEND, "MASK": AlphaMode.MASK}.get(
                    alpha_mode, AlphaMode.OPAQUE
                ),
            )
            slots = (
                (pbr.get("baseColorTexture", {}), "Base", "base_texture_file_name"),
                (gltf_material.get("normalTexture", {}), "Normal", "normal_texture_file_name"),
                (gltf_material.get("emissiveTexture", {}), "Emissive",
                 "emissive_texture_file_name"),
                (occlusion, "Occlusion", "occlusion_texture_file_name"),
                (pbr.get("metallicRoughnessTexture", {}), "MetallicRoughness",
                 "metalness_roughness_texture_file_name"),
            )
            for info, texture_type, attribute in slots:
                file_name = self._texture_file_name(
                    info.get("index", -1), texture_type, material.name, directory
                )
                if file_name is not None:
                    setattr(material, attribute, file_name)
            materials.append(material)
        return materials

    def _texture_file_name(
        self, texture_index: int, texture_type: str, material_name: str, directory: Path
    ) -> str | None:
        if texture_index < 0:
            return None
        texture = _at(self.document.textures, texture_index, "texture")
        image = _at(self.document.images, texture.get("source", -1), "image")
        view_index = image.get("bufferView", -1)
        if view_index < 0:
            return image.get("uri", "")

        name = image.get("uri", "")
        if not name:
            extension = PurePosixPath(image.get("mimeType", "")).name
            name = f"{material_name}_{texture_type}.{extension}"
        relative = f"{_TEXTURE_DIRECTORY}/{PurePosixPath(name).name}"

        (directory / _TEXTURE_DIRECTORY).mkdir(parents=True, exist_ok=True)
        output = directory / relative
        if not output.exists():
            output.write_bytes(self.document.buffer_view_bytes(view_index))
        return relative

    def load_animations(self, nodes: Sequence[Node], sample_rate: float = 60.0) -> list[Animation]:
        """Return the animations with one track set per node, rest poses filling gaps."""
        doc = self.document
        rate = np.float32(sample_rate)
        animations: list[Animation] = []
        for gltf_animation in doc.animations:
            animation = Animation(
                name=gltf_animation.get("name", ""),
                node_anims=[NodeAnim() for _ in nodes],
            )
            min_time = _FLOAT_MAX
            max_time = np.float32(0.0)
            samplers = gltf_animation.get("samplers", [])
            for channel in gltf_animation.get("channels", []):
                target = channel.get("target", {})
                node_anim = _at(animation.node_anims, target.get("node"), "animated node")
                sampler = _at(samplers, channel.get("sampler"), "sampler")
                times = doc.read_accessor(sampler.get("input")).astype(np.float32).reshape(-1)
                if len(times) == 0:
                    raise GltfError("animation sampler has no keyframes")
                min_time = min(min_time, times[0])
                max_time = max(np.float32(0.0), times[-1])

                path = target.get("path")
                if path not in ("scale", "rotation", "translation"):
                    continue
                values = doc.read_accessor(sampler.get("output")).astype(np.float32)
                width = 4 if path == "rotation" else 3
                if values.ndim != 2 or values.shape[1] != width or len(values) < len(times):
                    raise GltfError(f"animation output for {path!r} does not match its input")
                rows = [tuple(row) for row in values.tolist()]

                if path == "rotation":
                    keys = node_anim.rotation_keyframes
                    for seconds, value in zip(times, rows):
                        frame = float(seconds * rate)
                        if abs(_round_half_away(frame) - frame) > _FRAME_TOLERANCE:
                            continue
                        keys.append(QuaternionKeyframe(float(seconds), value))
                    if not keys:
                        raise GltfError("rotation channel has no usable keyframes")
                else:
                    keys = (node_anim.scale_keyframes if path == "scale"
                            else node_anim.position_keyframes)
                    keys.extend(VectorKeyframe(float(s), v) for s, v in zip(times, rows))
                _collapse_constant(keys)

            for node_anim in animation.node_anims:
                for key in (*node_anim.position_keyframes, *node_anim.rotation_keyframes,
                            *node_anim.scale_keyframes):
                    key.seconds = _f32(np.float32(key.seconds) - min_time)
            animation.seconds_length = _f32(max_time - min_time)

            convert_animation(animation)

            length = animation.seconds_length
            for node, node_anim in zip(nodes, animation.node_anims):
                _complete_track(node_anim.position_keyframes, node.position, length,
                                VectorKeyframe)
                _complete_track(node_anim.rotation_keyframes, node.rotation, length,
                                QuaternionKeyframe)
                _complete_track(node_anim.scale_keyframes, node.scale, length, VectorKeyframe)
            animations.append(animation)
        return animations
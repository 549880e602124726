import base64
import json
import math
import struct

import numpy as np
import pytest

from modelkit.gltf_document import ComponentType, GltfError
from modelkit.gltf_importer import GltfImporter
from modelkit.model_types import AlphaMode

FLOAT = ComponentType.FLOAT
USHORT = ComponentType.UNSIGNED_SHORT
UBYTE = ComponentType.UNSIGNED_BYTE


class _Builder:
    def __init__(self):
        self.blob = bytearray()
        self.gltf = {"asset": {"version": "2.0"}, "accessors": [], "bufferViews": []}

    def view(self, data: bytes) -> int:
        while len(self.blob) % 4:
            self.blob.append(0)
        self.gltf["bufferViews"].append(
            {"buffer": 0, "byteOffset": len(self.blob), "byteLength": len(data)}
        )
        self.blob += data
        return len(self.gltf["bufferViews"]) - 1

    def accessor(self, values, component, kind) -> int:
        array = np.asarray(values, dtype=component.dtype)
        view = self.view(array.tobytes())
        self.gltf["accessors"].append(
            {"bufferView": view, "componentType": int(component), "type": kind,
             "count": len(array)}
        )
        return len(self.gltf["accessors"]) - 1

    def write(self, path):
        payload = base64.b64encode(bytes(self.blob)).decode("ascii")
        self.gltf["buffers"] = [
            {"byteLength": len(self.blob),
             "uri": "data:application/octet-stream;base64," + payload}
        ]
        path.write_text(json.dumps(self.gltf))
        return path

    def write_glb(self, path):
        self.gltf["buffers"] = [{"byteLength": len(self.blob)}]
        text = json.dumps(self.gltf).encode("utf-8")
        text += b" " * (-len(text) % 4)
        binary = bytes(self.blob) + b"\0" * (-len(self.blob) % 4)
        body = struct.pack("<II", len(text), 0x4E4F534A) + text
        body += struct.pack("<II", len(binary), 0x004E4942) + binary
        path.write_bytes(struct.pack("<4sII", b"glTF", 2, 12 + len(body)) + body)
        return path


def _triangle(builder, index_type=USHORT, with_texcoord=True):
    positions = builder.accessor([[0, 0, 0], [1, 0, 0], [0, 1, 0]], FLOAT, "VEC3")
    normals = builder.accessor([[0, 0, 1]] * 3, FLOAT, "VEC3")
    indices = builder.accessor([0, 1, 2], index_type, "SCALAR")
    attributes = {"POSITION": positions, "NORMAL": normals}
    if with_texcoord:
        attributes["TEXCOORD_0"] = builder.accessor([[0, 0], [1, 0], [0, 1]], FLOAT, "VEC2")
    builder.gltf["meshes"] = [{"primitives": [{"attributes": attributes, "indices": indices,
                                               "material": 0}]}]
    builder.gltf["nodes"] = [{"name": "tri", "mesh": 0}]
    return attributes


def test_nodes_names_parents_and_mirrored_pose(tmp_path):
    builder = _Builder()
    builder.gltf["nodes"] = [
        {"name": "root", "children": [1]},
        {"name": "child", "translation": [1.0, 2.0, 3.0], "scale": [2.0, 2.0, 2.0]},
    ]
    nodes = GltfImporter(builder.write(tmp_path / "a.gltf")).load_nodes()
    assert [n.name for n in nodes] == ["root", "child"]
    assert [n.parent_index for n in nodes] == [-1, 0]
    assert nodes[1].position == (-1.0, 2.0, 3.0)
    assert nodes[1].scale == (2.0, 2.0, 2.0)
    assert nodes[0].rotation == (0.0, 0.0, 0.0, -1.0)


def test_node_matrix_is_decomposed(tmp_path):
    builder = _Builder()
    builder.gltf["nodes"] = [
        {"matrix": [1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, 4, 5, 6, 1]}
    ]
    node = GltfImporter(builder.write(tmp_path / "m.gltf")).load_nodes()[0]
    assert node.position == pytest.approx((-4.0, 5.0, 6.0))
    assert node.scale == pytest.approx((1.0, 1.0, 1.0))


def test_child_index_out_of_range_raises(tmp_path):
    builder = _Builder()
    builder.gltf["nodes"] = [{"children": [5]}]
    importer = GltfImporter(builder.write(tmp_path / "bad.gltf"))
    with pytest.raises(GltfError):
        importer.load_nodes()


def test_unsupported_extension_raises(tmp_path):
    path = tmp_path / "model.obj"
    path.write_text("{}")
    with pytest.raises(GltfError):
        GltfImporter(path)


def test_mesh_winding_mirror_and_tangents(tmp_path):
    builder = _Builder()
    _triangle(builder)
    importer = GltfImporter(builder.write(tmp_path / "t.gltf"))
    meshes = importer.load_meshes(importer.load_nodes())
    assert len(meshes) == 1
    mesh = meshes[0]
    assert mesh.indices == [0, 2, 1]
    assert mesh.material_index == 0
    assert mesh.node_index == 0
    assert [v.position for v in mesh.vertices] == [
        (-0.0, 0.0, 0.0), (-1.0, 0.0, 0.0), (-0.0, 1.0, 0.0)
    ]
    for vertex in mesh.vertices:
        x, y, z, w = vertex.tangent
        assert math.sqrt(x * x + y * y + z * z) == pytest.approx(1.0)
        assert w in (-1.0, 1.0)


def test_glb_loads_same_mesh(tmp_path):
    builder = _Builder()
    _triangle(builder)
    gltf_importer = GltfImporter(builder.write(tmp_path / "t.gltf"))
    glb_importer = GltfImporter(builder.write_glb(tmp_path / "t.glb"))
    nodes = gltf_importer.load_nodes()
    assert glb_importer.load_meshes(nodes) == gltf_importer.load_meshes(nodes)


def test_normalized_texcoords_and_skin_attributes(tmp_path):
    builder = _Builder()
    attributes = _triangle(builder, with_texcoord=False)
    attributes["TEXCOORD_0"] = builder.accessor([[255, 0], [0, 255], [0, 0]], UBYTE, "VEC2")
    attributes["JOINTS_0"] = builder.accessor([[1, 0, 0, 0]] * 3, USHORT, "VEC4")
    attributes["WEIGHTS_0"] = builder.accessor([[65535, 0, 0, 0]] * 3, USHORT, "VEC4")
    importer = GltfImporter(builder.write(tmp_path / "s.gltf"))
    mesh = importer.load_meshes([])[0]
    assert mesh.vertices[0].texcoord == (1.0, 0.0)
    assert mesh.vertices[1].texcoord == (0.0, 1.0)
    assert all(v.bone_index == (1, 0, 0, 0) for v in mesh.vertices)
    assert all(v.bone_weight == (1.0, 0.0, 0.0, 0.0) for v in mesh.vertices)


def test_skin_bones(tmp_path):
    builder = _Builder()
    _triangle(builder)
    matrices = builder.accessor([np.identity(4).reshape(16)] * 2, FLOAT, "MAT4")
    builder.gltf["skins"] = [{"inverseBindMatrices": matrices, "joints": [1, 2]}]
    builder.gltf["nodes"][0]["skin"] = 0
    builder.gltf["nodes"] += [{"name": "j1"}, {"name": "j2"}]
    mesh = GltfImporter(builder.write(tmp_path / "k.gltf")).load_meshes([])[0]
    assert [b.node_index for b in mesh.bones] == [1, 2]
    for bone in mesh.bones:
        assert np.array_equal(bone.offset_transform, np.identity(4))


def test_missing_position_raises(tmp_path):
    builder = _Builder()
    attributes = _triangle(builder)
    del attributes["POSITION"]
    importer = GltfImporter(builder.write(tmp_path / "p.gltf"))
    with pytest.raises(GltfError):
        importer.load_meshes([])


def test_byte_indices_are_rejected(tmp_path):
    builder = _Builder()
    _triangle(builder, index_type=UBYTE)
    importer = GltfImporter(builder.write(tmp_path / "i.gltf"))
    with pytest.raises(GltfError):
        importer.load_meshes([])


def test_materials_and_embedded_texture(tmp_path):
    builder = _Builder()
    image_bytes = b"\x89PNG fake image"
    view = builder.view(image_bytes)
    builder.gltf["images"] = [{"bufferView": view, "mimeType": "image/png"},
                              {"uri": "normal.png"}]
    builder.gltf["textures"] = [{"source": 0}, {"source": 1}]
    builder.gltf["materials"] = [
        {
            "name": "Mat",
            "alphaMode": "BLEND",
            "pbrMetallicRoughness": {"baseColorFactor": [0.5, 0.25, 1.0, 0.5],
                                     "baseColorTexture": {"index": 0}},
            "normalTexture": {"index": 1},
        },
        {"alphaMode": "MASK"},
        {},
    ]
    materials = GltfImporter(builder.write(tmp_path / "mat.gltf")).load_materials()
    first, second, third = materials
    assert first.name == "Mat"
    assert first.base_color == (0.5, 0.25, 1.0, 0.5)
    assert first.alpha_mode is AlphaMode.BLEND
    assert first.base_texture_file_name == "Textures/Mat_Base.png"
    assert (tmp_path / "Textures" / "Mat_Base.png").read_bytes() == image_bytes
    assert first.normal_texture_file_name == "normal.png"
    assert second.alpha_mode is AlphaMode.MASK
    assert third.alpha_mode is AlphaMode.OPAQUE
    assert third.alpha_cutoff == 0.5
    assert third.emissive_color == (0.0, 0.0, 0.0)
    assert (third.metalness, third.roughness, third.occlusion_strength) == (1.0, 1.0, 1.0)


def test_existing_texture_file_is_kept(tmp_path):
    builder = _Builder()
    view = builder.view(b"new data")
    builder.gltf["images"] = [{"bufferView": view, "mimeType": "image/jpeg"}]
    builder.gltf["textures"] = [{"source": 0}]
    builder.gltf["materials"] = [{"name": "M", "emissiveTexture": {"index": 0}}]
    (tmp_path / "Textures").mkdir()
    (tmp_path / "Textures" / "M_Emissive.jpeg").write_bytes(b"old")
    material = GltfImporter(builder.write(tmp_path / "e.gltf")).load_materials()[0]
    assert material.emissive_texture_file_name == "Textures/M_Emissive.jpeg"
    assert (tmp_path / "Textures" / "M_Emissive.jpeg").read_bytes() == b"old"


def _animated(builder, channels):
    builder.gltf["nodes"] = [{"name": "a"}, {"name": "b", "translation": [1.0, 0.0, 0.0]}]
    samplers = []
    gltf_channels = []
    for node, path, times, values, kind in channels:
        samplers.append({
            "input": builder.accessor(times, FLOAT, "SCALAR"),
            "output": builder.accessor(values, FLOAT, kind),
        })
        gltf_channels.append({"sampler": len(samplers) - 1,
                              "target": {"node": node, "path": path}})
    builder.gltf["animations"] = [{"name": "walk", "samplers": samplers,
                                   "channels": gltf_channels}]


def test_animation_tracks_are_shifted_and_completed(tmp_path):
    builder = _Builder()
    _animated(builder, [
        (0, "translation", [1.0, 2.0], [[1, 0, 0], [3, 0, 0]], "VEC3"),
        (0, "scale", [1.0, 2.0], [[2, 2, 2], [2, 2, 2]], "VEC3"),
    ])
    importer = GltfImporter(builder.write(tmp_path / "anim.gltf"))
    nodes = importer.load_nodes()
    (animation,) = importer.load_animations(nodes, 60)
    assert animation.name == "walk"
    assert animation.seconds_length == 1.0
    track = animation.node_anims[0]
    assert [(k.seconds, k.value) for k in track.position_keyframes] == [
        (0.0, (-1.0, 0.0, 0.0)), (1.0, (-3.0, 0.0, 0.0))
    ]
    assert [(k.seconds, k.value) for k in track.scale_keyframes] == [
        (0.0, (2.0, 2.0, 2.0)), (1.0, (2.0, 2.0, 2.0))
    ]
    rest = animation.node_anims[1]
    assert [k.value for k in rest.position_keyframes] == [nodes[1].position] * 2
    assert [k.seconds for k in rest.rotation_keyframes] == [0.0, 1.0]
    assert [k.value for k in rest.scale_keyframes] == [nodes[1].scale] * 2


def test_rotation_keys_off_frame_are_dropped(tmp_path):
    builder = _Builder()
    _animated(builder, [
        (0, "rotation", [0.0, 0.005, 1.0 / 60.0],
         [[0, 0, 0, 1], [1, 0, 0, 0], [0, 0.6, 0, 0.8]], "VEC4"),
    ])
    importer = GltfImporter(builder.write(tmp_path / "rot.gltf"))
    (animation,) = importer.load_animations(importer.load_nodes(), 60)
    keys = animation.node_anims[0].rotation_keyframes
    assert len(keys) == 2
    assert keys[0].value == (0.0, 0.0, 0.0, -1.0)
    assert keys[1].value == pytest.approx((0.0, 0.6, 0.0, -0.8))


def test_animation_on_unknown_node_raises(tmp_path):
    builder = _Builder()
    _animated(builder, [(7, "translation", [0.0], [[0, 0, 0]], "VEC3")])
    importer = GltfImporter(builder.write(tmp_path / "bad_anim.gltf"))
    with pytest.raises(GltfError):
        importer.load_animations(importer.load_nodes(), 60)
"""Conversion from glTF's right-handed axes to left-handed ones, and tangent generation."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from .model_types import Animation, Mesh, Node, Vertex
from .xmath import normalize

_MIRRORED_MATRIX_ENTRIES = ((0, 1), (0, 2), (1, 0), (2, 0), (3, 0))


def convert_position(v: Sequence[float]) -> tuple[float, ...]:
    """Mirror a position, normal or tangent across the X axis."""
    return (-float(v[0]), *(float(c) for c in v[1:]))


def convert_rotation(q: Sequence[float]) -> tuple[float, float, float, float]:
    """Mirror a quaternion ``(x, y, z, w)`` across the X axis."""
    x, y, z, w = (float(c) for c in q)
    return (-x, y, z, -w)


def convert_matrix(m) -> np.ndarray:
    """Return a mirrored copy of a 4x4 transform."""
    result = np.array(m, dtype=np.float64)
    for row, column in _MIRRORED_MATRIX_ENTRIES:
        result[row, column] = -result[row, column]
    return result


def convert_node(node: Node) -> None:
    """Mirror a node's local position and rotation in place."""
    node.position = convert_position(node.position)
    node.rotation = convert_rotation(node.rotation)


def convert_mesh(mesh: Mesh) -> None:
    """Mirror vertices and bones in place and flip the winding of every triangle."""
    for vertex in mesh.vertices:
        vertex.position = convert_position(vertex.position)
        vertex.normal = convert_position(vertex.normal)
        vertex.tangent = convert_position(vertex.tangent)

    indices = mesh.indices
    full = len(indices) - len(indices) % 3
    indices[1:full:3], indices[2:full:3] = indices[2:full:3], indices[1:full:3]

    for bone in mesh.bones:
        bone.offset_transform = convert_matrix(bone.offset_transform)


def convert_animation(animation: Animation) -> None:
    """Mirror the position and rotation keys of every track in place."""
    for node_anim in animation.node_anims:
        for key in node_anim.position_keyframes:
            key.value = convert_position(key.value)
        for key in node_anim.rotation_keyframes:
            key.value = convert_rotation(key.value)


def compute_tangents(vertices: list[Vertex], indices: Sequence[int]) -> None:
    """Compute per-vertex tangents from positions, normals and texture coordinates.

    Each vertex's tangent is replaced in place; ``w`` carries the handedness.
    """
    if not vertices:
        return
    positions = np.array([v.position for v in vertices], dtype=np.float64)
    texcoords = np.array([v.texcoord for v in vertices], dtype=np.float64)
    normals = np.array([v.normal for v in vertices], dtype=np.float64)
    tan1 = np.zeros_like(positions)
    tan2 = np.zeros_like(positions)

    count = len(indices) - len(indices) % 3
    if count:
        triangles = np.asarray(list(indices[:count]), dtype=np.int64).reshape(-1, 3)
        p1, p2, p3 = (positions[triangles[:, k]] for k in range(3))
        uv1, uv2, uv3 = (texcoords[triangles[:, k]] for k in range(3))
        e1, e2 = p2 - p1, p3 - p1
        d1, d2 = uv2 - uv1, uv3 - uv1
        s1, t1 = d1[:, 0:1], d1[:, 1:2]
        s2, t2 = d2[:, 0:1], d2[:, 1:2]
        with np.errstate(divide="ignore", invalid="ignore"):
            r = 1.0 / (s1 * t2 - s2 * t1)
            sdir = (t2 * e1 - t1 * e2) * r
        for column in range(3):
            np.add.at(tan1, triangles[:, column], sdir)
            np.add.at(tan2, triangles[:, column], sdir)

    with np.errstate(divide="ignore", invalid="ignore"):
        for vertex, n, t1_sum, t2_sum in zip(vertices, normals, tan1, tan2):
            tangent = normalize(t1_sum - n * np.dot(n, t1_sum))
            handedness = -1.0 if np.dot(np.cross(n, t1_sum), t2_sum) < 0.0 else 1.0
            vertex.tangent = (*tangent, handedness)
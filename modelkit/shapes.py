"""Wireframe shape meshes and a renderer that batches shape instances.

Every mesh is a line list: consecutive vertex pairs form one line segment.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import numpy as np

from .xmath import rotation_roll_pitch_yaw, rotation_x, scaling, transform_vector, translation

Float3 = tuple[float, float, float]
Float4 = tuple[float, float, float, float]


@dataclass(frozen=True)
class ShapeMesh:
    """Line-list vertices of one shape."""

    vertices: tuple[Float3, ...]

    @property
    def vertex_count(self) -> int:
        """Number of vertices drawn for this mesh."""
        return len(self.vertices)

    def lines(self) -> list[tuple[Float3, Float3]]:
        """The line segments as pairs of end points."""
        return list(zip(self.vertices[0::2], self.vertices[1::2]))


@dataclass
class ShapeInstance:
    """One queued draw of a mesh with its world transform and colour."""

    mesh: ShapeMesh
    world_transform: np.ndarray
    color: Float4


def _check_subdivisions(subdivisions: int) -> None:
    if subdivisions <= 0:
        raise ValueError("subdivisions must be positive")


def _arc(
    subdivisions: int, segments: int, point: Callable[[float], Float3], offset: float = 0.0
) -> list[Float3]:
    """Line segments along a circle; ``segments`` of the ``subdivisions`` steps are made."""
    step = 2.0 * math.pi / subdivisions
    return [
        point(step * ((i + j) % subdivisions) + offset)
        for i in range(segments)
        for j in (0, 1)
    ]


def _mesh_from(positions: Sequence[Float3], order: Sequence[int]) -> ShapeMesh:
    return ShapeMesh(tuple(positions[i] for i in order))


def box_mesh(width: float, height: float, depth: float) -> ShapeMesh:
    """The twelve edges of a box spanning ``±width``, ``±height`` and ``±depth``."""
    positions = (
        (-width, height, -depth),
        (width, height, -depth),
        (width, height, depth),
        (-width, height, depth),
        (-width, -height, -depth),
        (width, -height, -depth),
        (width, -height, depth),
        (-width, -height, depth),
    )
    order = (
        0, 1, 1, 2, 2, 3, 3, 0,  # top
        4, 5, 5, 6, 6, 7, 7, 4,  # bottom
        0, 4, 1, 5, 2, 6, 3, 7,  # sides
    )
    return _mesh_from(positions, order)


def sphere_mesh(radius: float, subdivisions: int) -> ShapeMesh:
    """Three great circles in the XZ, XY and YZ planes."""
    _check_subdivisions(subdivisions)
    vertices = _arc(
        subdivisions, subdivisions,
        lambda t: (math.sin(t) * radius, 0.0, math.cos(t) * radius),
    )
    vertices += _arc(
        subdivisions, subdivisions,
        lambda t: (math.sin(t) * radius, math.cos(t) * radius, 0.0),
    )
    vertices += _arc(
        subdivisions, subdivisions,
        lambda t: (0.0, math.sin(t) * radius, math.cos(t) * radius),
    )
    return ShapeMesh(tuple(vertices))


def half_sphere_mesh(radius: float, subdivisions: int) -> ShapeMesh:
    """A full XZ circle plus the upper halves of the XY and YZ circles."""
    _check_subdivisions(subdivisions)
    half = subdivisions // 2
    vertices = _arc(
        subdivisions, subdivisions,
        lambda t: (math.sin(t) * radius, 0.0, math.cos(t) * radius),
    )
    vertices += _arc(
        subdivisions, half,
        lambda t: (math.sin(t) * radius, math.cos(t) * radius, 0.0),
        offset=-math.pi / 2.0,
    )
    vertices += _arc(
        subdivisions, half,
        lambda t: (0.0, math.sin(t) * radius, math.cos(t) * radius),
    )
    return ShapeMesh(tuple(vertices))


def cylinder_mesh(
    radius1: float, radius2: float, start: float, height: float, subdivisions: int
) -> ShapeMesh:
    """Bottom and top circles joined by four side lines."""
    _check_subdivisions(subdivisions)
    top = start + height
    vertices = _arc(
        subdivisions, subdivisions,
        lambda t: (math.sin(t) * radius1, start, math.cos(t) * radius1),
    )
    vertices += _arc(
        subdivisions, subdivisions,
        lambda t: (math.sin(t) * radius2, top, math.cos(t) * radius2),
    )
    vertices += [
        (0.0, start, radius1),
        (0.0, top, radius2),
        (0.0, start, -radius1),
        (0.0, top, -radius2),
        (radius1, start, 0.0),
        (radius2, top, 0.0),
        (-radius1, start, 0.0),
        (-radius2, top, 0.0),
    ]
    return ShapeMesh(tuple(vertices))


def bone_mesh(length: float) -> ShapeMesh:
    """A double pyramid pointing along +Z from the origin to ``length``."""
    width = length * 0.25
    positions = (
        (0.0, 0.0, 0.0),
        (width, 0.0, width),
        (0.0, 0.0, length),
        (-width, 0.0, width),
        (0.0, width, width),
        (0.0, -width, width),
    )
    order = (
        0, 1, 1, 2, 2, 3, 3, 0,  # xz
        0, 4, 4, 2, 2, 5, 5, 0,  # yz
        1, 4, 4, 3, 3, 5, 5, 1,  # xy
    )
    return _mesh_from(positions, order)


def _normalize_row(row: np.ndarray) -> np.ndarray:
    length = float(np.linalg.norm(row[:3]))
    if length == 0.0:
        return np.zeros_like(row)
    return row / length


@dataclass
class ShapeRenderer:
    """Queues wireframe shapes and turns them into draw calls."""

    box: ShapeMesh = field(init=False)
    sphere: ShapeMesh = field(init=False)
    half_sphere: ShapeMesh = field(init=False)
    cylinder: ShapeMesh = field(init=False)
    bone: ShapeMesh = field(init=False)
    instances: list[ShapeInstance] = field(init=False, default_factory=list)

    def __init__(self) -> None:
        self.box = box_mesh(1.0, 1.0, 1.0)
        self.sphere = sphere_mesh(1.0, 32)
        self.half_sphere = half_sphere_mesh(1.0, 32)
        self.cylinder = cylinder_mesh(1.0, 1.0, -0.5, 1.0, 32)
        self.bone = bone_mesh(1.0)
        self.instances = []

    def _queue(self, mesh: ShapeMesh, world: np.ndarray, color: Sequence[float]) -> None:
        self.instances.append(ShapeInstance(mesh, world, tuple(float(c) for c in color)))

    def draw_box(
        self,
        position: Sequence[float],
        angle: Sequence[float],
        size: Sequence[float],
        color: Sequence[float],
    ) -> None:
        """Queue a box; ``angle`` holds pitch, yaw and roll in radians."""
        world = (
            scaling(*size)
            @ rotation_roll_pitch_yaw(*angle)
            @ translation(*position)
        )
        self._queue(self.box, world, color)

    def draw_sphere(
        self, position: Sequence[float], radius: float, color: Sequence[float]
    ) -> None:
        """Queue a sphere."""
        world = scaling(radius, radius, radius) @ translation(*position)
        self._queue(self.sphere, world, color)

    def draw_capsule(
        self, transform, radius: float, height: float, color: Sequence[float]
    ) -> None:
        """Queue a capsule along the transform's Y axis: two half spheres and a cylinder."""
        t = np.array(transform, dtype=np.float64)

        upper_position = transform_vector((0.0, height * 0.5, 0.0), t)
        upper = scaling(radius, radius, radius)
        upper[3] = (*upper_position, 1.0)
        self._queue(self.half_sphere, upper, color)

        body = np.empty((4, 4))
        body[0] = t[0] * radius
        body[1] = t[1] * height
        body[2] = t[2] * radius
        body[3] = t[3]
        self._queue(self.cylinder, body, color)

        lower_position = transform_vector((0.0, -height * 0.5, 0.0), t)
        rotation_only = t.copy()
        rotation_only[3] = (0.0, 0.0, 0.0, 1.0)
        lower = rotation_x(math.pi) @ rotation_only
        lower[:3] *= radius
        lower[3] = (*lower_position, 1.0)
        self._queue(self.half_sphere, lower, color)

    def draw_bone(self, transform, length: float, color: Sequence[float]) -> None:
        """Queue a bone whose axes are normalised and scaled to ``length``."""
        world = np.array(transform, dtype=np.float64)
        for row in range(3):
            world[row] = _normalize_row(world[row]) * length
        self._queue(self.bone, world, color)

    def render(self, view, projection) -> list[tuple[ShapeMesh, np.ndarray, Float4]]:
        """Return ``(mesh, world_view_projection, color)`` per queued shape and clear the queue."""
        view_projection = np.asarray(view, dtype=np.float64) @ np.asarray(
            projection, dtype=np.float64
        )
        calls = [
            (instance.mesh, instance.world_transform @ view_projection, instance.color)
            for instance in self.instances
        ]
        self.instances.clear()
        return calls
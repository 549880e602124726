"""Small 3D math helpers using row-vector conventions (v' = v @ M).

Matrices are 4x4 ``numpy`` arrays of float64; vectors and quaternions are
tuples of floats, quaternions ordered ``(x, y, z, w)``.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

Vector = tuple[float, ...]

_SLERP_EPSILON = 1.0 - 0.00001


def _as_tuple(values) -> Vector:
    return tuple(float(c) for c in values)


def identity() -> np.ndarray:
    """Return a new 4x4 identity matrix."""
    return np.identity(4)


def scaling(x: float, y: float, z: float) -> np.ndarray:
    """Return a scaling matrix."""
    m = np.identity(4)
    m[0, 0], m[1, 1], m[2, 2] = x, y, z
    return m


def translation(x: float, y: float, z: float) -> np.ndarray:
    """Return a translation matrix; the offset sits in the fourth row."""
    m = np.identity(4)
    m[3, :3] = (x, y, z)
    return m


def rotation_quaternion(q: Sequence[float]) -> np.ndarray:
    """Return the rotation matrix of a unit quaternion ``(x, y, z, w)``."""
    x, y, z, w = (float(c) for c in q)
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y + z * w), 2 * (x * z - y * w), 0.0],
            [2 * (x * y - z * w), 1 - 2 * (x * x + z * z), 2 * (y * z + x * w), 0.0],
            [2 * (x * z + y * w), 2 * (y * z - x * w), 1 - 2 * (x * x + y * y), 0.0],
            [0.0, 0.0, 0.0, 1.0],
        ]
    )


def rotation_x(angle: float) -> np.ndarray:
    """Return a rotation about the X axis by ``angle`` radians."""
    c, s = math.cos(angle), math.sin(angle)
    m = np.identity(4)
    m[1, 1], m[1, 2] = c, s
    m[2, 1], m[2, 2] = -s, c
    return m


def _rotation_y(angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    m = np.identity(4)
    m[0, 0], m[0, 2] = c, -s
    m[2, 0], m[2, 2] = s, c
    return m


def _rotation_z(angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    m = np.identity(4)
    m[0, 0], m[0, 1] = c, s
    m[1, 0], m[1, 1] = -s, c
    return m


def rotation_roll_pitch_yaw(pitch: float, yaw: float, roll: float) -> np.ndarray:
    """Return a rotation applying roll (Z), then pitch (X), then yaw (Y)."""
    return _rotation_z(roll) @ rotation_x(pitch) @ _rotation_y(yaw)


def compose(
    scale: Sequence[float], rotation: Sequence[float], position: Sequence[float]
) -> np.ndarray:
    """Build the matrix ``S * R * T`` from scale, quaternion and position."""
    return scaling(*scale) @ rotation_quaternion(rotation) @ translation(*position)


def _quaternion_from_rotation(r: np.ndarray) -> Vector:
    trace = r[0, 0] + r[1, 1] + r[2, 2]
    if trace > 0.0:
        s = math.sqrt(trace + 1.0) * 2.0
        return _as_tuple(
            ((r[1, 2] - r[2, 1]) / s, (r[2, 0] - r[0, 2]) / s, (r[0, 1] - r[1, 0]) / s, s / 4.0)
        )
    if r[0, 0] >= r[1, 1] and r[0, 0] >= r[2, 2]:
        s = math.sqrt(max(1.0 + r[0, 0] - r[1, 1] - r[2, 2], 0.0)) * 2.0
        if s == 0.0:
            return (0.0, 0.0, 0.0, 1.0)
        return _as_tuple(
            (s / 4.0, (r[0, 1] + r[1, 0]) / s, (r[0, 2] + r[2, 0]) / s, (r[1, 2] - r[2, 1]) / s)
        )
    if r[1, 1] >= r[2, 2]:
        s = math.sqrt(max(1.0 + r[1, 1] - r[0, 0] - r[2, 2], 0.0)) * 2.0
        if s == 0.0:
            return (0.0, 0.0, 0.0, 1.0)
        return _as_tuple(
            ((r[0, 1] + r[1, 0]) / s, s / 4.0, (r[1, 2] + r[2, 1]) / s, (r[2, 0] - r[0, 2]) / s)
        )
    s = math.sqrt(max(1.0 + r[2, 2] - r[0, 0] - r[1, 1], 0.0)) * 2.0
    if s == 0.0:
        return (0.0, 0.0, 0.0, 1.0)
    return _as_tuple(
        ((r[0, 2] + r[2, 0]) / s, (r[1, 2] + r[2, 1]) / s, s / 4.0, (r[0, 1] - r[1, 0]) / s)
    )


def decompose(m) -> tuple[Vector, Vector, Vector]:
    """Split an affine matrix into ``(scale, rotation, translation)``."""
    m = np.asarray(m, dtype=np.float64)
    position = _as_tuple(m[3, :3])
    rows = m[:3, :3]
    scale = np.linalg.norm(rows, axis=1)
    if np.linalg.det(rows) < 0.0:
        scale[0] = -scale[0]
    rotation = np.identity(3)
    for axis, factor in enumerate(scale):
        if factor != 0.0:
            rotation[axis] = rows[axis] / factor
    return _as_tuple(scale), _quaternion_from_rotation(rotation), position


def lerp(a: Sequence[float], b: Sequence[float], t: float) -> Vector:
    """Linearly interpolate between two vectors."""
    va, vb = np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64)
    return _as_tuple(va + (vb - va) * t)


def slerp(q0: Sequence[float], q1: Sequence[float], t: float) -> Vector:
    """Spherically interpolate between two unit quaternions along the shorter arc."""
    a, b = np.asarray(q0, dtype=np.float64), np.asarray(q1, dtype=np.float64)
    cos_omega = float(np.dot(a, b))
    sign = 1.0
    if cos_omega < 0.0:
        cos_omega, sign = -cos_omega, -1.0
    if cos_omega < _SLERP_EPSILON:
        sin_omega = math.sqrt(max(1.0 - cos_omega * cos_omega, 0.0))
        omega = math.atan2(sin_omega, cos_omega)
        w0 = math.sin((1.0 - t) * omega) / sin_omega
        w1 = math.sin(t * omega) / sin_omega
    else:
        w0, w1 = 1.0 - t, t
    return _as_tuple(a * w0 + b * (w1 * sign))


def transform_point(v: Sequence[float], m) -> Vector:
    """Transform a 3D point by ``m`` with w = 1 and divide by the resulting w."""
    x, y, z = (float(c) for c in v[:3])
    out = np.array([x, y, z, 1.0]) @ np.asarray(m, dtype=np.float64)
    return _as_tuple(out[:3] / out[3])


def transform_vector(v: Sequence[float], m) -> Vector:
    """Transform a 3D vector by ``m`` with an implied w of 1, without a divide."""
    x, y, z = (float(c) for c in v[:3])
    out = np.array([x, y, z, 1.0]) @ np.asarray(m, dtype=np.float64)
    return _as_tuple(out[:3])


def normalize(v: Sequence[float]) -> Vector:
    """Scale ``v`` to unit length; a zero vector stays zero."""
    arr = np.asarray(v, dtype=np.float64)
    length = float(np.linalg.norm(arr))
    if length == 0.0:
        return _as_tuple(np.zeros_like(arr))
    return _as_tuple(arr / length)


def near_equal(a: Sequence[float], b: Sequence[float], epsilon: float) -> bool:
    """Whether every component of ``a`` lies within ``epsilon`` of ``b``."""
    return len(a) == len(b) and all(abs(x - y) <= epsilon for x, y in zip(a, b))
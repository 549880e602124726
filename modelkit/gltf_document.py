"""Reading glTF 2.0 documents (.gltf and .glb) and their binary buffers.

Images are never decoded here; only the JSON structure and the raw buffers
are loaded.
"""

from __future__ import annotations

import base64
import binascii
import enum
import json
import os
import struct
from pathlib import Path
from urllib.parse import unquote

import numpy as np

_GLB_MAGIC = b"glTF"
_GLB_VERSION = 2
_CHUNK_JSON = 0x4E4F534A
_CHUNK_BIN = 0x004E4942

_COMPONENT_COUNTS = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT2": 4,
    "MAT3": 9,
    "MAT4": 16,
}


class GltfError(ValueError):
    """Raised when a glTF document is malformed or cannot be loaded."""


class ComponentType(enum.IntEnum):
    """Accessor component types defined by glTF."""

    BYTE = 5120
    UNSIGNED_BYTE = 5121
    SHORT = 5122
    UNSIGNED_SHORT = 5123
    UNSIGNED_INT = 5125
    FLOAT = 5126

    @property
    def dtype(self) -> np.dtype:
        """The little-endian numpy dtype of one component."""
        return _DTYPES[self]


_DTYPES = {
    ComponentType.BYTE: np.dtype("<i1"),
    ComponentType.UNSIGNED_BYTE: np.dtype("<u1"),
    ComponentType.SHORT: np.dtype("<i2"),
    ComponentType.UNSIGNED_SHORT: np.dtype("<u2"),
    ComponentType.UNSIGNED_INT: np.dtype("<u4"),
    ComponentType.FLOAT: np.dtype("<f4"),
}


def _parse_json(raw: bytes) -> dict:
    try:
        document = json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise GltfError(f"invalid glTF JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise GltfError("glTF JSON root must be an object")
    return document


def _parse_glb(blob: bytes) -> tuple[dict, bytes | None]:
    if len(blob) < 12:
        raise GltfError("GLB file is too short")
    magic, version, length = struct.unpack_from("<4sII", blob, 0)
    if magic != _GLB_MAGIC:
        raise GltfError("not a GLB file: bad magic")
    if version != _GLB_VERSION:
        raise GltfError(f"unsupported GLB version {version}")
    if length > len(blob):
        raise GltfError("GLB file is truncated")

    document: dict | None = None
    binary: bytes | None = None
    offset = 12
    while offset + 8 <= length:
        chunk_length, chunk_type = struct.unpack_from("<II", blob, offset)
        start = offset + 8
        end = start + chunk_length
        if end > length:
            raise GltfError("GLB chunk is truncated")
        chunk = blob[start:end]
        if document is None:
            if chunk_type != _CHUNK_JSON:
                raise GltfError("first GLB chunk must be JSON")
            document = _parse_json(chunk)
        elif chunk_type == _CHUNK_BIN and binary is None:
            binary = chunk
        offset = end
    if document is None:
        raise GltfError("GLB file has no JSON chunk")
    return document, binary


def _load_buffer(entry: dict, index: int, directory: Path, binary: bytes | None) -> bytes:
    try:
        byte_length = int(entry["byteLength"])
    except (KeyError, TypeError, ValueError) as exc:
        raise GltfError(f"buffer {index} has no valid byteLength") from exc

    uri = entry.get("uri")
    if uri is None:
        if index != 0 or binary is None:
            raise GltfError(f"buffer {index} has no data")
        data = binary
    elif uri.startswith("data:"):
        header, _, payload = uri.partition(",")
        if ";base64" not in header:
            raise GltfError(f"buffer {index} data URI is not base64")
        try:
            data = base64.b64decode(payload)
        except binascii.Error as exc:
            raise GltfError(f"buffer {index} has invalid base64 data") from exc
    else:
        try:
            data = (directory / unquote(uri)).read_bytes()
        except OSError as exc:
            raise GltfError(f"cannot read buffer {index} from {uri!r}: {exc}") from exc

    if len(data) < byte_length:
        raise GltfError(f"buffer {index} is shorter than its byteLength")
    return data[:byte_length]


def _section(key: str) -> property:
    return property(lambda self: self.gltf.get(key, []), doc=f"The {key!r} array.")


class GltfDocument:
    """A parsed glTF document with its buffers loaded into memory."""

    nodes = _section("nodes")
    meshes = _section("meshes")
    materials = _section("materials")
    textures = _section("textures")
    images = _section("images")
    accessors = _section("accessors")
    buffer_views = _section("bufferViews")
    skins = _section("skins")
    animations = _section("animations")
    scenes = _section("scenes")

    def __init__(self, gltf: dict, buffers: list[bytes], path: Path | None = None) -> None:
        self.gltf = gltf
        self.buffers = buffers
        self.path = path

    @classmethod
    def load(cls, path: str | os.PathLike) -> GltfDocument:
        """Load a ``.gltf`` or ``.glb`` file; the extension picks the format."""
        path = Path(path)
        extension = path.suffix.lower()
        if extension == ".glb":
            document, binary = _parse_glb(path.read_bytes())
        elif extension == ".gltf":
            document, binary = _parse_json(path.read_bytes()), None
        else:
            raise GltfError(f"unsupported file extension {path.suffix!r}")
        buffers = [
            _load_buffer(entry, index, path.parent, binary)
            for index, entry in enumerate(document.get("buffers", []))
        ]
        return cls(document, buffers, path)

    def _item(self, items: list, kind: str, index) -> dict:
        if not isinstance(index, int) or not 0 <= index < len(items):
            raise GltfError(f"{kind} index {index!r} is out of range")
        return items[index]

    def _view_range(self, index: int) -> tuple[bytes, int, dict]:
        view = self._item(self.buffer_views, "bufferView", index)
        buffer = self._item(self.buffers, "buffer", view.get("buffer"))
        start = int(view.get("byteOffset", 0))
        length = int(view.get("byteLength", 0))
        if start < 0 or start + length > len(buffer):
            raise GltfError(f"bufferView {index} lies outside its buffer")
        return buffer, start, view

    def buffer_view_bytes(self, index: int) -> bytes:
        """Return the bytes covered by a buffer view."""
        buffer, start, view = self._view_range(index)
        return bytes(buffer[start:start + int(view.get("byteLength", 0))])

    def read_accessor(self, index: int) -> np.ndarray:
        """Return an accessor's elements, one row per element.

        Scalar accessors give a one-dimensional array; the others give
        ``(count, components)``. Components keep their stored type.
        """
        accessor = self._item(self.accessors, "accessor", index)
        try:
            component = ComponentType(accessor["componentType"])
            components = _COMPONENT_COUNTS[accessor["type"]]
            count = int(accessor["count"])
        except (KeyError, ValueError) as exc:
            raise GltfError(f"accessor {index} is malformed: {exc}") from exc
        dtype = component.dtype

        if "bufferView" not in accessor or count == 0:
            values = np.zeros((count, components), dtype=dtype.newbyteorder("="))
        else:
            buffer, view_start, view = self._view_range(accessor["bufferView"])
            element_size = dtype.itemsize * components
            stride = int(view.get("byteStride") or element_size)
            offset = int(accessor.get("byteOffset", 0))
            span = stride * (count - 1) + element_size
            if offset < 0 or offset + span > int(view.get("byteLength", 0)):
                raise GltfError(f"accessor {index} overruns its bufferView")
            values = np.ndarray(
                shape=(count, components),
                dtype=dtype,
                buffer=buffer,
                offset=view_start + offset,
                strides=(stride, dtype.itemsize),
            ).astype(dtype.newbyteorder("="))

        return values.reshape(count) if components == 1 else values


def load_gltf(path: str | os.PathLike) -> GltfDocument:
    """Load a glTF document from ``path``."""
    return GltfDocument.load(path)
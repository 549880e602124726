"""glTF model loading, animation sampling, binary model files and debug geometry for 3D rendering."""

__version__ = "0.1.0"

__all__ = [
    "axis",
    "gltf_document",
    "gltf_importer",
    "model",
    "model_types",
    "serialization",
    "shapes",
    "sprite",
    "xmath",
]
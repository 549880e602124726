# modelkit

modelkit loads glTF 2.0 models (`.gltf` and `.glb`) into plain Python data and converts them to a
left-handed coordinate system. It samples skeletal animations, computes node transforms and
stores models in a compact binary file. It also builds line-list geometry for debug shapes and
quad vertices for sprites.

## Installation

```
pip install modelkit
```

With the test dependencies:

```
pip install "modelkit[test]"
```

## Loading a model

```python
from modelkit.model import Model

model = Model("character.glb", 60)

for mesh in model.meshes:
    print(len(mesh.vertices), len(mesh.indices), mesh.material_index)
```

`Model` has the lists `nodes`, `materials`, `meshes` and `animations`. After loading, each node's
`parent` and `children` are linked, each mesh's `material` and `node` are resolved, and each
bone's `node` is set. An index that points outside its list raises `IndexError`.

If a file with the same name and the extension `.cereal` sits next to the model, `Model` reads
that file instead of the glTF source. `Model.save(path)` writes such a file. A file that is
neither `.gltf` nor `.glb` and has no such companion raises
`modelkit.serialization.ModelFormatError`.

On import:

- node positions, rotations, vertex positions, normals, tangents, bone matrices and animation keys
  are mirrored across the X axis, and the winding of every triangle is flipped;
- tangents are computed for a primitive that has texture coordinates but no tangents;
- images stored inside the file (in a buffer view) are written as they are into a `Textures`
  directory next to the model, unless a file of that name is already there, and the material
  refers to them by that relative path.

Each material's `base_map` and `normal_map` are then filled with Pillow RGBA images: the texture
file named by the material, or a 1x1 image (white for the base colour, `(127, 127, 255)` for the
normal map) when it names none. The other texture slots keep only their file names.

## Animation

```python
import numpy as np

from modelkit.model import Model

model = Model("character.glb", 60)
model.append_animations("run.glb")

run = model.animation_index("run")      # -1 when there is no such animation
poses = model.node_poses()
model.compute_animation(run, 0.5, poses)
model.set_node_poses(poses)
model.update_transform(np.identity(4))

hand = model.node_index("RightHand")    # -1 when there is no such node
print(model.nodes[hand].world_transform)
```

The sample rate passed to `Model` is used to drop rotation keyframes that do not fall on a whole
frame; `append_animations` uses a rate of 60. Keyframe times are shifted so that each animation
starts at zero. A track whose keys all hold the same value is cut to one key, and every track ends
up with at least two keys: a node that no channel targets gets its rest pose at the start and at
the end of the animation.

`compute_node_animation(animation_index, node_index, time, pose)` samples one node: positions and
scales are interpolated linearly, rotations by slerp. A track whose keys do not span `time` leaves
that part of the pose as it was. `compute_animation` does this for every node and resizes the
pose list to the node count.

`update_transform(world_transform)` recomputes each node's `local_transform`, `global_transform`
and `world_transform`. Matrices use the row-vector convention (`v' = v @ M`), with the
translation in the fourth row.

## Lower-level pieces

- `modelkit.gltf_document.load_gltf(path)` (or `GltfDocument.load`) parses a `.gltf` or `.glb`
  file and loads its buffers, from the GLB binary chunk, base64 data URIs or files beside the
  model. `read_accessor(index)` returns a numpy array of an accessor's elements, and
  `buffer_view_bytes(index)` the bytes of a buffer view. Malformed input raises `GltfError`.
- `modelkit.gltf_importer.GltfImporter(filename)` turns a document into model data with
  `load_nodes()`, `load_meshes(nodes)`, `load_materials()` and
  `load_animations(nodes, sample_rate)`.
- `modelkit.model_types` holds the dataclasses `Node`, `Material`, `Vertex`, `Bone`, `Mesh`,
  `VectorKeyframe`, `QuaternionKeyframe`, `NodeAnim`, `Animation`, `NodePose` and the enum
  `AlphaMode`.
- `modelkit.axis` holds the coordinate-system conversions and `compute_tangents`.
- `modelkit.serialization` has `encode`, `decode`, `write_model` and `read_model` for the binary
  model format, which stores nodes, materials, meshes and animations in little-endian order with
  64-bit counts. Loaded textures and runtime links are not stored.
- `modelkit.xmath` provides matrix and quaternion helpers: `compose`, `decompose`, `lerp`,
  `slerp`, `transform_point`, `transform_vector`, `rotation_roll_pitch_yaw` and others.

## Debug shapes and sprites

```python
import numpy as np

from modelkit.shapes import ShapeRenderer, sphere_mesh
from modelkit.sprite import Sprite

shapes = ShapeRenderer()
shapes.draw_sphere((0, 1, 0), 0.5, (1, 0, 0, 1))
shapes.draw_box((0, 0, 0), (0, 0, 0), (1, 1, 1), (0, 1, 0, 1))
for mesh, world_view_projection, color in shapes.render(np.identity(4), np.identity(4)):
    ...  # draw mesh.vertices as a line list

circle_lines = sphere_mesh(2.0, 16).lines()

sprite = Sprite(256, 256)
quad = sprite.vertices((1280, 720), 10, 10, 0, 128, 128, 45.0, (1, 1, 1, 1), None)
```

`ShapeRenderer` queues boxes, spheres, capsules and bones; `render(view, projection)` returns one
`(mesh, world_view_projection, color)` tuple per queued shape and empties the queue. The mesh
builders `box_mesh`, `sphere_mesh`, `half_sphere_mesh`, `cylinder_mesh` and `bone_mesh` return
`ShapeMesh` line lists.

`Sprite.vertices` returns four `SpriteVertex` corners in normalized device coordinates, in
triangle-strip order, rotated by `angle` degrees about the quad's centre. `Sprite.from_file(path)`
reads the texture with Pillow and takes its size from the image.

## What it does not do

modelkit does not draw anything and creates no GPU resources: no vertex or index buffers, shaders
or texture objects. Meshes, shape instances and sprite vertices are data for a renderer of your
own. It has no command-line tool and no viewer window.
import numpy as np

from modelkit.model_types import (
    AlphaMode,
    Animation,
    Bone,
    Material,
    Mesh,
    Node,
    NodeAnim,
    Vertex,
)


def test_alpha_mode_wire_values():
    assert AlphaMode(0) is AlphaMode.OPAQUE
    assert AlphaMode(1) is AlphaMode.MASK
    assert AlphaMode(2) is AlphaMode.BLEND


def test_node_transforms_start_as_identity_and_are_independent():
    a, b = Node(), Node()
    assert np.array_equal(a.world_transform, np.identity(4))
    a.world_transform[3, 0] = 5.0
    assert b.world_transform[3, 0] == 0.0


def test_node_children_lists_are_not_shared():
    a, b = Node(name="a"), Node(name="b")
    a.children.append(b)
    assert b.children == []


def test_node_equality_ignores_links_and_transforms():
    a = Node(name="root", position=(1.0, 2.0, 3.0))
    b = Node(name="root", position=(1.0, 2.0, 3.0))
    b.children.append(Node(name="child"))
    b.global_transform[3, 1] = 9.0
    assert a == b
    assert a != Node(name="root", position=(1.0, 2.0, 4.0))


def test_node_repr_with_parent_cycle_terminates():
    parent = Node(name="parent")
    child = Node(name="child", parent_index=0, parent=parent)
    parent.children.append(child)
    assert "child" in repr(child)


def test_bone_equality_compares_matrix_values():
    m = np.identity(4)
    m[3, :3] = (1.0, 2.0, 3.0)
    assert Bone(2, m) == Bone(2, m.copy())
    assert Bone(2, m) != Bone(2, np.identity(4))
    assert Bone(2, m) != Bone(3, m.copy())


def test_mesh_equality_ignores_resolved_links():
    a = Mesh(vertices=[Vertex()], indices=[0, 1, 2], bones=[Bone(1)])
    b = Mesh(vertices=[Vertex()], indices=[0, 1, 2], bones=[Bone(1)],
             material=Material(name="m"), node=Node(name="n"))
    assert a == b
    assert a != Mesh(vertices=[Vertex()], indices=[0, 2, 1], bones=[Bone(1)])


def test_material_equality_ignores_texture_maps():
    a = Material(name="m", alpha_mode=AlphaMode.BLEND)
    b = Material(name="m", alpha_mode=AlphaMode.BLEND, base_map=object())
    assert a == b
    assert a != Material(name="m", alpha_mode=AlphaMode.MASK)


def test_animation_node_anims_are_independent():
    a, b = Animation(name="walk"), Animation(name="run")
    a.node_anims.append(NodeAnim())
    assert b.node_anims == []
    assert len(a.node_anims) == 1
"""
test_skeleton_mesh.py - OBJ geometry, skin weights and linear-blend skinning
"""

import numpy as np
import pytest

from mocap_player.config import INCH_2_CM, MAX_JOINTS
from mocap_player.data_structs import Frame, Joint
from mocap_player.errors import MocapError, MocapParseError
from mocap_player.obj_parser import MeshGeometry, OBJParser
from mocap_player.quat_math import QuaternionMath
from mocap_player.skeleton import Skeleton
from mocap_player.skeleton_mesh import SkeletonMesh
from mocap_player.skin_weights import compute_vertex_influences, read_weight_table, select_influences

from conftest import BVH_JOINTS

# Vertex positions of the OBJ fixture
OBJ_TEXT_POSITIONS = np.array([
    [0.0, 0.0, 0.0],
    [1.0, 0.0, 0.0],
    [1.0, 1.0, 0.0],
    [0.0, 1.0, 1.0],
])


@pytest.fixture
def mesh(obj_file, weights_file, bind_pose_file):
    mesh = SkeletonMesh()
    mesh.load(str(obj_file), str(weights_file), str(bind_pose_file))
    return mesh


def test_obj_faces_bucketed_by_arity(obj_file):
    geometry = OBJParser().parse(str(obj_file))
    assert geometry.num_vertices == 4
    assert len(geometry.uvs) == 4
    assert len(geometry.normals) == 1
    assert geometry.quads == [[(0, 0, 0), (1, 1, 0), (2, 2, 0), (3, 3, 0)]]
    assert geometry.tris == [[(0, -1, 0), (1, -1, 0), (3, -1, 0)]]
    assert geometry.polys == []


def test_obj_offsets_and_negative_indices(obj_file, tmp_path):
    second = tmp_path / "second.obj"
    second.write_text("v 5 5 5\nv 6 5 5\nv 6 6 5\nv 5 6 5\nv 5 5 6\nf 1 2 3\nf -1 -2 -3 -4 -5\n")
    geometry = MeshGeometry()
    OBJParser(geometry).parse(str(obj_file))
    OBJParser(geometry).parse(str(second))

    assert geometry.num_vertices == 9
    assert geometry.tris[-1] == [(4, -1, -1), (5, -1, -1), (6, -1, -1)]
    assert geometry.polys == [[(8, -1, -1), (7, -1, -1), (6, -1, -1), (5, -1, -1), (4, -1, -1)]]


def test_obj_bad_number_raises(tmp_path):
    path = tmp_path / "bad.obj"
    path.write_text("v 0 0 0\nv 1 zero 0\n")
    with pytest.raises(MocapParseError) as info:
        OBJParser().parse(str(path))
    assert info.value.line == 2


def test_influences_keep_four_largest():
    """Five influences: the smallest goes, the rest are renormalised"""
    joints, weights = select_influences([(0, 0.4), (1, 0.3), (2, 0.15), (3, 0.1), (4, 0.05)])
    assert joints == [0, 1, 2, 3]
    np.testing.assert_allclose(weights, [0.4 / 0.95, 0.3 / 0.95, 0.15 / 0.95, 0.1 / 0.95])
    assert sum(weights) == pytest.approx(1.0)


def test_influences_pad_short_rows():
    joints, weights = select_influences([(7, 2.0)])
    assert joints == [7, 0, 0, 0]
    assert weights == [1.0, 0.0, 0.0, 0.0]
    assert select_influences([]) == ([0, 0, 0, 0], [0.0, 0.0, 0.0, 0.0])


def test_weight_table_rows_align_with_header(tmp_path):
    path = tmp_path / "w.txt"
    path.write_text("vertex:Hips:Chest:Ghost\n0:0.2::0.8\n1:1.0\n")
    names, table = read_weight_table(str(path))
    assert names == ["Hips", "Chest", "Ghost"]
    np.testing.assert_allclose(table, [[0.2, 0.0, 0.8], [1.0, 0.0, 0.0]])

    # Columns for joints missing from the skeleton are ignored
    indices, weights = compute_vertex_influences(names, table, {"Hips": 0, "Chest": 1})
    assert indices[0].tolist() == [0, 0, 0, 0]
    np.testing.assert_allclose(weights[0], [1.0, 0.0, 0.0, 0.0])


def test_weight_table_needs_header(tmp_path):
    path = tmp_path / "w.txt"
    path.write_text("0:1.0\n")
    with pytest.raises(MocapParseError, match="header"):
        read_weight_table(str(path))


def test_load_builds_buffers(mesh):
    assert mesh.num_joints == BVH_JOINTS
    assert mesh.vertex_weights.shape == (4, 4)
    np.testing.assert_allclose(mesh.vertex_weights.sum(axis=1), 1.0, rtol=1e-6)

    assert mesh.quad_vertices.shape == (4, 3)
    assert mesh.tri_vertices.shape == (3, 3)
    assert mesh.tri_vertices.dtype == np.float32
    np.testing.assert_allclose(mesh.tri_vertices[2], [0.0, 1.0, 1.0])
    np.testing.assert_allclose(mesh.quad_normals, np.tile([0.0, 0.0, 1.0], (4, 1)))
    assert mesh.tri_indices.shape == (3, 4)
    # Third triangle corner is vertex 3, weighted equally over four joints
    np.testing.assert_allclose(mesh.tri_weights[2], [0.25, 0.25, 0.25, 0.25])


def test_bind_pose_skins_to_rest_positions(mesh):
    np.testing.assert_allclose(mesh.skin_vertices(), OBJ_TEXT_POSITIONS, atol=1e-6)
    np.testing.assert_allclose(mesh.skinning_matrices()[:BVH_JOINTS], np.tile(np.eye(4), (BVH_JOINTS, 1, 1)),
                               atol=1e-6)


def test_root_translation_converted_to_mesh_units(mesh):
    driver = mesh.bind_skeleton.copy()
    frame = Frame(BVH_JOINTS)
    frame.set_root_translation([1.0, 0.0, 0.0])
    mesh.set_pose(frame, driver)

    np.testing.assert_allclose(mesh.bind_skeleton.root.global_transform.translation, [INCH_2_CM, 0.0, 0.0])
    np.testing.assert_allclose(mesh.skin_vertices(), OBJ_TEXT_POSITIONS + [INCH_2_CM, 0.0, 0.0], atol=1e-6)


def test_rotated_root_moves_mesh_rigidly(mesh):
    driver = mesh.bind_skeleton.copy()
    frame = Frame(BVH_JOINTS)
    rz = QuaternionMath.axis_rotation(2, np.pi / 2)
    frame.set_joint_rotation(0, rz)
    mesh.set_pose(frame, driver)
    np.testing.assert_allclose(mesh.skin_vertices(), OBJ_TEXT_POSITIONS @ rz.T, atol=1e-5)


def test_set_pose_matches_joints_by_name(mesh):
    driver = Skeleton()
    root = Joint("Hips")
    root.channel_count = 6
    driver.add_joint(root, is_root=True)
    head = Joint("Head")
    head.channel_count = 3
    driver.add_joint(head)
    Joint.attach(root, head)

    frame = Frame(2)
    rx = QuaternionMath.axis_rotation(0, 0.5)
    frame.set_joint_rotation(1, rx)
    mesh.set_pose(frame, driver)

    bind = mesh.bind_skeleton
    np.testing.assert_allclose(bind.get_joint_by_name("Head").local.rotation, rx, atol=1e-12)
    np.testing.assert_allclose(bind.get_joint_by_name("Chest").local.rotation, np.eye(3))


def test_gl_buffers_are_column_major(mesh):
    bind, anim = mesh.gl_buffers()
    assert bind.shape == (MAX_JOINTS, 16)
    assert anim.shape == (MAX_JOINTS, 16)
    chest = mesh.bind_skeleton.get_joint_by_name("Chest").id
    np.testing.assert_allclose(bind[chest, 12:15], [0.0, -5.0, 0.0])
    np.testing.assert_allclose(anim[chest, 12:15], [0.0, 5.0, 0.0])
    assert anim[chest, 15] == 1.0
    # Unused slots stay zero
    assert not bind[BVH_JOINTS:].any()


def test_setup_skin_rejects_large_skeleton():
    skeleton = Skeleton()
    for i in range(MAX_JOINTS + 1):
        skeleton.add_joint(Joint(f"j{i}"), is_root=(i == 0))
    with pytest.raises(ValueError, match="joints"):
        SkeletonMesh().setup_skin(skeleton)


def test_load_requires_matching_lists(obj_file, weights_file, bind_pose_file):
    with pytest.raises(ValueError):
        SkeletonMesh().load([str(obj_file), str(obj_file)], [str(weights_file)], str(bind_pose_file))


def test_missing_bind_pose_raises(tmp_path):
    with pytest.raises(MocapError):
        SkeletonMesh().init_skeleton(str(tmp_path / "missing.bvh"))


def test_short_weights_file_warns(obj_file, bind_pose_file, tmp_path, caplog):
    weights = tmp_path / "short.txt"
    weights.write_text("vertex:Hips\n0:1\n1:1\n")
    mesh = SkeletonMesh()
    mesh.load(str(obj_file), str(weights), str(bind_pose_file))
    assert "2 weight rows for 4 vertices" in caplog.text


def test_bounding_box_uses_model_transform(mesh):
    lower, upper = mesh.get_bounding_box()
    np.testing.assert_allclose(lower, [0.0, 0.0, 0.0])
    np.testing.assert_allclose(upper, [1.0, 1.0, 1.0])

    mesh.rotation = np.array([0.0, 0.0, 90.0])
    mesh.translation = np.array([10.0, 0.0, 0.0])
    lower, upper = mesh.get_bounding_box()
    np.testing.assert_allclose(lower, [9.0, 0.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(upper, [10.0, 1.0, 1.0], atol=1e-12)

    np.testing.assert_allclose(mesh.world_to_local() @ mesh.local_to_world(), np.eye(4), atol=1e-12)


def test_empty_mesh_has_no_bounding_box():
    assert SkeletonMesh().get_bounding_box() is None
    assert SkeletonMesh().skin_vertices().shape == (0, 3)

def test_weights_follow_their_obj_file(bind_pose_file, tmp_path, caplog):
    """A short weights file leaves its own vertices empty, not the next file's"""
    first = tmp_path / "a.obj"
    first.write_text("v 0 0 0\nv 1 0 0\nv 0 1 0\nf 1 2 3\n")
    second = tmp_path / "b.obj"
    second.write_text("v 0 0 1\nv 1 0 1\nv 0 1 1\nf 1 2 3\n")
    first_weights = tmp_path / "a_w.txt"
    first_weights.write_text("vertex:Hips\n0:1\n1:1\n")
    second_weights = tmp_path / "b_w.txt"
    second_weights.write_text("vertex:Chest\n0:1\n1:1\n2:1\n3:1\n")

    mesh = SkeletonMesh()
    mesh.load([str(first), str(second)], [str(first_weights), str(second_weights)], str(bind_pose_file))

    chest = mesh.bind_skeleton.get_joint_by_name("Chest").id
    assert mesh.vertex_weights.shape == (6, 4)
    assert mesh.vertex_weights[2].sum() == 0.0
    np.testing.assert_allclose(mesh.vertex_weights[3:, 0], 1.0)
    assert mesh.vertex_joint_indices[3:, 0].tolist() == [chest] * 3
    assert "a_w.txt: 2 weight rows for 3 vertices" in caplog.text
    assert "b_w.txt: 4 weight rows for 3 vertices" in caplog.text
    np.testing.assert_allclose(mesh.tri_weights[3:, 0], 1.0)


def test_corners_without_normal_index_get_zero_normals(tmp_path):
    path = tmp_path / "normals.obj"
    path.write_text("v 0 0 0\nv 1 0 0\nv 0 1 0\nvn 0 0 1\nvn 1 0 0\nf 1 2 3\nf 1//1 2//1 3//1\n")
    mesh = SkeletonMesh()
    mesh.load_geometry(str(path))
    mesh.init_geometry()

    assert mesh.tri_normals.shape == (6, 3)
    np.testing.assert_array_equal(mesh.tri_normals[:3], np.zeros((3, 3)))
    np.testing.assert_allclose(mesh.tri_normals[3:], np.tile([0.0, 0.0, 1.0], (3, 1)))

"""
SkeletonMesh

Linear-blend skinning of OBJ geometry driven by a skeleton.

Contains:
- The bind skeleton (frame 0 of a bind-pose BVH file)
- Per-vertex joint indices and weights (at most four influences)
- The bind-pose inverse table and the animation-pose table uploaded to the
  skinning shader, which computes sum_i w_i * anim[i] * bind_inv[i] * v
"""

import logging
import os
from typing import List, Optional, Sequence, Union

import numpy as np

from .config import INCH_2_CM, MAX_JOINTS
from .data_structs import Frame
from .errors import MocapError
from .obj_parser import MeshGeometry, OBJParser
from .player import Player
from .quat_math import QuaternionMath
from .skeleton import Skeleton
from .skin_weights import MAX_INFLUENCES, compute_vertex_influences, read_weight_table
from .transform import Transform

logger = logging.getLogger(__name__)

# Bundled character assets: (obj files, weight files, bind pose)
PRESETS = {
    "turtle": (
        ["oliver_body.obj", "oliver_shell.obj", "oliver_leg1.obj", "oliver_leg.obj"],
        ["oliver_body_weights.txt", "oliver_shell_weights.txt",
         "oliver_leg1_weights.txt", "oliver_leg_weights.txt"],
        "oliverBindPose.bvh",
    ),
    "bear": (["manny.obj"], ["mannyWeights.txt"], "mannyBindPose.bvh"),
}

PathList = Union[str, Sequence[str]]


class SkeletonMesh:
    """
    Skinned mesh bound to a skeleton.

    Typical use::

        mesh = SkeletonMesh()
        mesh.load("body.obj", "body_weights.txt", "bind_pose.bvh")
        mesh.set_pose(player.motion.current_frame, player.skeleton)
        positions = mesh.skin_vertices()
    """

    def __init__(self):
        self.bind_skeleton = Skeleton()
        self.geometry = MeshGeometry()
        self.vertex_joint_indices = np.zeros((0, MAX_INFLUENCES), dtype=np.int32)
        self.vertex_weights = np.zeros((0, MAX_INFLUENCES), dtype=np.float32)

        self.bind_pose_inverse: List[Transform] = []
        self.anim_pose: List[Transform] = []
        self.bind_pose_matrices = np.zeros((MAX_JOINTS, 4, 4), dtype=np.float32)
        self.anim_pose_matrices = np.zeros((MAX_JOINTS, 4, 4), dtype=np.float32)

        # Attribute buffers, filled by init_geometry / setup_skin
        self.tri_vertices = np.zeros((0, 3), dtype=np.float32)
        self.tri_normals = np.zeros((0, 3), dtype=np.float32)
        self.tri_indices = np.zeros((0, MAX_INFLUENCES), dtype=np.int32)
        self.tri_weights = np.zeros((0, MAX_INFLUENCES), dtype=np.float32)
        self.quad_vertices = np.zeros((0, 3), dtype=np.float32)
        self.quad_normals = np.zeros((0, 3), dtype=np.float32)
        self.quad_indices = np.zeros((0, MAX_INFLUENCES), dtype=np.int32)
        self.quad_weights = np.zeros((0, MAX_INFLUENCES), dtype=np.float32)

        # Model transform: rotation in degrees, applied Z, then Y, then X
        self.translation = np.zeros(3)
        self.rotation = np.zeros(3)
        self.scale = np.ones(3)
        self.color = np.array([0.8, 0.8, 0.8])

    def __repr__(self):
        return (f"SkeletonMesh(vertices={self.geometry.num_vertices}, "
                f"joints={len(self.bind_skeleton.joints)})")

    def clear(self):
        self.geometry = MeshGeometry()
        self.vertex_joint_indices = np.zeros((0, MAX_INFLUENCES), dtype=np.int32)
        self.vertex_weights = np.zeros((0, MAX_INFLUENCES), dtype=np.float32)

    def load(self, filenames: PathList, weights: PathList, bind_pose: str):
        """
        Load one or more OBJ files with one weights file each.

        Args:
            filenames: OBJ file path(s)
            weights: Weights file path(s), parallel to `filenames`
            bind_pose: BVH file whose frame 0 is the bind pose

        Raises:
            MocapError: if the bind pose cannot be loaded
            OSError, MocapParseError: if a geometry or weights file is bad
        """
        if isinstance(filenames, str):
            filenames = [filenames]
        if isinstance(weights, str):
            weights = [weights]
        if len(filenames) != len(weights):
            raise ValueError("one weights file is needed per OBJ file")

        self.clear()
        self.init_skeleton(bind_pose)
        for obj_file, weights_file in zip(filenames, weights):
            offset = self.geometry.num_vertices
            self.load_geometry(obj_file)
            self.load_skin_weights(weights_file, self.geometry.num_vertices - offset)
        self.init_geometry()
        self.setup_skin(self.bind_skeleton)

    def load_preset(self, name: str, skin_dir: str):
        """Load one of the bundled characters ('turtle', 'bear') from `skin_dir`"""
        objs, weights, bind_pose = PRESETS[name]
        self.load([os.path.join(skin_dir, f) for f in objs],
                  [os.path.join(skin_dir, f) for f in weights],
                  os.path.join(skin_dir, bind_pose))

    def init_skeleton(self, bind_pose_file: str):
        player = Player()
        if not player.load_bvh(bind_pose_file) or player.motion.num_frames == 0:
            logger.error("Cannot load bind pose %s", bind_pose_file)
            raise MocapError(f"cannot load bind pose {bind_pose_file}")
        self.bind_skeleton = player.skeleton
        self.bind_skeleton.read_from_frame(player.motion.get_frame(0))

    def load_geometry(self, filename: str):
        OBJParser(self.geometry).parse(filename)

    def load_skin_weights(self, filename: str, num_vertices: Optional[int] = None):
        """
        Append the influences of the vertices of the last loaded OBJ file.

        Args:
            filename: Weights file, one row per vertex
            num_vertices: Vertex count of that OBJ file; rows are padded with
                empty influences or cut to it. Defaults to the vertices not
                yet covered by a weights file.
        """
        if num_vertices is None:
            num_vertices = self.geometry.num_vertices - len(self.vertex_weights)
        names, table = read_weight_table(filename)
        joint_ids = {joint.name: joint.id for joint in self.bind_skeleton.joints}
        indices, weights = compute_vertex_influences(names, table, joint_ids)

        if len(weights) != num_vertices:
            logger.warning("%s: %d weight rows for %d vertices", filename, len(weights), num_vertices)
            indices = self._fit_rows(indices, num_vertices)
            weights = self._fit_rows(weights, num_vertices)
        self.vertex_joint_indices = np.concatenate([self.vertex_joint_indices, indices])
        self.vertex_weights = np.concatenate([self.vertex_weights, weights])

    @staticmethod
    def _fit_rows(rows: np.ndarray, count: int) -> np.ndarray:
        if len(rows) >= count:
            return rows[:count]
        return np.concatenate([rows, np.zeros((count - len(rows), MAX_INFLUENCES), dtype=rows.dtype)])

    def _face_vertices(self, faces) -> List[int]:
        return [v[0] for face in faces for v in face]

    def _gather(self, faces, slot: int, source) -> np.ndarray:
        if not source:
            return np.zeros((0, 3), dtype=np.float32)
        # Corners without an index in this slot get zeros
        return np.array([source[v[slot]] if v[slot] >= 0 else (0.0, 0.0, 0.0)
                         for face in faces for v in face], dtype=np.float32).reshape(-1, 3)

    def init_geometry(self):
        """Flatten triangle and quad corners into position/normal buffers"""
        g = self.geometry
        self.tri_vertices = self._gather(g.tris, 0, g.vertices)
        self.quad_vertices = self._gather(g.quads, 0, g.vertices)
        self.tri_normals = self._gather(g.tris, 2, g.normals)
        self.quad_normals = self._gather(g.quads, 2, g.normals)

    def setup_skin(self, skeleton: Skeleton):
        """
        Cache the bind pose and build the skinning attribute buffers.

        Raises:
            ValueError: if the skeleton has more joints than the shader tables hold
        """
        if len(skeleton.joints) > MAX_JOINTS:
            raise ValueError(f"skeleton has {len(skeleton.joints)} joints, skinning supports {MAX_JOINTS}")

        self.bind_pose_inverse = [joint.global_transform.inverse() for joint in skeleton.joints]
        self.bind_pose_matrices = self._table(self.bind_pose_inverse)
        self.update_skin(skeleton)

        g = self.geometry
        self.tri_indices = self._attributes(self.vertex_joint_indices, g.tris)
        self.tri_weights = self._attributes(self.vertex_weights, g.tris)
        self.quad_indices = self._attributes(self.vertex_joint_indices, g.quads)
        self.quad_weights = self._attributes(self.vertex_weights, g.quads)

    def _attributes(self, per_vertex: np.ndarray, faces) -> np.ndarray:
        corners = self._face_vertices(faces)
        if not corners:
            return np.zeros((0, MAX_INFLUENCES), dtype=per_vertex.dtype)
        # Vertices without a weights row get no influence
        missing = self.geometry.num_vertices - len(per_vertex)
        if missing > 0:
            per_vertex = np.concatenate([per_vertex, np.zeros((missing, MAX_INFLUENCES), dtype=per_vertex.dtype)])
        return per_vertex[corners]

    @staticmethod
    def _table(transforms: List[Transform]) -> np.ndarray:
        table = np.zeros((MAX_JOINTS, 4, 4), dtype=np.float32)
        for i, transform in enumerate(transforms):
            table[i] = transform.as_matrix()
        return table

    def update_skin(self, skeleton: Skeleton):
        """Snapshot the global transforms of the animated skeleton"""
        self.anim_pose = [joint.global_transform.copy() for joint in skeleton.joints]
        self.anim_pose_matrices = self._table(self.anim_pose)

    def set_pose(self, frame: Frame, skeleton: Skeleton):
        """
        Drive the bind skeleton from a frame of another skeleton.

        Rotations are matched by joint name; bind joints without a match keep
        their current rotation. The root translation is converted to mesh units.
        """
        root = self.bind_skeleton.root
        root.set_local_translation(frame.root_translation * INCH_2_CM)

        for joint in self.bind_skeleton.joints:
            driver = skeleton.get_joint_by_name(joint.name)
            if driver is None:
                continue
            joint.set_local_rotation(frame.rotations[driver.id])

        self.bind_skeleton.update_fk()
        self.update_skin(self.bind_skeleton)

    def skinning_matrices(self) -> np.ndarray:
        """anim[i] @ bind_inv[i] for every joint, (MAX_JOINTS, 4, 4)"""
        return np.matmul(self.anim_pose_matrices.astype(float), self.bind_pose_matrices.astype(float))

    def skin_vertices(self) -> np.ndarray:
        """Deformed model-space positions of every vertex, computed on the CPU"""
        if not self.geometry.vertices:
            return np.zeros((0, 3))
        positions = np.asarray(self.geometry.vertices, dtype=float)
        homogeneous = np.hstack([positions, np.ones((len(positions), 1))])

        matrices = self.skinning_matrices()
        count = min(len(positions), len(self.vertex_weights))
        result = positions.copy()
        for v in range(count):
            blended = np.zeros(4)
            for index, weight in zip(self.vertex_joint_indices[v], self.vertex_weights[v]):
                if weight > 0.0:
                    blended += weight * (matrices[index] @ homogeneous[v])
            result[v] = blended[:3]
        return result

    def gl_buffers(self):
        """(bind_inv, anim) tables flattened to (MAX_JOINTS, 16) in OpenGL column-major order"""
        to_gl = lambda table: np.ascontiguousarray(table.transpose(0, 2, 1)).reshape(MAX_JOINTS, 16)
        return to_gl(self.bind_pose_matrices), to_gl(self.anim_pose_matrices)

    def local_to_world(self) -> np.ndarray:
        rx, ry, rz = np.radians(self.rotation)
        rotation = (QuaternionMath.axis_rotation(0, rx)
                    @ QuaternionMath.axis_rotation(1, ry)
                    @ QuaternionMath.axis_rotation(2, rz))
        m = np.eye(4)
        m[:3, :3] = rotation @ np.diag(self.scale)
        m[:3, 3] = self.translation
        return m

    def world_to_local(self) -> np.ndarray:
        return np.linalg.inv(self.local_to_world())

    def get_bounding_box(self):
        """
        World-space (min, max) of the model-space vertex bounds.

        Returns:
            None when no vertices are loaded
        """
        bounds = self.geometry.bounds()
        if bounds is None:
            return None
        lower, upper = bounds
        corners = np.array([[x, y, z, 1.0]
                            for x in (lower[0], upper[0])
                            for y in (lower[1], upper[1])
                            for z in (lower[2], upper[2])])
        world = (self.local_to_world() @ corners.T).T[:, :3]
        return world.min(axis=0), world.max(axis=0)

    @property
    def num_joints(self) -> Optional[int]:
        return len(self.bind_skeleton.joints)

"""
Data structures for skeletal motion.

Contains the Joint node of the skeleton hierarchy (with its local and global
rigid transforms) and the Frame pose record shared by both file formats.
"""

from typing import List, Optional

import numpy as np

from .config import DEG2RAD, DOF, Convention, RotationOrder
from .quat_math import QuaternionMath
from .transform import Transform


SITE_PREFIX = "Site"


class Joint:
    """
    Represents a joint in the skeleton hierarchy.

    The local transform places the joint relative to its parent; the global
    transform is derived by forward kinematics. Under the AMC convention the
    joint also keeps its rest axis rotation `axis_rotation` (A) and bone
    translation `bone_translation` (b), and authored rotations R are stored
    as A @ R @ A.T.
    """

    def __init__(self, name: str = "", joint_id: int = 0):
        self._id = joint_id
        self._name = ""
        self.name = name
        self.parent: Optional["Joint"] = None
        self.children: List["Joint"] = []
        self.channel_count = 0
        self.rotation_order = RotationOrder.XYZ
        self.dofs = DOF.ALL
        self.lower_limits = np.full(3, -360.0 * DEG2RAD)
        self.upper_limits = np.full(3, 360.0 * DEG2RAD)
        self.local = Transform()
        self.global_transform = Transform()
        self.axis_rotation = np.eye(3)
        self.bone_translation = np.zeros(3)
        self.convention = Convention.BVH

    def __repr__(self):
        return f"Joint(name={self.name!r}, id={self.id}, channels={self.channel_count})"

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str):
        self._name = value
        self._apply_site_name()

    @property
    def id(self) -> int:
        return self._id

    @id.setter
    def id(self, value: int):
        self._id = value
        self._apply_site_name()

    def _apply_site_name(self):
        if self._name.startswith(SITE_PREFIX):
            self._name = f"{SITE_PREFIX}{self._id}"

    @property
    def is_site(self) -> bool:
        return self.channel_count == 0 and not self.children

    @property
    def is_amc(self) -> bool:
        return self.convention is Convention.AMC

    def set_rotation_order(self, order):
        """Accept a RotationOrder, an order string or BVH channel names"""
        self.rotation_order = order if isinstance(order, RotationOrder) else RotationOrder.parse(order)

    def set_local_translation(self, translation):
        """Set the local translation; it also becomes the bone translation"""
        self.local.translation = np.array(translation, dtype=float)
        self.bone_translation = np.array(translation, dtype=float)

    def set_local_rotation(self, rotation: np.ndarray):
        """
        Store an authored rotation as the local rotation.

        Under the AMC convention (non-root joints only) the rotation is
        expressed in the bone's axis frame, so the stored local rotation is
        A @ R @ A.T and the local translation follows as L @ b.
        """
        rotation = np.asarray(rotation, dtype=float)
        if self.is_amc and self.parent is not None:
            a = self.axis_rotation
            self.local.rotation = a @ rotation @ a.T
            self.local.translation = self.local.rotation @ self.bone_translation
        else:
            self.local.rotation = rotation.copy()

    def authored_rotation(self) -> np.ndarray:
        """Inverse of set_local_rotation: the rotation as a frame stores it"""
        if self.is_amc:
            a = self.axis_rotation
            return a.T @ self.local.rotation @ a
        return self.local.rotation.copy()

    def update_transformation(self, recursive: bool = False):
        """Recompute the global transform, optionally for all descendants"""
        if self.parent is None:
            self.global_transform = self.local.copy()
        else:
            self.global_transform = self.parent.global_transform * self.local

        if recursive:
            for child in self.children:
                child.update_transformation(True)

    def within_limits(self, angles: np.ndarray) -> bool:
        """Check (x, y, z) radians against the joint limits of the active DOFs"""
        for axis in self.dofs.axes():
            if not self.lower_limits[axis] <= angles[axis] <= self.upper_limits[axis]:
                return False
        return True

    def copy(self) -> "Joint":
        """Copy every field except the parent/children links"""
        joint = Joint(joint_id=self._id)
        joint._name = self._name
        joint.channel_count = self.channel_count
        joint.rotation_order = self.rotation_order
        joint.dofs = self.dofs
        joint.lower_limits = self.lower_limits.copy()
        joint.upper_limits = self.upper_limits.copy()
        joint.local = self.local.copy()
        joint.global_transform = self.global_transform.copy()
        joint.axis_rotation = self.axis_rotation.copy()
        joint.bone_translation = self.bone_translation.copy()
        joint.convention = self.convention
        return joint

    @staticmethod
    def attach(parent: Optional["Joint"], child: Optional["Joint"]):
        """Make `child` a child of `parent`, detaching it from any old parent"""
        if child is None:
            return
        old_parent = child.parent
        if old_parent is not None:
            old_parent.children = [c for c in old_parent.children if c is not child]
        child.parent = parent
        if parent is not None:
            parent.children.append(child)

    @staticmethod
    def detach(parent: Optional["Joint"], child: Optional["Joint"]):
        if parent is None or child is None:
            return
        parent.children = [c for c in parent.children if c is not child]
        if child.parent is parent:
            child.parent = None


class Frame:
    """
    One pose: root translation plus a rotation per joint.

    Rotation matrices are the source of truth; the quaternion array is kept
    coherent by every setter.
    """

    def __init__(self, num_joints: int = 0):
        self.root_translation = np.zeros(3)
        self.rotations = np.tile(np.eye(3), (num_joints, 1, 1))
        self.quaternions = np.tile(np.array([1.0, 0.0, 0.0, 0.0]), (num_joints, 1))

    def __repr__(self):
        return f"Frame(num_joints={self.num_joints}, root={self.root_translation.tolist()})"

    @property
    def num_joints(self) -> int:
        return len(self.rotations)

    def set_num_joints(self, count: int):
        """Resize; new joints get the identity rotation"""
        current = self.num_joints
        if count <= current:
            self.rotations = self.rotations[:count].copy()
            self.quaternions = self.quaternions[:count].copy()
            return
        extra = count - current
        self.rotations = np.concatenate([self.rotations.reshape(-1, 3, 3), np.tile(np.eye(3), (extra, 1, 1))])
        self.quaternions = np.concatenate([
            self.quaternions.reshape(-1, 4),
            np.tile(np.array([1.0, 0.0, 0.0, 0.0]), (extra, 1)),
        ])

    def set_root_translation(self, translation):
        self.root_translation = np.array(translation, dtype=float)

    def get_joint_rotation(self, index: int) -> np.ndarray:
        return self.rotations[index].copy()

    def get_joint_quaternion(self, index: int) -> np.ndarray:
        return self.quaternions[index].copy()

    def set_joint_rotation(self, index: int, rotation: np.ndarray):
        self.rotations[index] = rotation
        self.quaternions[index] = QuaternionMath.matrix_to_quat(rotation)

    def set_joint_quaternion(self, index: int, quaternion: np.ndarray):
        q = QuaternionMath.quat_normalize(np.asarray(quaternion, dtype=float))
        self.quaternions[index] = q
        self.rotations[index] = QuaternionMath.quat_to_matrix(q)

    def set_joint_euler(self, index: int, angles: np.ndarray, order: RotationOrder = RotationOrder.ZXY):
        """Set a joint rotation from (x, y, z) radians composed in `order`"""
        self.set_joint_rotation(index, QuaternionMath.euler_to_matrix(angles, order))

    def copy(self) -> "Frame":
        frame = Frame()
        frame.root_translation = self.root_translation.copy()
        frame.rotations = self.rotations.copy()
        frame.quaternions = self.quaternions.copy()
        return frame

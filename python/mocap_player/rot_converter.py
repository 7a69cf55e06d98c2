"""
Rotation conversion utilities for the BVH and AMC codecs.

Handles conversion between the per-joint channel values written in the files
(degrees) and rotation matrices, and rebasing rotations between a bone's AMC
axis frame and its parent frame.
"""

from typing import Sequence

import numpy as np

from .config import DEG2RAD, DOF, RAD2DEG, RotationOrder
from .quat_math import QuaternionMath


class RotationConverter:
    """Handles rotation conversions for motion data"""

    @staticmethod
    def channels_to_matrix(values: Sequence[float], order: RotationOrder) -> np.ndarray:
        """
        Build a rotation from BVH channel values.

        The values are in channel order (r1, r2, r3) and map to axes through
        the order, e.g. zxy: r1 = Z, r2 = X, r3 = Y.

        Args:
            values: Three channel values in degrees
            order: The joint's rotation order

        Returns:
            3x3 rotation matrix
        """
        angles = np.zeros(3)
        for value, axis in zip(values, order.axes):
            angles[axis] = value * DEG2RAD
        return QuaternionMath.euler_to_matrix(angles, order)

    @staticmethod
    def matrix_to_channels(rotation: np.ndarray, order: RotationOrder) -> np.ndarray:
        """Decompose into BVH channel values (degrees, channel order)"""
        angles = QuaternionMath.matrix_to_euler(rotation, order)
        return np.array([angles[axis] for axis in order.axes]) * RAD2DEG

    @staticmethod
    def xyz_to_matrix(angles_deg: Sequence[float], order: RotationOrder) -> np.ndarray:
        """Build a rotation from (x, y, z) degrees composed in `order`"""
        return QuaternionMath.euler_to_matrix(np.asarray(angles_deg, dtype=float) * DEG2RAD, order)

    @staticmethod
    def matrix_to_xyz(rotation: np.ndarray, order: RotationOrder) -> np.ndarray:
        """Decompose into (x, y, z) degrees"""
        return QuaternionMath.matrix_to_euler(rotation, order) * RAD2DEG

    @staticmethod
    def expand_dofs(values: Sequence[float], dofs: DOF) -> np.ndarray:
        """
        Spread the values of the active DOFs into an (x, y, z) vector.

        AMC lines list only the active axes, in X, Y, Z order.
        """
        angles = np.zeros(3)
        for value, axis in zip(values, dofs.axes()):
            angles[axis] = value
        return angles

    @staticmethod
    def mask_dofs(angles: Sequence[float], dofs: DOF) -> list:
        """Values of the active DOFs of an (x, y, z) vector, in X, Y, Z order"""
        return [angles[axis] for axis in dofs.axes()]

    @staticmethod
    def to_parent_frame(rotation: np.ndarray, axis_rotation: np.ndarray) -> np.ndarray:
        """Rebase a rotation given in a bone's axis frame: A @ R @ A.T"""
        return axis_rotation @ rotation @ axis_rotation.T

    @staticmethod
    def to_bone_frame(rotation: np.ndarray, axis_rotation: np.ndarray) -> np.ndarray:
        """Inverse of to_parent_frame: A.T @ L @ A"""
        return axis_rotation.T @ rotation @ axis_rotation

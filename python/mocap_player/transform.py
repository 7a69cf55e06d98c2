"""
Rigid transforms (translation + rotation) used by the forward kinematics.
"""

import numpy as np

from .quat_math import QuaternionMath


class Transform:
    """A rigid transform x -> R @ x + t"""

    def __init__(self, translation=None, rotation=None):
        self.translation = np.zeros(3) if translation is None else np.array(translation, dtype=float)
        self.rotation = np.eye(3) if rotation is None else np.array(rotation, dtype=float)

    def __mul__(self, other: "Transform") -> "Transform":
        """Compose: (self * other) applies `other` first"""
        return Transform(
            self.translation + self.rotation @ other.translation,
            self.rotation @ other.rotation,
        )

    def __repr__(self):
        return f"Transform(translation={self.translation.tolist()}, rotation={self.rotation.tolist()})"

    def copy(self) -> "Transform":
        return Transform(self.translation, self.rotation)

    def inverse(self) -> "Transform":
        rotation = self.rotation.T
        return Transform(-(rotation @ self.translation), rotation)

    def apply(self, point) -> np.ndarray:
        """Transform a point"""
        return self.rotation @ np.asarray(point, dtype=float) + self.translation

    @staticmethod
    def lerp(t: float, t0: "Transform", t1: "Transform") -> "Transform":
        """Blend translations linearly and rotations by slerp"""
        q0 = QuaternionMath.matrix_to_quat(t0.rotation)
        q1 = QuaternionMath.matrix_to_quat(t1.rotation)
        q = QuaternionMath.slerp(t, q0, q1)
        return Transform(
            t0.translation * (1.0 - t) + t1.translation * t,
            QuaternionMath.quat_to_matrix(QuaternionMath.quat_normalize(q)),
        )

    def as_matrix(self) -> np.ndarray:
        """Homogeneous 4x4 matrix with the translation in the last column"""
        m = np.eye(4)
        m[:3, :3] = self.rotation
        m[:3, 3] = self.translation
        return m

    @staticmethod
    def from_matrix(m: np.ndarray) -> "Transform":
        m = np.asarray(m, dtype=float)
        return Transform(m[:3, 3], m[:3, :3])

    def to_gl_matrix(self) -> np.ndarray:
        """16 values in OpenGL column-major layout (translation at 12..14)"""
        return self.as_matrix().T.reshape(16)

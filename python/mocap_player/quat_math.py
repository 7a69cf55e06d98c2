"""
Rotation mathematics utilities.

Provides Euler angle composition and decomposition in all six axis orders,
quaternion operations (multiplication, inverse, slerp, axis-angle) and
conversions between quaternions and rotation matrices.

Conventions:
    - Rotation matrices are 3x3 numpy arrays acting on column vectors.
    - Quaternions are numpy arrays [w, x, y, z].
    - Euler angles are always passed keyed by axis, (x, y, z), in radians;
      the order only decides how they are composed: R = R_first @ R_mid @ R_last.
"""

import numpy as np

from .config import EPSILON, RotationOrder


HALF_PI = np.pi / 2.0


class QuaternionMath:
    """Quaternion and rotation utilities"""

    @staticmethod
    def axis_rotation(axis: int, angle: float) -> np.ndarray:
        """Rotation matrix of `angle` radians about X (0), Y (1) or Z (2)"""
        c, s = np.cos(angle), np.sin(angle)
        if axis == 0:
            return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]])
        if axis == 1:
            return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])
        if axis == 2:
            return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])
        raise ValueError(f"Invalid axis index: {axis}")

    @staticmethod
    def euler_to_matrix(angles: np.ndarray, order: RotationOrder) -> np.ndarray:
        """
        Compose a rotation matrix from Euler angles.

        Args:
            angles: (x, y, z) angles in radians
            order: Composition order, e.g. ZXY gives Rz @ Rx @ Ry

        Returns:
            3x3 rotation matrix
        """
        m = np.eye(3)
        for axis in order.axes:
            m = m @ QuaternionMath.axis_rotation(axis, angles[axis])
        return m

    @staticmethod
    def matrix_to_euler(m: np.ndarray, order: RotationOrder) -> np.ndarray:
        """
        Decompose a rotation matrix into Euler angles.

        The middle angle lies in [-pi/2, pi/2]. Within EPSILON of the
        gimbal-lock boundary the decomposition is not unique; the last
        angle of the order is then set to zero.

        Args:
            m: Orthonormal 3x3 rotation matrix
            order: Order the matrix was composed in

        Returns:
            (x, y, z) angles in radians
        """
        decompose = _DECOMPOSITIONS[order]
        return decompose(np.asarray(m, dtype=float))

    @staticmethod
    def quat_multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
        """Multiply two quaternions"""
        w1, x1, y1, z1 = q1
        w2, x2, y2, z2 = q2

        return np.array([
            w1*w2 - x1*x2 - y1*y2 - z1*z2,
            w1*x2 + x1*w2 + y1*z2 - z1*y2,
            w1*y2 - x1*z2 + y1*w2 + z1*x2,
            w1*z2 + x1*y2 - y1*x2 + z1*w2
        ])

    @staticmethod
    def quat_inverse(q: np.ndarray) -> np.ndarray:
        """Compute quaternion inverse"""
        norm_sq = np.sum(q**2)
        return np.array([q[0], -q[1], -q[2], -q[3]]) / norm_sq

    @staticmethod
    def quat_normalize(q: np.ndarray) -> np.ndarray:
        norm = np.linalg.norm(q)
        if norm < EPSILON:
            return np.array([1.0, 0.0, 0.0, 0.0])
        return np.asarray(q, dtype=float) / norm

    @staticmethod
    def matrix_to_quat(m: np.ndarray) -> np.ndarray:
        """
        Convert a rotation matrix to a unit quaternion [w, x, y, z].

        Estimates the squared magnitude of each component from the diagonal
        and solves from the largest one for numerical stability.
        """
        m = np.asarray(m, dtype=float)
        w_sq = 0.25 * (1 + m[0, 0] + m[1, 1] + m[2, 2])
        x_sq = 0.25 * (1 + m[0, 0] - m[1, 1] - m[2, 2])
        y_sq = 0.25 * (1 - m[0, 0] + m[1, 1] - m[2, 2])
        z_sq = 0.25 * (1 - m[0, 0] - m[1, 1] + m[2, 2])
        largest = max(w_sq, x_sq, y_sq, z_sq)

        if w_sq == largest:
            w = np.sqrt(w_sq)
            q = [w,
                 0.25 * (m[2, 1] - m[1, 2]) / w,
                 0.25 * (m[0, 2] - m[2, 0]) / w,
                 0.25 * (m[1, 0] - m[0, 1]) / w]
        elif x_sq == largest:
            x = np.sqrt(x_sq)
            q = [0.25 * (m[2, 1] - m[1, 2]) / x,
                 x,
                 0.25 * (m[0, 1] + m[1, 0]) / x,
                 0.25 * (m[0, 2] + m[2, 0]) / x]
        elif y_sq == largest:
            y = np.sqrt(y_sq)
            q = [0.25 * (m[0, 2] - m[2, 0]) / y,
                 0.25 * (m[0, 1] + m[1, 0]) / y,
                 y,
                 0.25 * (m[1, 2] + m[2, 1]) / y]
        else:
            z = np.sqrt(z_sq)
            q = [0.25 * (m[1, 0] - m[0, 1]) / z,
                 0.25 * (m[0, 2] + m[2, 0]) / z,
                 0.25 * (m[1, 2] + m[2, 1]) / z,
                 z]
        return QuaternionMath.quat_normalize(np.array(q))

    @staticmethod
    def quat_to_matrix(q: np.ndarray) -> np.ndarray:
        """Convert a unit quaternion [w, x, y, z] to a rotation matrix"""
        w, x, y, z = q
        tx, ty, tz = 2.0 * x, 2.0 * y, 2.0 * z
        twx, twy, twz = tx * w, ty * w, tz * w
        txx, txy, txz = tx * x, ty * x, tz * x
        tyy, tyz, tzz = ty * y, tz * y, tz * z

        return np.array([
            [1.0 - tyy - tzz, txy - twz, txz + twy],
            [txy + twz, 1.0 - txx - tzz, tyz - twx],
            [txz - twy, tyz + twx, 1.0 - txx - tyy],
        ])

    @staticmethod
    def slerp(t: float, q0: np.ndarray, q1: np.ndarray) -> np.ndarray:
        """Spherical interpolation along the shortest arc"""
        target = np.asarray(q1, dtype=float)
        dot = float(np.dot(q0, target))
        if dot < 0:
            target = -target
            dot = -dot

        angle = np.arccos(np.clip(dot, -1.0, 1.0))
        sin_a = np.sin(angle)
        if sin_a > 1e-6:
            return (np.sin(angle * (1 - t)) * np.asarray(q0) + np.sin(angle * t) * target) / sin_a
        return np.array(q0, dtype=float)

    @staticmethod
    def quat_from_axis_angle(axis: np.ndarray, angle: float) -> np.ndarray:
        half = angle * 0.5
        sn = np.sin(half)
        return np.array([np.cos(half), axis[0] * sn, axis[1] * sn, axis[2] * sn])

    @staticmethod
    def quat_to_axis_angle(q: np.ndarray):
        """
        Convert a unit quaternion to (axis, angle).

        Returns a zero axis and zero angle for the identity rotation.
        """
        length = np.linalg.norm(q[1:])
        if length < EPSILON:
            return np.zeros(3), 0.0
        angle = 2.0 * np.arccos(np.clip(q[0], -1.0, 1.0))
        return np.asarray(q[1:], dtype=float) / length, angle


def _locked(mid: float) -> bool:
    """True within EPSILON of the gimbal-lock boundary of the middle angle"""
    return mid <= -HALF_PI + EPSILON or mid >= HALF_PI - EPSILON


def _asin(value: float) -> float:
    return float(np.arcsin(np.clip(value, -1.0, 1.0)))


def _lock_solution(v, order: RotationOrder, mid: float) -> np.ndarray:
    """
    Angles at gimbal lock with the last angle set to zero.

    Then v = R_first(a) @ R_mid(b), whose mid column is R_first(a) e_mid.
    """
    first, middle, last = order.axes
    sign = 1.0 if (middle - first) % 3 == 1 else -1.0
    angles = np.zeros(3)
    angles[first] = np.arctan2(sign * v[last, middle], v[middle, middle])
    angles[middle] = mid
    return angles


def _to_xyz(v):
    y = _asin(v[0, 2])
    if _locked(y):
        return _lock_solution(v, RotationOrder.XYZ, y)
    return np.array([np.arctan2(-v[1, 2], v[2, 2]), y, np.arctan2(-v[0, 1], v[0, 0])])


def _to_xzy(v):
    z = _asin(-v[0, 1])
    if _locked(z):
        return _lock_solution(v, RotationOrder.XZY, z)
    return np.array([np.arctan2(v[2, 1], v[1, 1]), np.arctan2(v[0, 2], v[0, 0]), z])


def _to_yxz(v):
    x = _asin(-v[1, 2])
    if _locked(x):
        return _lock_solution(v, RotationOrder.YXZ, x)
    return np.array([x, np.arctan2(v[0, 2], v[2, 2]), np.arctan2(v[1, 0], v[1, 1])])


def _to_yzx(v):
    z = _asin(v[1, 0])
    if _locked(z):
        return _lock_solution(v, RotationOrder.YZX, z)
    return np.array([np.arctan2(-v[1, 2], v[1, 1]), np.arctan2(-v[2, 0], v[0, 0]), z])


def _to_zxy(v):
    x = _asin(v[2, 1])
    if _locked(x):
        return _lock_solution(v, RotationOrder.ZXY, x)
    return np.array([x, np.arctan2(-v[2, 0], v[2, 2]), np.arctan2(-v[0, 1], v[1, 1])])


def _to_zyx(v):
    y = -_asin(v[2, 0])
    if _locked(y):
        return _lock_solution(v, RotationOrder.ZYX, y)
    return np.array([np.arctan2(v[2, 1], v[2, 2]), y, np.arctan2(v[1, 0], v[0, 0])])


_DECOMPOSITIONS = {
    RotationOrder.XYZ: _to_xyz,
    RotationOrder.XZY: _to_xzy,
    RotationOrder.YXZ: _to_yxz,
    RotationOrder.YZX: _to_yzx,
    RotationOrder.ZXY: _to_zxy,
    RotationOrder.ZYX: _to_zyx,
}

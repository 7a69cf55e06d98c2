"""
test_quat_math.py - Euler orders, quaternions and rigid transforms
"""

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from mocap_player.config import EPSILON, RotationOrder
from mocap_player.quat_math import QuaternionMath
from mocap_player.transform import Transform

ALL_ORDERS = list(RotationOrder)


def random_angles(rng):
    """(x, y, z) radians with every angle safely inside (-pi/2, pi/2)"""
    return rng.uniform(-1.4, 1.4, 3)


@pytest.mark.parametrize("order", ALL_ORDERS)
def test_composition_matches_intrinsic_rotation(order):
    """R = R_first @ R_mid @ R_last is scipy's intrinsic rotation in the same order"""
    rng = np.random.default_rng(3)
    for _ in range(20):
        angles = random_angles(rng)
        ours = QuaternionMath.euler_to_matrix(angles, order)
        in_order = [angles[axis] for axis in order.axes]
        expected = Rotation.from_euler(order.value.upper(), in_order).as_matrix()
        np.testing.assert_allclose(ours, expected, atol=1e-12)


@pytest.mark.parametrize("order", ALL_ORDERS)
def test_decompose_inverts_compose(order):
    rng = np.random.default_rng(4)
    for _ in range(50):
        angles = random_angles(rng)
        m = QuaternionMath.euler_to_matrix(angles, order)
        np.testing.assert_allclose(QuaternionMath.matrix_to_euler(m, order), angles, atol=1e-9)


@pytest.mark.parametrize("order", ALL_ORDERS)
@pytest.mark.parametrize("mid_sign", [1.0, -1.0])
def test_gimbal_lock_sets_last_angle_to_zero(order, mid_sign):
    """At the lock the decomposition still reproduces the matrix"""
    first, middle, last = order.axes
    angles = np.zeros(3)
    angles[first] = 0.3
    angles[middle] = mid_sign * np.pi / 2
    angles[last] = -0.7
    m = QuaternionMath.euler_to_matrix(angles, order)

    decomposed = QuaternionMath.matrix_to_euler(m, order)
    assert decomposed[last] == 0.0
    assert abs(decomposed[middle] - angles[middle]) < EPSILON
    np.testing.assert_allclose(QuaternionMath.euler_to_matrix(decomposed, order), m, atol=1e-6)


def test_axis_rotation_right_handed():
    rz = QuaternionMath.axis_rotation(2, np.pi / 2)
    np.testing.assert_allclose(rz @ [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], atol=1e-12)
    ry = QuaternionMath.axis_rotation(1, np.pi / 2)
    np.testing.assert_allclose(ry @ [0.0, 0.0, 1.0], [1.0, 0.0, 0.0], atol=1e-12)
    with pytest.raises(ValueError):
        QuaternionMath.axis_rotation(3, 0.1)


def test_quaternion_matrix_round_trip():
    rng = np.random.default_rng(5)
    for _ in range(50):
        m = Rotation.random(random_state=rng.integers(1 << 30)).as_matrix()
        q = QuaternionMath.matrix_to_quat(m)
        assert abs(np.linalg.norm(q) - 1.0) < 1e-12
        np.testing.assert_allclose(QuaternionMath.quat_to_matrix(q), m, atol=1e-9)


def test_quaternion_of_half_turns():
    """Largest-component branches other than w"""
    for axis in range(3):
        m = QuaternionMath.axis_rotation(axis, np.pi)
        q = QuaternionMath.matrix_to_quat(m)
        assert abs(q[axis + 1]) == pytest.approx(1.0)
        np.testing.assert_allclose(QuaternionMath.quat_to_matrix(q), m, atol=1e-12)


def test_quaternion_product_matches_matrix_product():
    a = QuaternionMath.quat_from_axis_angle(np.array([0.0, 0.0, 1.0]), 0.4)
    b = QuaternionMath.quat_from_axis_angle(np.array([1.0, 0.0, 0.0]), -1.1)
    product = QuaternionMath.quat_to_matrix(QuaternionMath.quat_multiply(a, b))
    expected = QuaternionMath.quat_to_matrix(a) @ QuaternionMath.quat_to_matrix(b)
    np.testing.assert_allclose(product, expected, atol=1e-12)

    identity = QuaternionMath.quat_multiply(a, QuaternionMath.quat_inverse(a))
    np.testing.assert_allclose(identity, [1.0, 0.0, 0.0, 0.0], atol=1e-12)


def test_axis_angle_round_trip():
    axis = np.array([1.0, 2.0, 2.0]) / 3.0
    q = QuaternionMath.quat_from_axis_angle(axis, 0.8)
    out_axis, angle = QuaternionMath.quat_to_axis_angle(q)
    np.testing.assert_allclose(out_axis, axis, atol=1e-12)
    assert angle == pytest.approx(0.8)

    zero_axis, zero_angle = QuaternionMath.quat_to_axis_angle(np.array([1.0, 0.0, 0.0, 0.0]))
    assert zero_angle == 0.0
    assert not zero_axis.any()


def test_slerp_halfway_and_shortest_arc():
    q0 = np.array([1.0, 0.0, 0.0, 0.0])
    q1 = QuaternionMath.quat_from_axis_angle(np.array([0.0, 1.0, 0.0]), 1.0)
    half = QuaternionMath.slerp(0.5, q0, q1)
    _, angle = QuaternionMath.quat_to_axis_angle(half)
    assert angle == pytest.approx(0.5)

    # -q1 is the same rotation; slerp must not take the long way round
    half_neg = QuaternionMath.slerp(0.5, q0, -q1)
    np.testing.assert_allclose(QuaternionMath.quat_to_matrix(half_neg),
                               QuaternionMath.quat_to_matrix(half), atol=1e-12)


def test_transform_composition_and_inverse():
    a = Transform([1.0, 2.0, 3.0], QuaternionMath.axis_rotation(2, np.pi / 2))
    b = Transform([1.0, 0.0, 0.0], QuaternionMath.axis_rotation(0, 0.3))
    ab = a * b
    np.testing.assert_allclose(ab.translation, [1.0, 3.0, 3.0], atol=1e-12)
    np.testing.assert_allclose(ab.apply([0.5, 0.0, 0.0]), a.apply(b.apply([0.5, 0.0, 0.0])), atol=1e-12)

    identity = ab * ab.inverse()
    np.testing.assert_allclose(identity.translation, np.zeros(3), atol=1e-12)
    np.testing.assert_allclose(identity.rotation, np.eye(3), atol=1e-12)


def test_transform_matrix_layouts():
    t = Transform([4.0, 5.0, 6.0], QuaternionMath.axis_rotation(1, 0.2))
    m = t.as_matrix()
    np.testing.assert_allclose(m[:3, 3], [4.0, 5.0, 6.0])
    np.testing.assert_allclose(t.to_gl_matrix()[12:15], [4.0, 5.0, 6.0])
    back = Transform.from_matrix(m)
    np.testing.assert_allclose(back.rotation, t.rotation)


def test_transform_lerp_endpoints():
    t0 = Transform([0.0, 0.0, 0.0])
    t1 = Transform([2.0, 0.0, 0.0], QuaternionMath.axis_rotation(2, 1.0))
    mid = Transform.lerp(0.5, t0, t1)
    np.testing.assert_allclose(mid.translation, [1.0, 0.0, 0.0])
    np.testing.assert_allclose(mid.rotation, QuaternionMath.axis_rotation(2, 0.5), atol=1e-12)
    np.testing.assert_allclose(Transform.lerp(1.0, t0, t1).rotation, t1.rotation, atol=1e-12)

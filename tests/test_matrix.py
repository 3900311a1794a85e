import math

import pytest

from wadengine import matrix
from wadengine.matrix import Mat4
from wadengine.vector import Vec3


def _apply(m: Mat4, point: Vec3) -> tuple[float, float, float, float]:
    """Transform a point given as a row vector with w = 1."""
    row = (point.x, point.y, point.z, 1.0)
    return tuple(sum(row[k] * m[k][j] for k in range(4)) for j in range(4))


def _sample() -> Mat4:
    return Mat4(
        (
            (1.0, 2.0, 3.0, 4.0),
            (5.0, 6.0, 7.0, 8.0),
            (9.0, 10.0, 11.0, 12.0),
            (13.0, 14.0, 15.0, 16.0),
        )
    )


def test_default_matrix_is_zero():
    assert Mat4().flat() == (0.0,) * 16


def test_rejects_wrong_shape():
    with pytest.raises(ValueError):
        Mat4(((1.0, 2.0, 3.0),) * 4)
    with pytest.raises(ValueError):
        Mat4(((1.0, 2.0, 3.0, 4.0),) * 3)


def test_identity_is_neutral():
    m = _sample()
    assert matrix.identity() @ m == m
    assert m @ matrix.identity() == m


def test_flat_is_row_major():
    assert _sample().flat() == tuple(float(v) for v in range(1, 17))


def test_matmul_is_associative():
    a = _sample()
    b = matrix.rotate(Vec3(1.0, 2.0, 3.0), 0.7)
    c = matrix.translate(Vec3(4.0, -1.0, 2.0))
    assert ((a @ b) @ c).flat() == pytest.approx((a @ (b @ c)).flat())


def test_matmul_rejects_other_types():
    with pytest.raises(TypeError):
        _sample() @ 3


def test_translate_moves_point():
    t = Vec3(4.0, -2.0, 7.5)
    p = Vec3(1.0, 1.0, 1.0)
    assert _apply(matrix.translate(t), p) == pytest.approx((*(p + t), 1.0))


def test_translations_compose():
    a = Vec3(1.0, 2.0, 3.0)
    b = Vec3(-5.0, 0.5, 2.0)
    combined = matrix.translate(a) @ matrix.translate(b)
    assert combined.flat() == pytest.approx(matrix.translate(a + b).flat())


def test_scale_scales_point():
    s = Vec3(2.0, 3.0, 4.0)
    p = Vec3(1.0, -1.0, 0.5)
    expected = (p.x * s.x, p.y * s.y, p.z * s.z, 1.0)
    assert _apply(matrix.scale(s), p) == pytest.approx(expected)


def test_scale_xyz_on_identity_matches_scale():
    s = Vec3(50.0, 50.0, 50.0)
    assert matrix.scale_xyz(matrix.identity(), s) == matrix.scale(s)


def test_scale_xyz_keeps_translation():
    t = Vec3(3.0, 0.0, -4.0)
    m = matrix.scale_xyz(matrix.translate(t), Vec3(2.0, 2.0, 2.0))
    assert m[3][:3] == tuple(t)
    assert (m[0][0], m[1][1], m[2][2], m[3][3]) == (2.0, 2.0, 2.0, 1.0)


def test_rotate_preserves_length_and_axis():
    axis = Vec3(1.0, 1.0, 0.0)
    r = matrix.rotate(axis, 1.1)
    p = Vec3(3.0, -1.0, 2.0)
    x, y, z, w = _apply(r, p)
    assert Vec3(x, y, z).length() == pytest.approx(p.length())
    assert w == pytest.approx(1.0)
    assert _apply(r, axis)[:3] == pytest.approx(tuple(axis))


def test_rotate_inverse_angle_gives_identity():
    axis = Vec3(0.3, -2.0, 1.0)
    product = matrix.rotate(axis, 0.9) @ matrix.rotate(axis, -0.9)
    assert product.flat() == pytest.approx(matrix.identity().flat(), abs=1e-12)


def test_rotate_full_turn_is_identity():
    r = matrix.rotate(Vec3(0.0, 1.0, 0.0), 2.0 * math.pi)
    assert r.flat() == pytest.approx(matrix.identity().flat(), abs=1e-12)


def test_rotate_zero_axis_raises():
    with pytest.raises(ZeroDivisionError):
        matrix.rotate(Vec3(), 1.0)


def test_look_at_puts_eye_at_origin_and_target_ahead():
    eye = Vec3(10.0, 5.0, -3.0)
    target = Vec3(2.0, 1.0, 4.0)
    view = matrix.look_at(eye, target, Vec3(0.0, 1.0, 0.0))
    assert _apply(view, eye) == pytest.approx((0.0, 0.0, 0.0, 1.0), abs=1e-12)
    distance = (target - eye).length()
    assert _apply(view, target) == pytest.approx((0.0, 0.0, -distance, 1.0))


def test_perspective_maps_near_and_far_planes():
    near, far = 0.1, 1000.0
    proj = matrix.perspective(math.pi / 3.0, 800.0 / 600.0, near, far)
    _, _, z, w = _apply(proj, Vec3(0.0, 0.0, -near))
    assert z / w == pytest.approx(-1.0)
    _, _, z, w = _apply(proj, Vec3(0.0, 0.0, -far))
    assert z / w == pytest.approx(1.0)


def test_perspective_frustum_edge():
    fov, aspect = math.pi / 3.0, 2.0
    proj = matrix.perspective(fov, aspect, 1.0, 10.0)
    depth = 5.0
    edge_y = depth * math.tan(fov / 2.0)
    _, y, _, w = _apply(proj, Vec3(0.0, edge_y, -depth))
    assert y / w == pytest.approx(1.0)
    x, _, _, w = _apply(proj, Vec3(edge_y * aspect, 0.0, -depth))
    assert x / w == pytest.approx(1.0)


def test_ortho_maps_box_to_unit_cube():
    proj = matrix.ortho(-1.0, 3.0, 2.0, 6.0, 0.5, 8.0)
    assert _apply(proj, Vec3(-1.0, 2.0, -0.5)) == pytest.approx((-1.0, -1.0, -1.0, 1.0))
    assert _apply(proj, Vec3(3.0, 6.0, -8.0)) == pytest.approx((1.0, 1.0, 1.0, 1.0))


def test_ortho_unit_square_hud_projection():
    proj = matrix.ortho(0.0, 1.0, 0.0, 1.0, -1.0, 1.0)
    assert _apply(proj, Vec3(0.5, 0.5, 0.0)) == pytest.approx((0.0, 0.0, 0.0, 1.0))
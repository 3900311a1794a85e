"""4x4 matrices laid out for direct upload as OpenGL uniforms."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

from wadengine.vector import Vec3

Row = tuple[float, float, float, float]


def _zero_rows() -> tuple[Row, ...]:
    return tuple((0.0, 0.0, 0.0, 0.0) for _ in range(4))


@dataclass(frozen=True)
class Mat4:
    """An immutable 4x4 matrix stored as four rows.

    Translation lives in the last row, so points are row vectors that
    multiply the matrix from the left.
    """

    rows: tuple[Row, ...] = field(default_factory=_zero_rows)

    def __post_init__(self) -> None:
        rows = tuple(tuple(float(value) for value in row) for row in self.rows)
        if len(rows) != 4 or any(len(row) != 4 for row in rows):
            raise ValueError("a Mat4 needs exactly 4 rows of 4 values")
        object.__setattr__(self, "rows", rows)

    def __getitem__(self, index: int) -> Row:
        return self.rows[index]

    def __matmul__(self, other: object) -> Mat4:
        if not isinstance(other, Mat4):
            return NotImplemented
        columns = list(zip(*other.rows))
        return Mat4(
            tuple(
                tuple(sum(a * b for a, b in zip(row, column)) for column in columns)
                for row in self.rows
            )
        )

    def flat(self) -> tuple[float, ...]:
        """Return the sixteen values in storage order."""
        return tuple(value for row in self.rows for value in row)


def _from_rows(rows: Sequence[Sequence[float]]) -> Mat4:
    return Mat4(tuple(tuple(row) for row in rows))


def identity() -> Mat4:
    """Return the identity matrix."""
    return _from_rows(
        [[1.0 if i == j else 0.0 for j in range(4)] for i in range(4)]
    )


def scale_xyz(matrix: Mat4, factors: Vec3) -> Mat4:
    """Return matrix with its first three diagonal entries scaled."""
    rows = [list(row) for row in matrix.rows]
    for index, factor in enumerate(factors):
        rows[index][index] *= factor
    return _from_rows(rows)


def translate(translation: Vec3) -> Mat4:
    """Return a translation matrix."""
    rows = [list(row) for row in identity().rows]
    rows[3][:3] = list(translation)
    return _from_rows(rows)


def scale(factors: Vec3) -> Mat4:
    """Return a scaling matrix."""
    return _from_rows(
        [
            [factors.x, 0.0, 0.0, 0.0],
            [0.0, factors.y, 0.0, 0.0],
            [0.0, 0.0, factors.z, 0.0],
            [0.0, 0.0, 0.0, 1.0],
        ]
    )


def rotate(axis: Vec3, angle: float) -> Mat4:
    """Return a rotation of angle radians about axis."""
    c = math.cos(angle)
    s = math.sin(angle)
    t = 1.0 - c
    x, y, z = axis.normalize()
    return _from_rows(
        [
            [t * x * x + c, t * x * y - s * z, t * x * z + s * y, 0.0],
            [t * x * y + s * z, t * y * y + c, t * y * z - s * x, 0.0],
            [t * x * z - s * y, t * y * z + s * x, t * z * z + c, 0.0],
            [0.0, 0.0, 0.0, 1.0],
        ]
    )


def look_at(eye: Vec3, target: Vec3, up: Vec3) -> Mat4:
    """Return a view matrix for a camera at eye looking towards target."""
    zaxis = (target - eye).normalize()
    xaxis = up.cross(zaxis).normalize()
    yaxis = zaxis.cross(xaxis)
    return _from_rows(
        [
            [xaxis.x, yaxis.x, -zaxis.x, 0.0],
            [xaxis.y, yaxis.y, -zaxis.y, 0.0],
            [xaxis.z, yaxis.z, -zaxis.z, 0.0],
            [-xaxis.dot(eye), -yaxis.dot(eye), zaxis.dot(eye), 1.0],
        ]
    )


def perspective(fov: float, aspect_ratio: float, near: float, far: float) -> Mat4:
    """Return a perspective projection with a vertical field of view in radians."""
    tan_half_fov = math.tan(fov / 2.0)
    range_inv = 1.0 / (near - far)
    return _from_rows(
        [
            [1.0 / (aspect_ratio * tan_half_fov), 0.0, 0.0, 0.0],
            [0.0, 1.0 / tan_half_fov, 0.0, 0.0],
            [0.0, 0.0, (near + far) * range_inv, -1.0],
            [0.0, 0.0, 2.0 * near * far * range_inv, 0.0],
        ]
    )


def ortho(
    left: float, right: float, bottom: float, top: float, near: float, far: float
) -> Mat4:
    """Return an orthographic projection of the given box."""
    return _from_rows(
        [
            [2.0 / (right - left), 0.0, 0.0, 0.0],
            [0.0, 2.0 / (top - bottom), 0.0, 0.0],
            [0.0, 0.0, -2.0 / (far - near), 0.0],
            [
                -(right + left) / (right - left),
                -(top + bottom) / (top - bottom),
                -(far + near) / (far - near),
                1.0,
            ],
        ]
    )
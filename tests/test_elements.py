import numpy as np
import pytest

from pto.core.mesh import Mesh
from pto.numerical.elements import (
    constitutive_matrix,
    element_matrices,
    get_element_stiffness_matrix,
    strain_displacement_matrix,
)


def test_quad4_stiffness_closed_form_diagonal():
    nu = 0.3
    Ke = get_element_stiffness_matrix(nu, (1.0, 1.0))
    assert Ke.shape == (8, 8)
    assert Ke[0, 0] == pytest.approx((0.5 - nu / 6) / (1 - nu ** 2))


@pytest.mark.parametrize("spacing, n_zero", [
    ((1.0, 1.0), 3),
    ((2.0, 0.5), 3),
    ((1.0, 1.0, 1.0), 6),
    ((1.0, 2.0, 0.5), 6),
])
def test_stiffness_symmetric_with_rigid_body_null_space(spacing, n_zero):
    Ke = get_element_stiffness_matrix(0.3, spacing)
    assert np.allclose(Ke, Ke.T)

    eig = np.linalg.eigvalsh(Ke)
    scale = eig.max()
    assert np.sum(np.abs(eig) < 1e-9 * scale) == n_zero
    assert eig.min() > -1e-9 * scale


def test_quad4_rotation_is_stress_free():
    spacing = (2.0, 0.5)
    Ke = get_element_stiffness_matrix(0.3, spacing)
    xy = np.array([[0, 0], [2.0, 0], [2.0, 0.5], [0, 0.5]])
    rotation = np.column_stack([-xy[:, 1], xy[:, 0]]).ravel()
    assert np.allclose(Ke @ rotation, 0.0, atol=1e-12)


def test_centroid_b_reproduces_uniform_strain_2d():
    dx, dy = 2.0, 0.5
    B = strain_displacement_matrix((dx, dy))
    assert B.shape == (3, 8)

    a, b, c, d = 0.01, -0.02, 0.003, 0.004
    xy = np.array([[0, 0], [dx, 0], [dx, dy], [0, dy]])
    u = np.column_stack([a * xy[:, 0] + c * xy[:, 1], d * xy[:, 0] + b * xy[:, 1]]).ravel()
    assert np.allclose(B @ u, [a, b, c + d])


def test_centroid_b_reproduces_uniform_strain_3d():
    spacing = np.array([1.0, 2.0, 0.5])
    B = strain_displacement_matrix(tuple(spacing))
    assert B.shape == (6, 24)

    corners = np.array([
        [0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],
        [0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1],
    ]) * spacing
    grad = np.array([
        [0.01, 0.002, 0.0],
        [0.0, -0.02, 0.003],
        [0.001, 0.0, 0.005],
    ])
    u = (corners @ grad.T).ravel()
    expected = [
        grad[0, 0], grad[1, 1], grad[2, 2],
        grad[0, 1] + grad[1, 0],
        grad[1, 2] + grad[2, 1],
        grad[0, 2] + grad[2, 0],
    ]
    assert np.allclose(B @ u, expected)


def test_constitutive_matrix():
    D2 = constitutive_matrix(0.3, 2)
    assert D2.shape == (3, 3)
    assert D2[0, 0] == pytest.approx(1 / 0.91)
    D3 = constitutive_matrix(0.3, 3, E=2.0)
    assert D3.shape == (6, 6)
    assert np.allclose(D3, D3.T)

    with pytest.raises(ValueError):
        constitutive_matrix(0.3, 1)


def test_element_matrices_follow_mesh_dimension():
    Ke, B, D0 = element_matrices(Mesh(2, 2, 2), 0.3)
    assert Ke.shape == (24, 24)
    assert B.shape == (6, 24)
    assert D0.shape == (6, 6)

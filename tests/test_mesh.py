import numpy as np
import pytest

from pto.core.mesh import Mesh, rectangular_cutout_mask


def test_2d_element_nodes_and_dofs_match_hand_numbering():
    mesh = Mesh(3, 2)
    assert mesh.element_nodes(1, 0).tolist() == [3, 6, 7, 4]
    assert mesh.element_dofs(1, 0).tolist() == [6, 7, 12, 13, 14, 15, 8, 9]


def test_3d_element_nodes_and_dofs_match_hand_numbering():
    mesh = Mesh(2, 2, 2)
    assert mesh.element_nodes(1, 1, 1).tolist() == [13, 16, 17, 14, 22, 25, 26, 23]
    assert mesh.element_dofs(1, 1, 1).tolist() == [
        39, 40, 41, 48, 49, 50, 51, 52, 53, 42, 43, 44,
        66, 67, 68, 75, 76, 77, 78, 79, 80, 69, 70, 71,
    ]


def test_connectivity_rows_follow_c_order_of_element_array():
    mesh2 = Mesh(3, 2)
    edof2 = mesh2.connectivity()
    assert edof2.shape == (6, 8)
    flat = np.ravel_multi_index((1, 0), mesh2.shape)
    assert edof2[flat].tolist() == mesh2.element_dofs(1, 0).tolist()

    mesh3 = Mesh(2, 2, 2)
    edof3 = mesh3.connectivity()
    assert edof3.shape == (8, 24)
    flat = np.ravel_multi_index((1, 1, 1), mesh3.shape)
    assert edof3[flat].tolist() == mesh3.element_dofs(1, 1, 1).tolist()


def test_counts():
    mesh = Mesh(4, 3)
    assert mesh.ndim == 2
    assert mesh.shape == (4, 3)
    assert mesh.n_elements == 12
    assert mesh.n_nodes == 20
    assert mesh.n_dofs == 40

    mesh3 = Mesh(4, 3, 2, dx=0.5, dy=2.0, dz=1.0)
    assert mesh3.ndim == 3
    assert mesh3.n_nodes == 5 * 4 * 3
    assert mesh3.n_dofs == 3 * 60
    assert mesh3.element_volume == pytest.approx(1.0)


def test_every_dof_is_used_by_some_element():
    for mesh in (Mesh(3, 2), Mesh(2, 3, 2)):
        used = np.unique(mesh.connectivity())
        assert used.tolist() == list(range(mesh.n_dofs))


def test_node_coordinates_use_element_spacing():
    mesh = Mesh(3, 2, dx=2.0, dy=0.5)
    coords = mesh.node_coordinates()
    assert coords.shape == (12, 2)
    assert coords[mesh.node_id(2, 1)].tolist() == [4.0, 0.5]

    mesh3 = Mesh(2, 2, 2, dz=3.0)
    coords3 = mesh3.node_coordinates()
    assert coords3[mesh3.node_id(1, 2, 1)].tolist() == [1.0, 2.0, 3.0]


def test_rigid_body_modes_have_full_rank():
    assert np.linalg.matrix_rank(Mesh(3, 2).rigid_body_modes()) == 3
    assert np.linalg.matrix_rank(Mesh(2, 2, 2).rigid_body_modes()) == 6


@pytest.mark.parametrize("args", [(0, 2), (3, -1), (2, 2, 0)])
def test_invalid_counts_raise(args):
    with pytest.raises(ValueError):
        Mesh(*args)


def test_invalid_spacing_raises():
    with pytest.raises(ValueError):
        Mesh(2, 2, dx=0.0)


def test_validate_mask():
    mesh = Mesh(3, 2)
    mask = mesh.validate_mask(np.ones((3, 2), dtype=int))
    assert mask.dtype == bool

    with pytest.raises(ValueError, match="shape"):
        mesh.validate_mask(np.ones((2, 3), dtype=bool))
    with pytest.raises(ValueError, match="no design"):
        mesh.validate_mask(np.zeros((3, 2), dtype=bool))


def test_rectangular_cutout_mask():
    mesh = Mesh(4, 4)
    mask = rectangular_cutout_mask(mesh, (2, 2), (4, 4))
    assert mask.sum() == 12
    assert not mask[3, 3]
    assert mask[1, 3]
    assert mask[3, 1]

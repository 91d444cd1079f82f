import numpy as np
import pytest

from pto.core.problems import (
    PROBLEMS,
    create_c_beam,
    create_cantilever,
    create_cantilever_3d,
    create_cantilever_distributed,
    create_fixed_fixed_beam,
    create_l_bracket,
    create_l_bracket_3d,
    create_mbb_beam,
    create_multiple_supports,
    create_plate_3d,
    create_simply_supported_beam,
)


def test_registry():
    assert set(PROBLEMS) == {
        "cantilever", "mbb", "l_bracket", "cantilever_3d",
        "cantilever_distributed", "fixed_fixed", "simply_supported",
        "multiple_supports", "c_beam", "l_bracket_3d", "plate_3d",
    }
    assert all(PROBLEMS[name]().name == name for name in ("fixed_fixed", "c_beam", "plate_3d"))


@pytest.mark.parametrize("problem", [
    create_cantilever(nelx=8, nely=4),
    create_mbb_beam(nelx=12, nely=4),
    create_l_bracket(nelx=10, nely=10),
    create_cantilever_3d(nelx=6, nely=4, nelz=2, load_area=2),
    create_cantilever_distributed(nelx=8, nely=6, load_height=2),
    create_fixed_fixed_beam(nelx=8, nely=4),
    create_simply_supported_beam(nelx=8, nely=4),
    create_multiple_supports(nelx=10, nely=4),
    create_c_beam(nelx=12, nely=9, spine_width=3, arm_height=3),
    create_l_bracket_3d(nelx=10, nely=10, nelz=2),
    create_plate_3d(nelx=6, nely=4, nelz=2),
], ids=lambda p: p.name)
def test_problems_have_valid_boundary_conditions(problem):
    problem.boundary_conditions.validate(problem.mesh)
    problem.mesh.validate_mask(problem.design_mask)
    assert problem.boundary_conditions.total_load < 0


def _load_nodes_in_material(problem):
    """Every loaded node touches at least one design element."""
    mesh = problem.mesh
    dpn = mesh.dofs_per_node
    loaded = np.unique(problem.boundary_conditions.load_dofs // dpn)
    edof = mesh.connectivity()[problem.design_mask.ravel()]
    return np.all(np.isin(loaded * dpn, edof))


def test_cantilever_load_at_bottom_right():
    problem = create_cantilever(nelx=10, nely=5)
    mesh = problem.mesh
    bc = problem.boundary_conditions
    assert bc.load_dofs.tolist() == [2 * mesh.node_id(10, 0) + 1]
    assert bc.fixed_dofs.tolist() == list(range(2 * 6))
    assert problem.n_design == 50


def test_mbb_supports():
    problem = create_mbb_beam(nelx=12, nely=4, n_load_points=3)
    mesh = problem.mesh
    bc = problem.boundary_conditions
    # x fixed on the left edge plus the y roller at the bottom-right corner
    assert bc.fixed_dofs.size == 5 + 1
    assert 2 * mesh.node_id(12, 0) + 1 in bc.fixed_dofs
    assert bc.load_dofs.tolist() == [2 * mesh.node_id(i, 4) + 1 for i in range(3)]


def test_l_bracket_cutout_and_load_inside_material():
    problem = create_l_bracket(nelx=10, nely=10, arm_fraction=0.4)
    mask = problem.design_mask
    assert not mask[4:, 4:].any()
    assert mask[:4, :].all()
    assert mask[:, :4].all()
    assert problem.n_design == 100 - 36

    load_node = problem.boundary_conditions.load_dofs[0] // 2
    assert load_node == problem.mesh.node_id(10, 2)


def test_cantilever_3d_patch_load():
    problem = create_cantilever_3d(nelx=6, nely=4, nelz=2, load_area=2)
    mesh = problem.mesh
    bc = problem.boundary_conditions
    assert mesh.ndim == 3
    assert bc.fixed_dofs.size == 3 * 5 * 3
    assert bc.load_dofs.size == 9
    assert np.all(bc.load_dofs % 3 == 1)
    assert bc.total_load == pytest.approx(-1.0)

    nodes = bc.load_dofs // 3
    coords = mesh.node_coordinates()[nodes]
    assert np.all(coords[:, 0] == 6.0)


def test_distributed_cantilever_spreads_load_over_right_edge():
    problem = create_cantilever_distributed(nelx=12, nely=10, load=-10.0, load_height=4)
    mesh = problem.mesh
    bc = problem.boundary_conditions
    assert bc.load_dofs.tolist() == [2 * mesh.node_id(12, j) + 1 for j in range(3, 8)]
    assert np.allclose(bc.load_values, -2.0)
    assert bc.fixed_dofs.tolist() == list(range(2 * 11))


def test_fixed_fixed_and_simply_supported_beams():
    fixed = create_fixed_fixed_beam(nelx=8, nely=4)
    simple = create_simply_supported_beam(nelx=8, nely=4)
    mesh = fixed.mesh
    mid = 2 * mesh.node_id(4, 4) + 1
    assert fixed.boundary_conditions.load_dofs.tolist() == [mid]
    assert simple.boundary_conditions.load_dofs.tolist() == [mid]

    # both edges clamped vs. clamped left edge plus y rollers on the right
    assert fixed.boundary_conditions.fixed_dofs.size == 2 * 2 * 5
    assert simple.boundary_conditions.fixed_dofs.size == 2 * 5 + 5
    right_x = 2 * mesh.node_id(8, np.arange(5))
    assert not np.isin(right_x, simple.boundary_conditions.fixed_dofs).any()


def test_multiple_supports_positions():
    problem = create_multiple_supports(nelx=10, nely=4, load=-1.0)
    mesh = problem.mesh
    bc = problem.boundary_conditions
    pins = [mesh.node_id(i, 0) for i in (2, 5, 8)]
    assert bc.fixed_dofs.tolist() == sorted(2 * n + c for n in pins for c in (0, 1))
    assert bc.load_dofs.tolist() == [2 * mesh.node_id(i, 4) + 1 for i in (3, 7)]
    assert bc.load_values.tolist() == [-0.5, -0.5]


def test_c_beam_cutout_and_load_on_top_arm():
    problem = create_c_beam(nelx=12, nely=9, spine_width=3, arm_height=3)
    mask = problem.design_mask
    assert not mask[3:, 3:6].any()
    assert mask[:3, :].all()
    assert mask[:, :3].all() and mask[:, 6:].all()
    assert problem.boundary_conditions.load_dofs.size == 3
    assert _load_nodes_in_material(problem)

    with pytest.raises(ValueError):
        create_c_beam(nelx=12, nely=9, spine_width=3, arm_height=5)


def test_l_bracket_3d_cutout_through_thickness():
    problem = create_l_bracket_3d(nelx=10, nely=10, nelz=2, arm_fraction=0.4)
    mesh = problem.mesh
    bc = problem.boundary_conditions
    assert not problem.design_mask[4:, 4:, :].any()
    assert problem.n_design == (100 - 36) * 2

    # top face of the vertical arm: 5 x 3 nodes, all three components
    assert bc.fixed_dofs.size == 5 * 3 * 3
    assert np.all(mesh.node_coordinates()[bc.fixed_dofs // 3][:, 1] == 10.0)
    assert bc.total_load == pytest.approx(-1.0)
    assert np.all(bc.load_dofs % 3 == 1)
    assert _load_nodes_in_material(problem)


def test_plate_3d_load_patch():
    problem = create_plate_3d()
    mesh = problem.mesh
    bc = problem.boundary_conditions
    assert mesh.shape == (24, 12, 8)
    # 5 x 3 node patch centred on the right face
    assert bc.load_dofs.size == 15
    coords = mesh.node_coordinates()[bc.load_dofs // 3]
    assert np.all(coords[:, 0] == 24.0)
    assert sorted(set(coords[:, 1])) == [4.0, 5.0, 6.0, 7.0, 8.0]
    assert sorted(set(coords[:, 2])) == [3.0, 4.0, 5.0]
    assert bc.total_load == pytest.approx(-1.0)

import numpy as np
import pytest
from stl import mesh as stl_mesh

from pto.core.mesh import Mesh
from pto.core.problems import create_cantilever_3d
from pto.export import density_isosurface, export_density_to_stl
from pto.numerical.topopt import ComplianceVariant, PTOParams, optimize


def test_solid_block_surface_lies_on_the_domain_faces():
    mesh = Mesh(3, 2, 2, dx=2.0, dy=1.0, dz=0.5)
    verts, faces = density_isosurface(np.ones(mesh.shape), mesh)
    assert len(faces) > 0
    assert verts.min(axis=0) == pytest.approx([0.0, 0.0, 0.0])
    assert verts.max(axis=0) == pytest.approx([6.0, 2.0, 1.0])


def test_inner_block_surface_follows_element_centres():
    mesh = Mesh(6, 4, 4)
    rho = np.full(mesh.shape, 1e-3)
    rho[1:5, 1:3, 1:3] = 1.0
    verts, _ = density_isosurface(rho, mesh, isovalue=0.5)
    # halfway between the centres of a void and a solid element
    assert verts.min(axis=0) == pytest.approx([1.0, 1.0, 1.0], abs=1e-3)
    assert verts.max(axis=0) == pytest.approx([5.0, 3.0, 3.0], abs=1e-3)


@pytest.mark.parametrize("mode", ["binary", "ascii"])
def test_optimized_density_written_and_read_back(tmp_path, mode):
    problem = create_cantilever_3d(nelx=6, nely=3, nelz=2, load_area=2)
    result = optimize(
        problem.mesh,
        problem.design_mask,
        problem.boundary_conditions,
        variant=ComplianceVariant(volume_fraction=0.5),
        max_iterations=2,
        params=PTOParams(verbose=False),
    )
    path = tmp_path / "result" / f"cantilever_{mode}.stl"
    isovalue = 0.5 * float(result.density.max())
    written = export_density_to_stl(result.density, problem.mesh, path, isovalue=isovalue, mode=mode)

    assert path.exists()
    loaded = stl_mesh.Mesh.from_file(str(path))
    assert len(loaded.vectors) == len(written.vectors) > 0
    assert np.allclose(loaded.vectors, written.vectors, atol=1e-5)

    points = loaded.vectors.reshape(-1, 3)
    assert np.all(points.min(axis=0) >= -0.5 - 1e-6)
    assert np.all(points.max(axis=0) <= np.array([6.5, 3.5, 2.5]) + 1e-6)


def test_2d_density_rejected(tmp_path):
    mesh = Mesh(4, 2)
    with pytest.raises(ValueError, match="3D"):
        export_density_to_stl(np.ones(mesh.shape), mesh, tmp_path / "flat.stl")


def test_isovalue_outside_density_range_rejected():
    mesh = Mesh(2, 2, 2)
    with pytest.raises(ValueError, match="No surface"):
        density_isosurface(np.full(mesh.shape, 0.3), mesh, isovalue=0.5)


def test_shape_mismatch_and_bad_mode_rejected(tmp_path):
    mesh = Mesh(2, 2, 2)
    with pytest.raises(ValueError):
        density_isosurface(np.ones((2, 2, 3)), mesh)
    with pytest.raises(ValueError, match="mode"):
        export_density_to_stl(np.ones(mesh.shape), mesh, tmp_path / "x.stl", mode="obj")

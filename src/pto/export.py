"""
export.py - Surface export of 3D density fields.

This module handles:
- Isosurface extraction from an element density field (marching cubes)
- Writing the surface as a binary or ASCII STL file
"""

import numpy as np
from pathlib import Path
from typing import Union

from .core.mesh import Mesh
from .utils.logging_utils import get_logger

logger = get_logger(__name__)

STL_MODES = ("binary", "ascii")


def density_isosurface(density: np.ndarray, mesh: Mesh, isovalue: float = 0.5):
    """
    Triangulated isosurface of a 3D element density field.

    Densities are sampled at element centres. The field is padded with one
    layer of zero density so the surface is closed where material touches the
    domain boundary; a fully solid element block therefore ends exactly on
    the domain faces.

    Args:
        density: Element densities (nelx, nely, nelz)
        mesh: 3D mesh giving the element spacing
        isovalue: Density level of the surface

    Returns:
        (vertices (V, 3) in physical coordinates, faces (F, 3) vertex indices)
    """
    from skimage import measure

    rho = np.asarray(density, dtype=np.float64)
    if mesh.ndim != 3 or rho.ndim != 3:
        raise ValueError(f"STL export needs a 3D density field, got {rho.ndim} dims")
    if rho.shape != mesh.shape:
        raise ValueError(f"Density shape {rho.shape} does not match mesh {mesh.shape}")

    volume = np.pad(rho, 1, mode="constant", constant_values=0.0)
    if not volume.min() < isovalue < volume.max():
        raise ValueError(
            f"No surface at isovalue {isovalue:.3f}: density range is "
            f"[{volume.min():.3f}, {volume.max():.3f}]"
        )

    spacing = np.array(mesh.spacing, dtype=np.float64)
    verts, faces, _, _ = measure.marching_cubes(
        volume, level=isovalue, spacing=tuple(spacing), allow_degenerate=False
    )
    # padded sample p sits at the centre of element p - 1
    verts = verts - 0.5 * spacing
    return verts, faces


def export_density_to_stl(
    density: np.ndarray,
    mesh: Mesh,
    path: Union[str, Path],
    isovalue: float = 0.5,
    mode: str = "binary",
    name: str = "pto"
):
    """
    Write the isosurface of a 3D density field to an STL file.

    Args:
        density: Element densities (nelx, nely, nelz)
        mesh: 3D mesh giving the element spacing
        path: Output file
        isovalue: Density level of the surface
        mode: "binary" or "ascii"
        name: Solid name stored in the file

    Returns:
        The written stl.mesh.Mesh
    """
    from stl import Mode
    from stl import mesh as stl_mesh

    if mode not in STL_MODES:
        raise ValueError(f"STL mode must be one of {STL_MODES}, got {mode!r}")

    verts, faces = density_isosurface(density, mesh, isovalue)

    surface = stl_mesh.Mesh(np.zeros(len(faces), dtype=stl_mesh.Mesh.dtype), name=name)
    surface.vectors[:] = verts[faces]
    surface.update_normals()

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    surface.save(str(path), mode=Mode.BINARY if mode == "binary" else Mode.ASCII)

    logger.info(
        "STL written to %s: %d faces, %d vertices, isovalue %.3f, spacing %s",
        path, len(faces), len(verts), isovalue, mesh.spacing,
    )
    return surface

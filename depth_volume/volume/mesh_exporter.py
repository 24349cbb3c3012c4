"""
Voxel Mesh Exporter

Turns voxel grids into cube meshes (trimesh), writes point clouds (Open3D)
and reports volume summaries.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
import open3d as o3d
import trimesh

from ..data_models import VolumeResult, VoxelGrid
from ..exceptions import DepthArtifactIOError
from ..utils.config_manager import ConfigManager

# Corner offsets (in half-voxel units) and the 12 triangles of one cube.
CUBE_CORNERS = np.array([
    [-1, -1, -1],
    [1, -1, -1],
    [1, 1, -1],
    [-1, 1, -1],
    [-1, -1, 1],
    [1, -1, 1],
    [1, 1, 1],
    [-1, 1, 1],
], dtype=np.float64)

CUBE_FACES = np.array([
    0, 1, 2, 2, 3, 0,
    4, 5, 6, 6, 7, 4,
    0, 4, 7, 7, 3, 0,
    1, 5, 6, 6, 2, 1,
    3, 2, 6, 6, 7, 3,
    0, 1, 5, 5, 4, 0,
], dtype=np.int64).reshape(-1, 3)

PRIMARY_COLOR = (51, 153, 255, 255)
REFINEMENT_COLOR = (255, 128, 0, 255)


class MeshExporter:
    """Builds per-voxel cube meshes and writes reconstruction artifacts."""

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """
        Initialize mesh exporter.

        Args:
            config_manager: Configuration manager instance
        """
        self.config = config_manager or ConfigManager()
        self.logger = logging.getLogger(__name__)

    def build_mesh(self, grid: VoxelGrid,
                   color: Optional[Sequence[int]] = PRIMARY_COLOR) -> trimesh.Trimesh:
        """
        Build an unmerged cube mesh with 8 vertices and 12 triangles per voxel.

        Args:
            grid: Voxel grid to render
            color: RGBA vertex color, or None for an uncolored mesh

        Returns:
            trimesh.Trimesh (empty for an empty grid)
        """
        if grid.is_empty:
            return trimesh.Trimesh(vertices=np.zeros((0, 3)), faces=np.zeros((0, 3), dtype=np.int64),
                                   process=False)

        centers = grid.voxel_centers()
        half = grid.voxel_size * 0.5
        vertices = (centers[:, None, :] + CUBE_CORNERS[None, :, :] * half).reshape(-1, 3)

        base = (np.arange(len(grid), dtype=np.int64) * 8)[:, None, None]
        faces = (CUBE_FACES[None, :, :] + base).reshape(-1, 3)

        vertex_colors = None
        if color is not None:
            vertex_colors = np.tile(np.asarray(color, dtype=np.uint8), (vertices.shape[0], 1))

        # process=False keeps the per-cube vertex layout intact
        mesh = trimesh.Trimesh(vertices=vertices, faces=faces, vertex_colors=vertex_colors, process=False)
        self.logger.debug(f"Built voxel mesh: {len(mesh.vertices)} vertices, {len(mesh.faces)} faces")
        return mesh

    def summarize(self, grid: VoxelGrid, mesh: Optional[trimesh.Trimesh] = None) -> VolumeResult:
        """Volume summary of a grid, with mesh counts when a mesh is given."""
        estimate = grid.volume_estimate()
        return VolumeResult(
            volume_cubic_meters=estimate.total_volume,
            volume_liters=estimate.total_volume * 1000.0,
            volume_cubic_cm=estimate.total_volume_cm3,
            voxel_count=estimate.voxel_count,
            voxel_size=estimate.voxel_size,
            mesh_vertices=len(mesh.vertices) if mesh is not None else 0,
            mesh_faces=len(mesh.faces) if mesh is not None else 0,
        )

    def export_mesh(self, grid: VoxelGrid, path: Union[str, Path],
                    color: Optional[Sequence[int]] = PRIMARY_COLOR,
                    mesh: Optional[trimesh.Trimesh] = None) -> trimesh.Trimesh:
        """
        Write the voxel mesh to disk (format from the suffix: .ply, .obj, .stl, ...).

        Args:
            grid: Voxel grid the mesh represents
            path: Output path
            color: RGBA vertex color used when the mesh has to be built
            mesh: Mesh already built for ``grid``; built here when omitted

        Raises:
            DepthArtifactIOError: If the mesh cannot be written
        """
        if mesh is None:
            mesh = self.build_mesh(grid, color)
        try:
            mesh.export(str(path))
        except (OSError, ValueError) as e:
            raise DepthArtifactIOError(path, f"could not export mesh: {e}") from e

        self.logger.info(f"Exported voxel mesh to {path} ({len(grid)} voxels)")
        return mesh

    def export_point_cloud(self, points: np.ndarray, path: Union[str, Path]) -> None:
        """
        Write an Nx3 point cloud with Open3D.

        Raises:
            DepthArtifactIOError: If Open3D fails to write the file
        """
        pcd = o3d.geometry.PointCloud()
        pcd.points = o3d.utility.Vector3dVector(np.asarray(points, dtype=np.float64).reshape(-1, 3))
        if not o3d.io.write_point_cloud(str(path), pcd):
            raise DepthArtifactIOError(path, "could not write point cloud")
        self.logger.info(f"Exported {len(pcd.points)} points to {path}")

    def export_summary(self, result: VolumeResult, path: Union[str, Path]) -> None:
        """Write a volume summary as JSON."""
        try:
            with open(path, 'w') as f:
                json.dump(result.to_dict(), f, indent=2)
        except OSError as e:
            raise DepthArtifactIOError(path, str(e)) from e

"""
Tests for Voxel Mesh Exporter
"""

import json

import pytest
import numpy as np
import open3d as o3d
import trimesh

from depth_volume.data_models import VoxelGrid
from depth_volume.exceptions import DepthArtifactIOError
from depth_volume.volume.mesh_exporter import MeshExporter, REFINEMENT_COLOR


@pytest.fixture
def two_voxel_grid():
    """Fixture providing two diagonal 10 cm voxels."""
    return VoxelGrid(origin=np.zeros(3), voxel_size=0.1, dims=(2, 2, 2),
                     indices=np.array([[0, 0, 0], [1, 1, 1]], dtype=np.int64), surface_count=2)


class TestMeshExporter:
    """Test suite for cube mesh generation and artifact export."""

    @pytest.fixture
    def exporter(self, config_manager):
        """Fixture providing a mesh exporter."""
        return MeshExporter(config_manager)

    def test_cube_per_voxel(self, exporter, two_voxel_grid):
        """Test 8 vertices and 12 triangles per voxel without merging."""
        mesh = exporter.build_mesh(two_voxel_grid)

        assert mesh.vertices.shape == (16, 3)
        assert mesh.faces.shape == (24, 3)
        assert mesh.faces.max() == 15

    def test_cube_placement(self, exporter, two_voxel_grid):
        """Test that each cube spans exactly its voxel."""
        mesh = exporter.build_mesh(two_voxel_grid)

        np.testing.assert_allclose(mesh.vertices[:8].min(axis=0), [0.0, 0.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(mesh.vertices[:8].max(axis=0), [0.1, 0.1, 0.1])
        np.testing.assert_allclose(mesh.bounds, [[0.0, 0.0, 0.0], [0.2, 0.2, 0.2]], atol=1e-12)

    def test_vertex_colors(self, exporter, two_voxel_grid):
        """Test that every vertex carries the requested RGBA color."""
        mesh = exporter.build_mesh(two_voxel_grid, color=REFINEMENT_COLOR)
        colors = np.asarray(mesh.visual.vertex_colors)
        assert (colors == np.array(REFINEMENT_COLOR, dtype=np.uint8)).all()

    def test_empty_grid(self, exporter):
        """Test that an empty grid yields an empty mesh."""
        mesh = exporter.build_mesh(VoxelGrid.empty())
        assert len(mesh.vertices) == 0
        assert len(mesh.faces) == 0

    def test_summarize(self, exporter, two_voxel_grid):
        """Test unit conversions in the volume summary."""
        mesh = exporter.build_mesh(two_voxel_grid)
        result = exporter.summarize(two_voxel_grid, mesh)

        assert result.volume_cubic_meters == pytest.approx(2e-3)
        assert result.volume_liters == pytest.approx(2.0)
        assert result.volume_cubic_cm == pytest.approx(2000.0)
        assert result.voxel_count == 2
        assert (result.mesh_vertices, result.mesh_faces) == (16, 24)

    def test_summarize_without_mesh(self, exporter):
        """Test an empty summary."""
        result = exporter.summarize(VoxelGrid.empty())
        assert result.volume_cubic_meters == 0.0
        assert result.mesh_faces == 0

    def test_export_mesh(self, exporter, two_voxel_grid, tmp_path):
        """Test writing the mesh as PLY and loading it back."""
        path = tmp_path / "volume.ply"
        exporter.export_mesh(two_voxel_grid, path)

        loaded = trimesh.load(str(path), process=False)
        assert len(loaded.vertices) == 16
        assert len(loaded.faces) == 24

    def test_export_prebuilt_mesh(self, exporter, two_voxel_grid, tmp_path):
        """Test that a mesh already built for the grid is written as-is."""
        mesh = exporter.build_mesh(two_voxel_grid, REFINEMENT_COLOR)
        exported = exporter.export_mesh(two_voxel_grid, tmp_path / "volume.ply", mesh=mesh)

        assert exported is mesh

    def test_export_point_cloud(self, exporter, tmp_path):
        """Test writing a point cloud with Open3D."""
        points = np.random.default_rng(1).uniform(0, 1, (25, 3))
        path = tmp_path / "cloud.ply"
        exporter.export_point_cloud(points, path)

        restored = o3d.io.read_point_cloud(str(path))
        np.testing.assert_allclose(np.asarray(restored.points), points, atol=1e-6)

    def test_export_point_cloud_failure(self, exporter, tmp_path):
        """Test that an unwritable destination raises DepthArtifactIOError."""
        with pytest.raises(DepthArtifactIOError):
            exporter.export_point_cloud(np.zeros((3, 3)), tmp_path / "missing" / "cloud.ply")

    def test_export_summary(self, exporter, two_voxel_grid, tmp_path):
        """Test JSON summary contents."""
        path = tmp_path / "summary.json"
        exporter.export_summary(exporter.summarize(two_voxel_grid), path)

        with open(path) as f:
            data = json.load(f)

        assert data['voxel_count'] == 2
        assert data['volume_liters'] == pytest.approx(2.0)
        assert data['calculation_method'] == "per_layer_convex_fill"

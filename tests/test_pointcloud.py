"""Tests for point file loading and colored point cloud output."""

import numpy as np
import pytest

o3d = pytest.importorskip("open3d")

from vpscan.pointcloud import (  # noqa: E402
    color_for_k,
    label_colors,
    load_points,
    sample_mesh_points,
    save_clustered_point_cloud,
)


class TestLoadPoints:
    def test_npy(self, tmp_path, random_points):
        path = tmp_path / "points.npy"
        np.save(path, random_points)
        np.testing.assert_array_equal(load_points(path), random_points)

    def test_one_dimensional_npy(self, tmp_path):
        path = tmp_path / "line.npy"
        np.save(path, np.array([0.0, 1.0, 2.0]))
        assert load_points(path).shape == (3, 1)

    def test_whitespace_text(self, tmp_path):
        path = tmp_path / "points.xyz"
        path.write_text("0 0 0\n1 2 3\n")
        assert load_points(path).tolist() == [[0.0, 0.0, 0.0], [1.0, 2.0, 3.0]]

    def test_csv(self, tmp_path):
        path = tmp_path / "points.csv"
        path.write_text("0.5,1.5\n2.5,3.5\n")
        assert load_points(path).tolist() == [[0.5, 1.5], [2.5, 3.5]]

    def test_single_row_text(self, tmp_path):
        path = tmp_path / "one.txt"
        path.write_text("1 2 3\n")
        assert load_points(path).shape == (1, 3)

    def test_point_cloud_round_trip(self, tmp_path, random_points):
        path = tmp_path / "cloud.ply"
        save_clustered_point_cloud(random_points, np.zeros(len(random_points), dtype=int), path)
        np.testing.assert_allclose(load_points(path), random_points, rtol=1e-6, atol=1e-6)

    def test_mesh_is_sampled(self, tmp_path):
        path = tmp_path / "box.obj"
        assert o3d.io.write_triangle_mesh(str(path), o3d.geometry.TriangleMesh.create_box())
        points = load_points(path, n_samples=300, rng=np.random.default_rng(0))
        assert points.shape[1] == 3
        assert len(points) >= 300

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_points(tmp_path / "absent.npy")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "points.json"
        path.write_text("[]")
        with pytest.raises(ValueError, match="Unsupported"):
            load_points(path)


class TestSampleMeshPoints:
    def test_points_lie_on_the_box(self):
        box = o3d.geometry.TriangleMesh.create_box()
        points = sample_mesh_points(box, 500, rng=np.random.default_rng(3))
        assert len(points) >= 500
        assert np.all(points >= -1e-12) and np.all(points <= 1.0 + 1e-12)
        # Every sample sits on one of the six faces.
        on_face = np.any(np.isclose(points, 0.0) | np.isclose(points, 1.0), axis=1)
        assert np.all(on_face)

    def test_empty_mesh(self):
        with pytest.raises(ValueError):
            sample_mesh_points(o3d.geometry.TriangleMesh(), 10)


class TestColors:
    def test_outliers_get_noise_color(self):
        colors = label_colors(np.array([0, -1, 1, 0]), noise_color=(0.2, 0.2, 0.2))
        assert colors[1].tolist() == [0.2, 0.2, 0.2]
        np.testing.assert_array_equal(colors[0], colors[3])
        assert not np.array_equal(colors[0], colors[2])

    def test_palette_in_unit_range(self):
        for k in range(10):
            color = color_for_k(k)
            assert color.shape == (3,)
            assert np.all((color >= 0.0) & (color <= 1.0))


class TestSaveClusteredPointCloud:
    def test_writes_colors(self, tmp_path):
        points = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [5.0, 5.0, 5.0]])
        path = tmp_path / "out" / "clusters.ply"
        save_clustered_point_cloud(points, np.array([0, 0, -1]), path)

        cloud = o3d.io.read_point_cloud(str(path))
        colors = np.asarray(cloud.colors)
        assert len(cloud.points) == 3
        np.testing.assert_allclose(colors[2], [0.0, 0.0, 0.0], atol=1e-2)

    def test_rejects_non_3d_points(self, tmp_path):
        with pytest.raises(ValueError):
            save_clustered_point_cloud(np.zeros((4, 2)), np.zeros(4), tmp_path / "flat.ply")

    def test_rejects_label_mismatch(self, tmp_path):
        with pytest.raises(ValueError):
            save_clustered_point_cloud(np.zeros((4, 3)), np.zeros(3), tmp_path / "bad.ply")

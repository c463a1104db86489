import colorsys
import logging
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import open3d as o3d

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = {".txt", ".csv", ".xyz"}
CLOUD_SUFFIXES = {".ply", ".pcd"}
MESH_SUFFIXES = {".obj", ".stl", ".off", ".ply"}


def sample_mesh_points(mesh: o3d.geometry.TriangleMesh, n_points: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Sample points uniformly on the surface of a TriangleMesh.

    Each triangle receives a share of n_points proportional to its area (rounded up),
    and points inside a triangle are drawn with uniform barycentric coordinates.

    Args:
        mesh: Open3D TriangleMesh.
        n_points: Approximate number of points to sample.
        rng: Optional NumPy random generator. If None, a new generator is created.

    Returns:
        Array of shape (M, 3) with M >= n_points when the mesh has a positive area.
    """
    if rng is None:
        rng = np.random.default_rng()

    triangles = np.asarray(mesh.triangles, dtype=np.int64)
    vertices = np.asarray(mesh.vertices, dtype=np.float64)
    if triangles.size == 0:
        raise ValueError("Mesh has no triangles to sample.")

    v0 = vertices[triangles[:, 0]]
    v1 = vertices[triangles[:, 1]]
    v2 = vertices[triangles[:, 2]]
    tri_areas = 0.5 * np.linalg.norm(np.cross(v1 - v0, v2 - v0), axis=1)

    total_area = tri_areas.sum()
    if total_area <= 0:
        raise ValueError("Mesh area is zero; cannot sample.")

    pts_per_tri = np.ceil((tri_areas / total_area) * n_points).astype(int)

    sampled = []
    for (a, b, c), k in zip(zip(v0, v1, v2), pts_per_tri):
        if k <= 0:
            continue
        sqrt_r1 = np.sqrt(rng.random(k))
        r2 = rng.random(k)

        alpha = 1.0 - sqrt_r1
        beta = sqrt_r1 * (1.0 - r2)
        gamma = sqrt_r1 * r2

        sampled.append(alpha[:, None] * a + beta[:, None] * b + gamma[:, None] * c)

    return np.vstack(sampled)


def load_points(path, n_samples: int = 20000, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Load a point set as an (N, D) float array.

    Supported inputs:
      - .npy: array of shape (N, D) or (N,)
      - .txt, .csv, .xyz: whitespace or comma separated rows
      - .ply, .pcd: point clouds read with Open3D
      - .obj, .stl, .off, or a .ply without points: triangle meshes, sampled with sample_mesh_points

    Args:
        path: File to read.
        n_samples: Number of points to sample when the file is a mesh.
        rng: Optional NumPy random generator used for mesh sampling.

    Returns:
        Array of shape (N, D).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Point file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".npy":
        points = np.load(path)
    elif suffix in TEXT_SUFFIXES:
        delimiter = "," if suffix == ".csv" else None
        points = np.loadtxt(path, delimiter=delimiter, ndmin=2)
    elif suffix in CLOUD_SUFFIXES | MESH_SUFFIXES:
        points = np.empty((0, 3))
        if suffix in CLOUD_SUFFIXES:
            points = np.asarray(o3d.io.read_point_cloud(str(path)).points)
        if points.shape[0] == 0 and suffix in MESH_SUFFIXES:
            mesh = o3d.io.read_triangle_mesh(str(path))
            points = sample_mesh_points(mesh, n_samples, rng=rng)
            logger.info("Sampled %d points from mesh %s", len(points), path)
    else:
        raise ValueError(f"Unsupported point file type: {suffix}")

    points = np.asarray(points, dtype=np.float64)
    if points.ndim == 1:
        points = points.reshape(-1, 1)
    logger.info("Loaded %d points of dimension %d from %s", points.shape[0], points.shape[1], path)
    return points


def color_for_k(k: int) -> np.ndarray:
    """Golden-ratio spaced hue for the k-th cluster."""
    h = (k * 0.61803398875) % 1.0
    r, g, b = colorsys.hsv_to_rgb(h, 0.75, 0.95)
    return np.array([r, g, b], dtype=np.float64)


def label_colors(labels, noise_color: Sequence[float] = (0.0, 0.0, 0.0)) -> np.ndarray:
    """
    Map cluster labels to RGB colors.

    Args:
        labels: Array of shape (N,) with cluster labels. Outliers are labeled -1.
        noise_color: RGB color in [0,1] for outliers.

    Returns:
        Array of shape (N, 3) with one color per point.
    """
    labels = np.asarray(labels)
    point_colors = np.zeros((len(labels), 3), dtype=np.float64)
    point_colors[labels == -1] = np.asarray(noise_color, dtype=np.float64)

    cluster_ids = [u for u in np.unique(labels) if u != -1]
    for i, cid in enumerate(cluster_ids):
        point_colors[labels == cid] = color_for_k(i)
    return point_colors


def save_clustered_point_cloud(points, labels, path, noise_color: Sequence[float] = (0.0, 0.0, 0.0)) -> None:
    """
    Write a point cloud colored by cluster label.

    Args:
        points: Array of shape (N, 3).
        labels: Array of shape (N,) with cluster labels.
        path: Output file, any format Open3D writes (.ply, .pcd, ...).
        noise_color: RGB color in [0,1] for outliers.
    """
    points = np.asarray(points, dtype=np.float64)
    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError(f"Only 3-D points can be written as a point cloud, got shape {points.shape}.")
    if len(points) != len(labels):
        raise ValueError("labels/points size mismatch.")

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(points)
    pcd.colors = o3d.utility.Vector3dVector(label_colors(labels, noise_color))

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not o3d.io.write_point_cloud(str(path), pcd):
        raise OSError(f"Open3D could not write {path}")
    logger.info("Wrote clustered point cloud to %s", path)

import argparse
import logging
import sys

import numpy as np

from vpscan.buffer import PointBuffer
from vpscan.clustering import DensityClusterer
from vpscan.errors import VPScanError
from vpscan.logging_config import setup_logging
from vpscan.metrics import METRICS
from vpscan.pointcloud import load_points, save_clustered_point_cloud
from vpscan.timing import timed
from vpscan.vp_tree import STRATEGIES, VPTree

from config import CLUSTERING_EPS, CLUSTERING_MIN_SAMPLES, DEFAULT_METRIC, DEFAULT_STRATEGY
from config import KNN_QUERY, KNN_K, RADIUS, PCD_NUM_POINTS, NOISE_COLOR
from config import LOG_LEVEL, LOG_FILE

logger = logging.getLogger("vpscan.app")


def _load_buffer(args):
    points = load_points(args.path, n_samples=args.samples)
    return points, PointBuffer.from_points(points)


def run_cluster(args):
    """
    Cluster the input points and optionally write labels and a colored point cloud.
    """
    points, buffer = _load_buffer(args)
    clusterer = DensityClusterer(args.eps, args.min_pts, metric=args.metric, strategy=args.strategy)
    labels = clusterer.fit_predict(buffer)
    summary = clusterer.summary_

    logger.info(
        "%d clusters, %d outliers, coverage %.1f%% (build %.1f ms, graph %.1f ms, labels %.1f ms)",
        summary.n_clusters, summary.n_outliers, 100.0 * summary.coverage_ratio,
        summary.build_ms, summary.graph_ms, summary.label_ms,
    )
    logger.debug("Cluster sizes: %s", summary.cluster_sizes)

    if args.labels:
        np.save(args.labels, labels)
        logger.info("Wrote labels to %s", args.labels)
    if args.output:
        save_clustered_point_cloud(points, labels, args.output, noise_color=NOISE_COLOR)
    return 0


def _compare(kind, tree_ids, brute_ids, tree, query):
    logger.info("%s (tree): %s", kind, tree_ids)
    logger.info("%s (brute force): %s", kind, brute_ids)

    if kind == "knn":
        # Ties at the boundary may pick different ids; the distances must match.
        agree = (sorted(tree.distance(query, i) for i in tree_ids)
                 == sorted(tree.distance(query, i) for i in brute_ids))
    else:
        agree = sorted(tree_ids) == sorted(brute_ids)

    if agree:
        logger.info("Brute force and tree %s results are equal", kind)
        return 0
    logger.error("Tree %s results differ from brute force", kind)
    return 1


def run_knn(args):
    _, buffer = _load_buffer(args)
    tree = VPTree(buffer, metric=args.metric)

    with timed(f"knn ({args.strategy})", logger, logging.INFO):
        tree_ids = tree.knn(args.query, args.k, strategy=args.strategy)
    with timed("knn (brute force)", logger, logging.INFO):
        brute_ids = tree.brute_knn(args.query, args.k)
    return _compare("knn", tree_ids, brute_ids, tree, args.query)


def run_radius(args):
    _, buffer = _load_buffer(args)
    tree = VPTree(buffer, metric=args.metric)

    with timed(f"radius search ({args.strategy})", logger, logging.INFO):
        tree_ids = tree.search_radius(args.query, args.radius, strategy=args.strategy)
    with timed("radius search (brute force)", logger, logging.INFO):
        brute_ids = tree.brute_radius(args.query, args.radius)
    return _compare("radius", tree_ids, brute_ids, tree, args.query)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="vpscan",
        description="VP-tree proximity search and density clustering of point sets.",
    )
    parser.add_argument("--log-level", default=LOG_LEVEL, choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", default=LOG_FILE)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("path", help="Points as .npy, .txt/.csv/.xyz, a .ply/.pcd point cloud, or a mesh")
    common.add_argument("--metric", default=DEFAULT_METRIC, choices=sorted(METRICS))
    common.add_argument("--strategy", default=DEFAULT_STRATEGY, choices=STRATEGIES)
    common.add_argument("--samples", type=int, default=PCD_NUM_POINTS,
                        help="Points sampled when the input is a mesh")

    sub = parser.add_subparsers(dest="command", required=True)

    cluster = sub.add_parser("cluster", parents=[common], help="Density clustering")
    cluster.add_argument("--eps", type=float, default=CLUSTERING_EPS)
    cluster.add_argument("--min-pts", type=int, default=CLUSTERING_MIN_SAMPLES)
    cluster.add_argument("--output", help="Write the points colored by cluster (3-D input only)")
    cluster.add_argument("--labels", help="Write the label array as .npy")
    cluster.set_defaults(func=run_cluster)

    knn = sub.add_parser("knn", parents=[common], help="k-nearest search checked against brute force")
    knn.add_argument("--query", type=int, default=KNN_QUERY)
    knn.add_argument("-k", type=int, default=KNN_K)
    knn.set_defaults(func=run_knn)

    radius = sub.add_parser("radius", parents=[common], help="Radius search checked against brute force")
    radius.add_argument("--query", type=int, default=KNN_QUERY)
    radius.add_argument("--radius", type=float, default=RADIUS)
    radius.set_defaults(func=run_radius)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        return args.func(args)
    except (VPScanError, ValueError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())

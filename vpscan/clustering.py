import logging

import numpy as np

from vpscan.buffer import PointBuffer
from vpscan.errors import StaleIndexError
from vpscan.models import ClusterParameters, ClusteringSummary
from vpscan.neighbor_graph import NeighborGraph
from vpscan.timing import timed
from vpscan.vp_tree import VPTree

logger = logging.getLogger(__name__)

OUTLIER = -1


def mark_frontier(frontier, vertex):
    """
    Set the frontier flag of vertex if it is unset.

    This is the only write shared between vertices in a BFS round. A parallel
    implementation must make it an atomic set-if-unset.

    Returns:
        True if the flag was newly set.
    """
    if frontier[vertex]:
        return False
    frontier[vertex] = True
    return True


def bfs_kernel(vertex, graph, frontier, reached):
    """
    Expand one frontier vertex: clear its frontier flag, mark it reached and put
    every neighbor not yet reached on the frontier.
    """
    frontier[vertex] = False
    reached[vertex] = True
    for neighbor in graph.neighbors(vertex):
        if not reached[neighbor]:
            mark_frontier(frontier, neighbor)


def bfs_round(graph, frontier, reached):
    """
    Run the kernel once for every vertex flagged in the frontier at round start.

    Kernels in a round do not depend on each other's order.

    Returns:
        Number of vertices expanded.
    """
    active = np.flatnonzero(frontier)
    for vertex in active:
        bfs_kernel(vertex, graph, frontier, reached)
    return active.size


def expand_cluster(graph, seed):
    """
    Collect every vertex reachable from seed in the neighbor graph.

    Breadth-first expansion over two boolean arrays:
      - frontier: vertices to expand in the current round
      - reached: vertices already pulled into the cluster

    Args:
        graph: NeighborGraph.
        seed: Vertex the expansion starts from.

    Returns:
        Boolean array of shape (n_vertices,), True for every reached vertex.
    """
    frontier = np.zeros(graph.n_vertices, dtype=bool)
    reached = np.zeros(graph.n_vertices, dtype=bool)
    frontier[seed] = True

    rounds = 0
    while frontier.any():
        expanded = bfs_round(graph, frontier, reached)
        rounds += 1
        logger.debug("BFS round %d from seed %d expanded %d vertices", rounds, seed, expanded)

    return reached


def label_graph(graph, min_pts):
    """
    Assign cluster labels from a neighbor graph.

    Label convention:
        - -1: outlier
        - >=0: cluster id, in discovery order

    Vertices are scanned in id order. An unvisited vertex whose degree is
    strictly greater than min_pts seeds a new cluster, and every vertex reachable
    from it joins that cluster whatever its own degree. Classical DBSCAN would
    stop expanding at border points; here reachability alone decides.

    Args:
        graph: NeighborGraph.
        min_pts: Seed threshold on the neighbor count (the point itself included).

    Returns:
        labels: int64 array of shape (n_vertices,).
    """
    n = graph.n_vertices
    labels = np.full(n, OUTLIER, dtype=np.int64)
    visited = np.zeros(n, dtype=bool)
    cluster_id = 0

    for i in range(n):
        if visited[i] or graph.degree(i) <= min_pts:
            continue

        visited[i] = True
        reached = expand_cluster(graph, i)
        labels[reached] = cluster_id
        visited[reached] = True
        logger.debug("Cluster %d seeded at %d with %d points", cluster_id, i, int(reached.sum()))
        cluster_id += 1

    return labels


class DensityClusterer:
    """
    Density clustering on top of a VP-tree neighbor graph.

    fit() builds the tree (unless it already indexes the same buffer), the
    epsilon-neighbor graph and the labels. Fitted state is exposed as tree_,
    graph_, labels_, n_clusters_ and summary_.
    """

    def __init__(self, epsilon, min_pts, metric="euclidean", strategy="stack"):
        self.params = ClusterParameters(
            epsilon=epsilon, min_pts=min_pts, metric=metric, strategy=strategy
        )
        self.tree_ = VPTree(metric=self.params.metric)
        self.graph_ = None
        self.labels_ = None
        self.n_clusters_ = 0
        self.summary_ = None

    def fit(self, buffer):
        if not isinstance(buffer, PointBuffer):
            buffer = PointBuffer.from_points(buffer)

        with timed("VP-tree construction", logger) as build_timer:
            if self.tree_.buffer is not buffer:
                self.tree_.fit(buffer)

        with timed("Neighbor graph construction", logger) as graph_timer:
            self.graph_ = NeighborGraph.build(
                self.tree_, self.params.epsilon, strategy=self.params.strategy, buffer=buffer
            )

        with timed("Labeling", logger) as label_timer:
            self.labels_ = self.label(self.graph_)

        self.n_clusters_ = int(self.labels_.max()) + 1 if self.labels_.size else 0
        sizes = np.bincount(self.labels_[self.labels_ != OUTLIER], minlength=self.n_clusters_)
        self.summary_ = ClusteringSummary(
            n_points=buffer.n_points,
            n_clusters=self.n_clusters_,
            n_outliers=int(np.sum(self.labels_ == OUTLIER)),
            cluster_sizes=sizes.tolist(),
            n_edges=self.graph_.n_edges,
            build_ms=build_timer.elapsed_ms,
            graph_ms=graph_timer.elapsed_ms,
            label_ms=label_timer.elapsed_ms,
            parameters_used=self.params,
        )
        logger.info(
            "Clustering done: %d clusters, %d outliers out of %d points",
            self.summary_.n_clusters, self.summary_.n_outliers, self.summary_.n_points,
        )
        return self

    def label(self, graph):
        """
        Label a neighbor graph built from this clusterer's current tree.

        Raises:
            StaleIndexError: if the graph came from an earlier fit of the tree.
        """
        if graph.generation != self.tree_.generation:
            raise StaleIndexError(
                f"Graph was built from tree generation {graph.generation}, "
                f"the tree is at generation {self.tree_.generation}."
            )
        return label_graph(graph, self.params.min_pts)

    def fit_predict(self, buffer):
        return self.fit(buffer).labels_


def dbscan(data, eps=0.17, min_samples=10, metric="euclidean"):
    """
    Cluster points with a VP-tree backed density clustering.

    Args:
        data: Array of shape (N, D) containing N points in D dimensions.
        eps: Neighborhood radius.
        min_samples: A point seeds a cluster when more than min_samples points,
            itself included, lie within eps.
        metric: Distance metric name.

    Returns:
        labels: NumPy array of shape (N,), -1 for outliers and cluster ids from 0.
    """
    return DensityClusterer(eps, min_samples, metric=metric).fit_predict(PointBuffer.from_points(data))

import logging

import numpy as np

from vpscan.errors import StaleIndexError, TreeNotBuiltError
from vpscan.timing import timed

logger = logging.getLogger(__name__)


class NeighborGraph:
    """
    Epsilon-neighborhood graph in compact adjacency form.

    vertices has one (degree, offset) row per point; the neighbors of vertex i
    are edges[offset:offset + degree]. Both arrays are read-only int64.
    """

    def __init__(self, vertices, edges, epsilon, generation=0):
        vertices = np.array(vertices, dtype=np.int64).reshape(-1, 2)
        edges = np.array(edges, dtype=np.int64)
        vertices.setflags(write=False)
        edges.setflags(write=False)
        self.vertices = vertices
        self.edges = edges
        self.epsilon = float(epsilon)
        self.generation = generation

    @classmethod
    def build(cls, tree, epsilon, strategy="stack", buffer=None):
        """
        Run one radius query per point, in point-id order, and pack the results.

        Each point appears in its own neighbor list whenever epsilon > 0, since the
        tree indexes every point.

        Args:
            tree: Fitted VPTree.
            epsilon: Neighborhood radius.
            strategy: Radius search used, "stack", "parent" or "brute".
            buffer: When given, the PointBuffer the tree is expected to index.

        Returns:
            NeighborGraph.

        Raises:
            TreeNotBuiltError: if the tree was never fitted.
            StaleIndexError: if buffer is not the buffer the tree was built from.
        """
        if not tree.is_built:
            raise TreeNotBuiltError("Cannot build a neighbor graph from an unfitted tree.")
        if buffer is not None and buffer is not tree.buffer:
            raise StaleIndexError("The tree indexes different data; refit it before building the graph.")

        n = tree.n_points
        with timed("Neighbor graph construction", logger):
            vertices = np.zeros((n, 2), dtype=np.int64)
            adjacency = []
            for i in range(n):
                neighbors = tree.search_radius(i, epsilon, strategy=strategy)
                vertices[i, 0] = len(neighbors)
                adjacency.append(neighbors)

            vertices[1:, 1] = np.cumsum(vertices[:-1, 0])
            edges = np.fromiter(
                (j for neighbors in adjacency for j in neighbors),
                dtype=np.int64,
                count=int(vertices[:, 0].sum()),
            )

        graph = cls(vertices, edges, epsilon, generation=tree.generation)
        logger.info("Built neighbor graph at epsilon=%g: %d vertices, %d edges",
                    epsilon, graph.n_vertices, graph.n_edges)
        return graph

    @property
    def n_vertices(self):
        return self.vertices.shape[0]

    @property
    def n_edges(self):
        return self.edges.shape[0]

    def degree(self, i):
        return int(self.vertices[i, 0])

    def offset(self, i):
        return int(self.vertices[i, 1])

    def neighbors(self, i):
        start = self.vertices[i, 1]
        return self.edges[start:start + self.vertices[i, 0]]

    def __repr__(self):
        return f"NeighborGraph(n_vertices={self.n_vertices}, n_edges={self.n_edges}, epsilon={self.epsilon:g})"

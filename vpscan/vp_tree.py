import heapq
import logging
from dataclasses import dataclass

import numpy as np

from vpscan.buffer import PointBuffer
from vpscan.errors import (
    PointNotFoundError,
    TreeInvariantViolation,
    TreeNotBuiltError,
)
from vpscan.metrics import get_metric
from vpscan.timing import timed

logger = logging.getLogger(__name__)

LEAF = -1
ROOT = -2
UNDEF = -3

# Distances closer than this to their predecessor stay on the same side of a split.
SPLIT_EPSILON = 1e-6
# Slack on the pruning tests only; membership is always decided by the exact leaf test.
PRUNE_TOLERANCE = 1e-9

STRATEGIES = ("stack", "parent", "brute")


@dataclass
class VPNode:
    """One entry of the flat node array. Children and parent are node indices."""

    pivot: int
    threshold: float = 0.0
    left: int = UNDEF
    right: int = UNDEF
    parent: int = ROOT

    @property
    def is_leaf(self):
        return self.left == LEAF and self.right == LEAF

    def __str__(self):
        return f"({self.pivot}; {self.threshold:g}; {self.left}; {self.right}; {self.parent})"


def select_vantage_point(ids):
    """
    Pick the vantage point of a subset: its first id.

    Deterministic and reproducible. Random or spread-maximizing selection would
    give better balanced trees on some inputs.
    """
    return int(ids[0])


def split_index(dists):
    """
    Choose where to split a subset sorted by distance to its vantage point.

    Starts at the median and moves forward past every distance that is within
    SPLIT_EPSILON of its predecessor, so near-equal distances end up on the same
    side. If that walks off the end, the closest usable gap to the median is
    taken instead: first a gap of at least SPLIT_EPSILON, then any positive gap.
    When all distances are equal (exact duplicates of the vantage point) no
    strict split exists and the median is returned.

    Args:
        dists: Sorted array of at least two distances.

    Returns:
        Index m such that dists[:m] go left and dists[m:] go right.
    """
    n = len(dists)
    middle = n // 2
    while middle < n and dists[middle] - dists[middle - 1] < SPLIT_EPSILON:
        middle += 1
    if middle < n:
        return middle

    gaps = np.diff(dists)
    candidates = np.flatnonzero(gaps >= SPLIT_EPSILON) + 1
    if candidates.size == 0:
        candidates = np.flatnonzero(gaps > 0) + 1
    if candidates.size == 0:
        return n // 2
    return int(candidates[np.argmin(np.abs(candidates - n // 2))])


def _link_child(nodes, parent, child):
    node = nodes[parent]
    if node.right == UNDEF:
        node.right = child
    elif node.left == UNDEF:
        node.left = child
    else:
        raise TreeInvariantViolation(
            f"Node {parent} would receive a third child (node {child})."
        )


def _check_slots(nodes):
    for index, node in enumerate(nodes):
        if node.left == UNDEF or node.right == UNDEF:
            raise TreeInvariantViolation(f"Node {index} has an unresolved child slot: {node}")


class KNearestHeap:
    """
    Bounded max-heap of (distance, id) pairs used by the k-nearest searches.

    The largest kept distance is the current pruning radius. A candidate enters
    only if it is strictly closer than that radius and not already kept.
    """

    def __init__(self, ids, distances):
        self._heap = [(-float(d), -int(i)) for i, d in zip(ids, distances)]
        heapq.heapify(self._heap)
        self._members = {int(i) for i in ids}

    def __len__(self):
        return len(self._heap)

    def radius(self):
        return -self._heap[0][0]

    def offer(self, point_id, distance):
        if distance < self.radius() and point_id not in self._members:
            _, evicted = heapq.heapreplace(self._heap, (-distance, -point_id))
            self._members.discard(-evicted)
            self._members.add(point_id)

    def result(self):
        """Kept ids, nearest first, ties by id."""
        return [point_id for _, point_id in sorted((-d, -i) for d, i in self._heap)]


class VPTree:
    """
    Vantage-point tree over a PointBuffer.

    Nodes are stored in one flat list; node 0 is the root. Each internal node
    splits its points by distance to its pivot: points closer than the threshold
    go left, the others go right. Leaves hold exactly one point each.

    Queries only read the node list and may run concurrently with each other.
    fit() replaces the nodes and must not run while queries are in flight.
    """

    def __init__(self, buffer=None, metric="euclidean"):
        self.metric = get_metric(metric)
        self.buffer = None
        self.nodes = []
        self.generation = 0
        if buffer is not None:
            self.fit(buffer)

    @property
    def is_built(self):
        return self.buffer is not None

    @property
    def n_points(self):
        self._require_built()
        return self.buffer.n_points

    def fit(self, buffer):
        """
        Build the tree over buffer, replacing any previous content.

        Args:
            buffer: PointBuffer to index.

        Returns:
            self
        """
        if not isinstance(buffer, PointBuffer):
            raise TypeError(f"Expected a PointBuffer, got {type(buffer).__name__}.")

        with timed("VP-tree construction", logger):
            nodes = self._build(buffer)
            _check_slots(nodes)

        self.buffer = buffer
        self.nodes = nodes
        self.generation += 1
        logger.info(
            "Built VP-tree over %d points of dimension %d (%d nodes, height %d)",
            buffer.n_points, buffer.dim, len(nodes), self.height(),
        )
        return self

    def _build(self, buffer):
        data, dim = buffer.data, buffer.dim
        nodes = []
        if buffer.n_points == 0:
            return nodes

        work = [(np.arange(buffer.n_points, dtype=np.int64), ROOT)]
        while work:
            ids, parent = work.pop()
            index = len(nodes)
            vp = select_vantage_point(ids)

            if len(ids) == 1:
                nodes.append(VPNode(vp, 0.0, LEAF, LEAF, parent))
            else:
                dists = self.metric.many(vp, ids, data, dim)
                order = np.argsort(dists, kind="stable")
                ids, dists = ids[order], dists[order]
                middle = split_index(dists)
                nodes.append(VPNode(vp, float(dists[middle]), UNDEF, UNDEF, parent))
                logger.debug(
                    "Node %d: pivot %d splits %d points at %d (threshold %g)",
                    index, vp, len(ids), middle, dists[middle],
                )
                # LIFO: the right partition is emitted first and takes the right slot.
                work.append((ids[:middle], index))
                work.append((ids[middle:], index))

            if parent != ROOT:
                _link_child(nodes, parent, index)

        return nodes

    def check_tree(self):
        """Raise TreeInvariantViolation if any node still has an unresolved child slot."""
        _check_slots(self.nodes)

    def _require_built(self):
        if not self.is_built:
            raise TreeNotBuiltError("The tree has not been built; call fit() first.")

    def _check_query(self, query):
        self._require_built()
        self.buffer.check_index(query)
        return int(query)

    def distance(self, a, b):
        return self.metric(a, b, self.buffer.data, self.buffer.dim)

    # ------------------------------------------------------------------
    # Structure inspection
    # ------------------------------------------------------------------

    def leaves_under(self, index=0):
        """Yield the point ids stored in the leaves of the subtree rooted at index."""
        self._require_built()
        if not self.nodes:
            return
        stack = [index]
        while stack:
            node = self.nodes[stack.pop()]
            if node.is_leaf:
                yield node.pivot
            else:
                stack.append(node.left)
                stack.append(node.right)

    def height(self):
        if not self.nodes:
            return 0
        best = 0
        stack = [(0, 1)]
        while stack:
            index, depth = stack.pop()
            node = self.nodes[index]
            best = max(best, depth)
            if not node.is_leaf:
                stack.append((node.left, depth + 1))
                stack.append((node.right, depth + 1))
        return best

    def check_invariant(self):
        """
        Verify the whole tree exhaustively.

        Every point must sit in exactly one leaf. For every internal node, each
        point of the left subtree must be closer to the pivot than the threshold
        and each point of the right subtree at least as far. Subsets made only of
        exact duplicates of their pivot are split with threshold 0 and are the one
        allowed exception on the left side.

        Raises:
            TreeInvariantViolation: describing the first violation found.
        """
        self._require_built()
        data, dim = self.buffer.data, self.buffer.dim

        leaves = [node.pivot for node in self.nodes if node.is_leaf]
        if sorted(leaves) != list(range(self.buffer.n_points)):
            raise TreeInvariantViolation(
                f"Leaves hold {len(leaves)} ids but the buffer has {self.buffer.n_points} points, "
                "or some ids are missing or repeated."
            )

        for index, node in enumerate(self.nodes):
            if node.is_leaf:
                continue
            left = np.fromiter(self.leaves_under(node.left), dtype=np.int64)
            right = np.fromiter(self.leaves_under(node.right), dtype=np.int64)
            d_left = self.metric.many(node.pivot, left, data, dim)
            d_right = self.metric.many(node.pivot, right, data, dim)

            duplicates = node.threshold == 0.0 and np.all(d_left == 0.0)
            if not (np.all(d_left < node.threshold) or duplicates):
                raise TreeInvariantViolation(
                    f"Node {index}: a left point is not closer than {node.threshold} to pivot {node.pivot}"
                )
            if not np.all(d_right >= node.threshold):
                raise TreeInvariantViolation(
                    f"Node {index}: a right point is closer than {node.threshold} to pivot {node.pivot}"
                )

    def format_tree(self, start=0, stop=None):
        """Render nodes [start, stop) one per line as '[index]: (pivot; threshold; left; right; parent)'."""
        stop = len(self.nodes) if stop is None else min(stop, len(self.nodes))
        return "\n".join(f"[{i}]: {self.nodes[i]}" for i in range(start, stop))

    # ------------------------------------------------------------------
    # Exact lookup
    # ------------------------------------------------------------------

    def find(self, query):
        """
        Locate the leaf that stores point query.

        Descends by comparing the distance to each pivot with the threshold, and
        follows both children only when the distance equals the threshold.

        Args:
            query: Point id.

        Returns:
            Index into self.nodes of the leaf holding query.

        Raises:
            OutOfBoundsError: if query is not a valid point id.
            PointNotFoundError: if no leaf on the search path holds query.
        """
        query = self._check_query(query)
        stack = [0] if self.nodes else []
        while stack:
            index = stack.pop()
            node = self.nodes[index]
            if node.is_leaf:
                if node.pivot == query:
                    return index
                continue
            d = self.distance(node.pivot, query)
            if d < node.threshold:
                stack.append(node.left)
            elif d > node.threshold:
                stack.append(node.right)
            else:
                stack.append(node.left)
                stack.append(node.right)
        raise PointNotFoundError(f"Point {query} was not found in the tree.")

    def belongs(self, query):
        """Brute-force check that some leaf stores point query."""
        self._require_built()
        return any(node.is_leaf and node.pivot == query for node in self.nodes)

    # ------------------------------------------------------------------
    # Traversals shared by the radius and k-nearest searches
    # ------------------------------------------------------------------

    @staticmethod
    def _left_reachable(d, node, radius):
        return d <= node.threshold + radius + PRUNE_TOLERANCE

    @staticmethod
    def _right_reachable(d, node, radius):
        return d >= node.threshold - radius - PRUNE_TOLERANCE

    def _traverse_stack(self, query, radius, visit):
        """
        Depth-first traversal with an explicit stack.

        Args:
            query: Point id.
            radius: Callable returning the current pruning radius.
            visit: Callable(point_id, distance) invoked for every reached leaf.
        """
        stack = [0]
        while stack:
            node = self.nodes[stack.pop()]
            d = self.distance(query, node.pivot)
            if node.is_leaf:
                visit(node.pivot, d)
                continue
            r = radius()
            if self._left_reachable(d, node, r):
                stack.append(node.left)
            if self._right_reachable(d, node, r):
                stack.append(node.right)

    def _descend(self, index, query, radius):
        node = self.nodes[index]
        while not node.is_leaf:
            d = self.distance(query, node.pivot)
            index = node.left if self._left_reachable(d, node, radius()) else node.right
            node = self.nodes[index]
        return index

    def _traverse_parent(self, query, radius, visit):
        """
        Stackless traversal following parent pointers.

        Descends one branch at a time, preferring the left child. After each leaf
        it climbs through the parents; leaving a left child, it enters the right
        sibling if that subtree may still hold candidates, otherwise it keeps
        climbing. It stops when it climbs past the root.
        """
        nodes = self.nodes
        current = self._descend(0, query, radius)
        while True:
            leaf = nodes[current]
            visit(leaf.pivot, self.distance(query, leaf.pivot))

            child, parent = current, leaf.parent
            while parent != ROOT:
                node = nodes[parent]
                if child == node.left and self._right_reachable(
                    self.distance(query, node.pivot), node, radius()
                ):
                    break
                child, parent = parent, node.parent

            if parent == ROOT:
                return
            current = self._descend(nodes[parent].right, query, radius)

    # ------------------------------------------------------------------
    # Radius search
    # ------------------------------------------------------------------

    def search_radius_stack(self, query, radius):
        """Ids of all points strictly closer than radius to query, using the stack traversal."""
        query = self._check_query(query)
        radius = _check_radius(radius)
        found = []

        def visit(point_id, d):
            if d < radius:
                found.append(point_id)

        self._traverse_stack(query, lambda: radius, visit)
        return sorted(found)

    def search_radius_parent(self, query, radius):
        """Ids of all points strictly closer than radius to query, using parent pointers."""
        query = self._check_query(query)
        radius = _check_radius(radius)
        found = []

        def visit(point_id, d):
            if d < radius:
                found.append(point_id)

        self._traverse_parent(query, lambda: radius, visit)
        return sorted(found)

    def brute_radius(self, query, radius):
        """Linear-scan radius search, the reference for the tree traversals."""
        query = self._check_query(query)
        radius = _check_radius(radius)
        dists = self.metric.many(query, np.arange(self.buffer.n_points), self.buffer.data, self.buffer.dim)
        return np.flatnonzero(dists < radius).tolist()

    def search_radius(self, query, radius, strategy="stack"):
        """
        Find all points strictly closer than radius to point query.

        Args:
            query: Point id.
            radius: Non-negative search radius.
            strategy: "stack", "parent" or "brute".

        Returns:
            Sorted list of point ids. query itself is included when radius > 0.
        """
        return self._dispatch(strategy, self.search_radius_stack,
                              self.search_radius_parent, self.brute_radius)(query, radius)

    # ------------------------------------------------------------------
    # k-nearest search
    # ------------------------------------------------------------------

    def _initial_heap(self, query, k):
        k = _check_k(k)
        ids = np.arange(min(k, self.buffer.n_points))
        dists = self.metric.many(query, ids, self.buffer.data, self.buffer.dim)
        return KNearestHeap(ids, dists)

    def knn_stack(self, query, k):
        query = self._check_query(query)
        heap = self._initial_heap(query, k)
        self._traverse_stack(query, heap.radius, heap.offer)
        return heap.result()

    def knn_parent(self, query, k):
        query = self._check_query(query)
        heap = self._initial_heap(query, k)
        self._traverse_parent(query, heap.radius, heap.offer)
        return heap.result()

    def brute_knn(self, query, k):
        query = self._check_query(query)
        k = _check_k(k)
        dists = self.metric.many(query, np.arange(self.buffer.n_points), self.buffer.data, self.buffer.dim)
        return np.argsort(dists, kind="stable")[:k].tolist()

    def knn(self, query, k, strategy="stack"):
        """
        Find the k points closest to point query.

        The heap starts with the first k ids; the largest kept distance is the
        pruning radius for the rest of the traversal. When several points tie at
        the boundary distance, which of them is kept depends on traversal order.

        Args:
            query: Point id.
            k: Number of neighbors; more than n_points returns every point.
            strategy: "stack", "parent" or "brute".

        Returns:
            List of min(k, n_points) ids, nearest first.
        """
        return self._dispatch(strategy, self.knn_stack, self.knn_parent, self.brute_knn)(query, k)

    @staticmethod
    def _dispatch(strategy, stack, parent, brute):
        try:
            return {"stack": stack, "parent": parent, "brute": brute}[strategy]
        except KeyError:
            raise ValueError(f"Unknown strategy {strategy!r}; expected one of {STRATEGIES}") from None

    def __repr__(self):
        if not self.is_built:
            return f"VPTree(metric={self.metric.name!r}, unbuilt)"
        return f"VPTree(n_points={self.buffer.n_points}, dim={self.buffer.dim}, metric={self.metric.name!r})"


def _check_radius(radius):
    radius = float(radius)
    if not radius >= 0.0:
        raise ValueError(f"radius must be non-negative, got {radius}")
    return radius


def _check_k(k):
    if int(k) != k or k < 1:
        raise ValueError(f"k must be a positive integer, got {k}")
    return int(k)

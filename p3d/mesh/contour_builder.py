"""Assembly of unordered slice segments into closed loops.

Endpoints closer than the matching tolerance are merged into graph nodes,
the segments become undirected edges, and loops are walked through the
graph. Node numbering, walk order and loop normalization only depend on
point coordinates, so the result does not change when the input segments
are reordered or flipped.
"""

from __future__ import annotations

from collections import defaultdict

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components
from scipy.spatial import cKDTree

from ..core.contour import Contour

DEFAULT_TOLERANCE = 1e-9
MIN_TOLERANCE = 1e-12


def _lexicographic_order(points: NDArray[np.float64]) -> NDArray[np.intp]:
    """Indices sorting points by x, then y."""
    return np.lexsort((points[:, 1], points[:, 0]))


def merge_endpoints(
    points: NDArray[np.float64],
    tolerance: float,
) -> tuple[NDArray[np.intp], NDArray[np.float64]]:
    """Merge points closer than ``tolerance`` into shared nodes.

    Each node takes the lexicographically smallest of its member points as
    its coordinate, and nodes are numbered in lexicographic order of those
    coordinates.

    Args:
        points: (N, 2) array of segment endpoints
        tolerance: Matching distance

    Returns:
        Tuple of (labels, nodes): node index per input point and the (K, 2)
        node coordinates
    """
    n = len(points)
    pairs = cKDTree(points).query_pairs(r=tolerance, output_type="ndarray")
    graph = coo_matrix(
        (np.ones(len(pairs), dtype=np.int8), (pairs[:, 0], pairs[:, 1])),
        shape=(n, n),
    )
    _, components = connected_components(graph, directed=False)

    order = _lexicographic_order(points)
    sorted_components = components[order]
    unique, first = np.unique(sorted_components, return_index=True)
    representatives = np.empty((len(unique), 2))
    representatives[unique] = points[order[first]]

    rank = _lexicographic_order(representatives)
    relabel = np.empty(len(rank), dtype=np.intp)
    relabel[rank] = np.arange(len(rank))
    return relabel[components], representatives[rank]


def _signed_area(loop: NDArray[np.float64]) -> float:
    x, y = loop[:, 0], loop[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def _normalize_loop(loop: NDArray[np.float64]) -> NDArray[np.float64]:
    """Orient counter-clockwise and start at the lexicographically smallest point."""
    if _signed_area(loop) < 0:
        loop = loop[::-1]
    start = _lexicographic_order(loop)[0]
    return np.roll(loop, -start, axis=0)


def _walk_loops(edges: NDArray[np.intp]) -> list[list[int]]:
    """Walk node paths through an undirected edge list."""
    adjacency: dict[int, list[int]] = defaultdict(list)
    for a, b in edges:
        adjacency[int(a)].append(int(b))
        adjacency[int(b)].append(int(a))
    for neighbours in adjacency.values():
        neighbours.sort()

    used: set[tuple[int, int]] = set()

    def next_node(node: int) -> int | None:
        for nb in adjacency[node]:
            key = (min(node, nb), max(node, nb))
            if key not in used:
                used.add(key)
                return nb
        return None

    # Chain ends (odd degree) first so open chains are walked end to end
    nodes = sorted(adjacency)
    starts = [n for n in nodes if len(adjacency[n]) % 2] + nodes

    paths = []
    for start in starts:
        while True:
            nb = next_node(start)
            if nb is None:
                break
            path = [start]
            current = nb
            while current != start:
                path.append(current)
                nb = next_node(current)
                if nb is None:
                    break
                current = nb
            paths.append(path)
    return paths


def build_contour(
    segments: NDArray[np.float64],
    level: int = 0,
    z: float = 0.0,
    tolerance: float = DEFAULT_TOLERANCE,
) -> Contour:
    """Stitch unordered 2D segments into a Contour.

    Args:
        segments: (N, 2, 2) array of XY segments of one slice
        level: Slice level index stored on the result
        z: Slice height stored on the result
        tolerance: Endpoint matching tolerance, relative to the extent of
            the segment endpoints

    Returns:
        Contour with normalized loops, largest first; empty when no loop
        with at least three distinct points can be formed
    """
    segments = np.asarray(segments, dtype=np.float64).reshape(-1, 2, 2)
    if len(segments) == 0:
        return Contour(level=level, z=z)

    endpoints = segments.reshape(-1, 2)
    extent = float(np.ptp(endpoints, axis=0).max())
    tol = max(tolerance * extent, MIN_TOLERANCE)

    labels, nodes = merge_endpoints(endpoints, tol)
    edges = labels.reshape(-1, 2)
    edges = edges[edges[:, 0] != edges[:, 1]]
    if len(edges) == 0:
        return Contour(level=level, z=z)
    edges = np.unique(np.sort(edges, axis=1), axis=0)

    loops = []
    for path in _walk_loops(edges):
        if len(path) < 3:
            continue
        loop = nodes[path]
        if abs(_signed_area(loop)) <= tol * tol:
            continue
        loops.append(_normalize_loop(loop))

    loops.sort(key=lambda lp: (-abs(_signed_area(lp)), lp[0, 0], lp[0, 1]))
    return Contour(level=level, z=z, loops=tuple(loops))

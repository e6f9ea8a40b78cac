"""K-means colour quantizer (k-means++ seeding followed by Lloyd iterations).

Tuned for the small palettes and grids of a puzzle board: every point is
compared against every center each iteration, which is fine for a few
thousand cells and a few dozen colours.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np
from numpy.typing import NDArray

MIN_CLUSTERS = 2
MAX_CLUSTERS = 48
MIN_ITERATIONS = 3
MAX_ITERATIONS = 30


@dataclass
class Quantization:
    centers: NDArray[np.float64]  # (K, 3)
    labels: NDArray[np.intp]  # (N,)


def clamp_clusters(k: int) -> int:
    return max(MIN_CLUSTERS, min(MAX_CLUSTERS, int(k)))


def clamp_iterations(iterations: int) -> int:
    return max(MIN_ITERATIONS, min(MAX_ITERATIONS, int(iterations)))


def squared_distances(points: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """(N, K) matrix of squared Euclidean RGB distances."""
    diff = points[:, None, :] - centers[None, :, :]
    return np.einsum("nkc,nkc->nk", diff, diff)


def _seed_centers(points: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    n = points.shape[0]
    centers = np.empty((k, 3), dtype=np.float64)
    centers[0] = points[rng.integers(n)]
    nearest = squared_distances(points, centers[:1])[:, 0]
    for c in range(1, k):
        total = float(nearest.sum())
        if total <= 0.0:
            # Fewer distinct colours than clusters: every point already sits on a center.
            idx = int(rng.integers(n))
        else:
            target = rng.random() * total
            idx = int(np.searchsorted(np.cumsum(nearest), target, side="left"))
            idx = min(idx, n - 1)
        centers[c] = points[idx]
        d = squared_distances(points, centers[c : c + 1])[:, 0]
        np.minimum(nearest, d, out=nearest)
    return centers


def quantize(
    points: Union[np.ndarray, Sequence[Sequence[float]]],
    k: int,
    iterations: int,
    *,
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None,
) -> Quantization:
    """Cluster RGB *points* into *k* representative colours.

    ``k`` is clamped to [2, 48] and ``iterations`` to [3, 30]. Seeding is random
    unless a ``seed`` or a ``numpy.random.Generator`` is supplied. Points are
    assigned to the nearest center (lowest index wins ties); a center that loses
    all of its points keeps its previous value.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if pts.shape[0] == 0:
        raise ValueError("cannot quantize an empty point set")
    k = clamp_clusters(k)
    iterations = clamp_iterations(iterations)
    if rng is None:
        rng = np.random.default_rng(seed)

    centers = _seed_centers(pts, k, rng)
    labels = np.zeros(pts.shape[0], dtype=np.intp)
    for _ in range(iterations):
        labels = np.argmin(squared_distances(pts, centers), axis=1)
        counts = np.bincount(labels, minlength=k)
        sums = np.zeros((k, 3), dtype=np.float64)
        np.add.at(sums, labels, pts)
        populated = counts > 0
        centers[populated] = sums[populated] / counts[populated, None]
    return Quantization(centers=centers, labels=labels)

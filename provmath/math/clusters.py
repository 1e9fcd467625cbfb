"""
K-means clustering for provmath.

Lloyd's algorithm with several independent restarts. Each restart draws its
initial centroids from its own generator, seeded from (seed, restart index),
so results are reproducible and adding restarts never changes the earlier
ones. The restart with the lowest inertia wins.
"""

import logging
import numpy as np
from scipy.spatial.distance import pdist, squareform
from typing import Any, Dict, List, Optional, Tuple

from provmath.errors import EmptyClusterError, InvalidParameterError, NonConvergenceError
from provmath.math.named_matrix import NamedMatrix

logger = logging.getLogger(__name__)

# Restart states
INITIALIZING = 'initializing'
ASSIGNING = 'assigning'
UPDATING = 'updating'
CONVERGED = 'converged'
MAX_ITER_REACHED = 'max_iter_reached'

EMPTY_CLUSTER_POLICIES = ('reseed', 'raise')


class Cluster:
    """
    Represents a cluster in K-means clustering.
    """

    def __init__(self,
                 center: np.ndarray,
                 members: Optional[List[int]] = None,
                 id: Optional[int] = None):
        """
        Initialize a cluster with a center and optional members.

        Args:
            center: The center of the cluster
            members: Indices of members belonging to the cluster
            id: Cluster label
        """
        self.center = np.array(center, dtype=float)
        self.members = [] if members is None else list(members)
        self.id = id

    def add_member(self, idx: int) -> None:
        self.members.append(idx)

    def clear_members(self) -> None:
        self.members = []

    def update_center(self, data: np.ndarray) -> None:
        """
        Move the center to the mean of the member points.

        Args:
            data: Data matrix containing all points
        """
        if not self.members:
            return
        self.center = np.mean(data[self.members], axis=0)

    def __repr__(self) -> str:
        return f"Cluster(id={self.id}, members={len(self.members)})"


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    """
    Calculate Euclidean distance between two vectors.
    """
    return float(np.linalg.norm(a - b))


def init_clusters(data: np.ndarray, k: int, rng: np.random.Generator) -> List[Cluster]:
    """
    Initialize k clusters centered on k distinct points chosen at random.

    Args:
        data: Data matrix
        k: Number of clusters
        rng: Random generator for this restart

    Returns:
        List of k clusters with no members
    """
    indices = rng.choice(data.shape[0], size=k, replace=False)
    return [Cluster(data[idx], [], i) for i, idx in enumerate(indices)]


def assign_points_to_clusters(data: np.ndarray, clusters: List[Cluster]) -> np.ndarray:
    """
    Assign each data point to the nearest cluster.

    Ties go to the cluster with the lowest index.

    Args:
        data: Data matrix
        clusters: List of clusters; member lists are rebuilt

    Returns:
        Array of 0-based cluster indices, one per point
    """
    centers = np.array([cluster.center for cluster in clusters])
    dist2 = ((data[:, None, :] - centers[None, :, :]) ** 2).sum(axis=2)
    # argmin returns the first minimum
    labels = np.argmin(dist2, axis=1)

    for cluster in clusters:
        cluster.clear_members()
    for i, label in enumerate(labels):
        clusters[label].add_member(i)

    return labels


def most_distal(data: np.ndarray, clusters: List[Cluster], labels: np.ndarray) -> int:
    """
    Find the point farthest from its cluster center.

    Points that are the only member of their cluster are skipped, so moving
    the result elsewhere never empties a cluster.

    Args:
        data: Data matrix
        clusters: Current clusters
        labels: Current 0-based assignment

    Returns:
        Index of the point, or -1 if every point is a singleton
    """
    max_dist = -1.0
    most_distal_idx = -1

    for idx, label in enumerate(labels):
        if len(clusters[label].members) <= 1:
            continue
        dist = euclidean_distance(data[idx], clusters[label].center)
        if dist > max_dist:
            max_dist = dist
            most_distal_idx = idx

    return most_distal_idx


def update_cluster_centers(data: np.ndarray,
                           clusters: List[Cluster],
                           labels: np.ndarray,
                           empty_cluster_policy: str = 'reseed') -> int:
    """
    Recompute every center as the mean of its members.

    An empty cluster is either reseeded with the most distal point (which is
    moved into it, updating ``labels`` in place) or reported as an error.

    Args:
        data: Data matrix
        clusters: Clusters with current member lists
        labels: Current 0-based assignment
        empty_cluster_policy: 'reseed' or 'raise'

    Returns:
        Number of reseeded clusters

    Raises:
        EmptyClusterError: for an empty cluster under the 'raise' policy
    """
    for cluster in clusters:
        cluster.update_center(data)

    reseeded = 0
    for j, cluster in enumerate(clusters):
        if cluster.members:
            continue
        if empty_cluster_policy == 'raise':
            raise EmptyClusterError(f"Cluster {j + 1} has no assigned points")

        idx = most_distal(data, clusters, labels)
        donor = clusters[labels[idx]]
        donor.members.remove(idx)
        donor.update_center(data)

        cluster.members = [idx]
        cluster.center = data[idx].copy()
        labels[idx] = j
        reseeded += 1

    return reseeded


def compute_inertia(data: np.ndarray, clusters: List[Cluster], labels: np.ndarray) -> float:
    """
    Sum of squared distances from each point to its cluster center.
    """
    centers = np.array([cluster.center for cluster in clusters])
    return float(((data - centers[labels]) ** 2).sum())


class RestartResult:
    """Outcome of one k-means restart."""

    def __init__(self, restart: int, labels: np.ndarray, centers: np.ndarray,
                 inertia: float, state: str, n_iter: int):
        self.restart = restart
        self.labels = labels
        self.centers = centers
        self.inertia = inertia
        self.state = state
        self.n_iter = n_iter

    def __repr__(self) -> str:
        return (f"RestartResult(restart={self.restart}, inertia={self.inertia:.4f}, "
                f"state={self.state}, n_iter={self.n_iter})")


def run_restart(data: np.ndarray,
                k: int,
                max_iter: int,
                rng: np.random.Generator,
                empty_cluster_policy: str = 'reseed',
                restart: int = 0) -> RestartResult:
    """
    Run one k-means restart to convergence or to max_iter iterations.

    Args:
        data: Data matrix
        k: Number of clusters
        max_iter: Maximum number of assign/update iterations
        rng: Random generator for the initial centroids
        empty_cluster_policy: 'reseed' or 'raise'
        restart: Restart index, for logging

    Returns:
        RestartResult with 0-based labels
    """
    state = INITIALIZING
    clusters = init_clusters(data, k, rng)
    labels = None
    n_iter = 0

    while True:
        state = ASSIGNING
        new_labels = assign_points_to_clusters(data, clusters)
        n_iter += 1

        state = UPDATING
        reseeded = update_cluster_centers(data, clusters, new_labels, empty_cluster_policy)
        if reseeded:
            logger.warning(f"Restart {restart}: reseeded {reseeded} empty cluster(s) "
                           f"at iteration {n_iter}")

        # Compared after reseeding: a reseed that restores the previous
        # assignment is a fixed point
        changed = labels is None or bool(np.any(new_labels != labels))
        labels = new_labels

        if not changed:
            state = CONVERGED
            break
        if n_iter >= max_iter:
            state = MAX_ITER_REACHED
            break

    return RestartResult(
        restart=restart,
        labels=labels,
        centers=np.array([cluster.center for cluster in clusters]),
        inertia=compute_inertia(data, clusters, labels),
        state=state,
        n_iter=n_iter,
    )


class KMeansResult:
    """
    Best k-means clustering over all restarts.

    ``labels`` are 1..k, one per observation, in input row order.
    """

    def __init__(self,
                 best: RestartResult,
                 restart_inertias: List[float],
                 k: int,
                 rownames: Optional[List[Any]] = None):
        self.labels = best.labels + 1
        self.centers = best.centers
        self.inertia = best.inertia
        self.restart = best.restart
        self.state = best.state
        self.n_iter = best.n_iter
        self.restart_inertias = list(restart_inertias)
        self.k = k
        self.rownames = list(rownames) if rownames is not None else list(range(len(self.labels)))

    def labels_by_name(self) -> Dict[Any, int]:
        """Cluster label for each observation, keyed by row name."""
        return {name: int(label) for name, label in zip(self.rownames, self.labels)}

    def members(self, label: int) -> List[Any]:
        """Row names assigned to a cluster label (1..k)."""
        return [name for name, lab in zip(self.rownames, self.labels) if lab == label]

    def clusters(self) -> List[Cluster]:
        """The clustering as Cluster objects, ids 1..k, members as row indices."""
        return [
            Cluster(self.centers[j], np.flatnonzero(self.labels == j + 1).tolist(), j + 1)
            for j in range(self.k)
        ]

    def __repr__(self) -> str:
        return f"KMeansResult(k={self.k}, inertia={self.inertia:.4f}, restart={self.restart})"


def validate_kmeans_params(n_points: int, k: int, restarts: int, max_iter: int, seed: int) -> None:
    """
    Check k-means parameters.

    Raises:
        InvalidParameterError: if any parameter is out of range
    """
    if not 1 <= k <= n_points:
        raise InvalidParameterError(f"k must be in [1, {n_points}], got {k}")
    if restarts < 1:
        raise InvalidParameterError(f"restarts must be >= 1, got {restarts}")
    if max_iter < 1:
        raise InvalidParameterError(f"max_iter must be >= 1, got {max_iter}")
    if seed < 0:
        raise InvalidParameterError(f"seed must be non-negative, got {seed}")


def kmeans(data: np.ndarray,
           k: int,
           restarts: int = 1,
           max_iter: int = 50,
           seed: int = 0,
           empty_cluster_policy: str = 'reseed',
           require_convergence: bool = False,
           rownames: Optional[List[Any]] = None) -> KMeansResult:
    """
    Perform K-means clustering with multiple restarts.

    Args:
        data: Data matrix, points in rows
        k: Number of clusters, 1 <= k <= number of points
        restarts: Number of independent restarts, >= 1
        max_iter: Maximum iterations per restart, >= 1
        seed: Non-negative seed; restart i uses default_rng([seed, i])
        empty_cluster_policy: 'reseed' or 'raise'
        require_convergence: Raise if a restart stops at max_iter
        rownames: Optional observation names

    Returns:
        KMeansResult of the minimum-inertia restart

    Raises:
        InvalidParameterError: for out-of-range parameters
        EmptyClusterError: for an empty cluster under the 'raise' policy
        NonConvergenceError: if require_convergence and a restart hits max_iter
    """
    data = np.asarray(data, dtype=float)
    if data.ndim != 2 or data.shape[0] == 0:
        raise InvalidParameterError(f"Expected a non-empty 2-D matrix, got shape {data.shape}")
    validate_kmeans_params(data.shape[0], k, restarts, max_iter, seed)
    if empty_cluster_policy not in EMPTY_CLUSTER_POLICIES:
        raise InvalidParameterError(
            f"Unknown empty cluster policy '{empty_cluster_policy}', "
            f"expected one of {', '.join(EMPTY_CLUSTER_POLICIES)}"
        )

    best = None
    inertias = []

    for restart in range(restarts):
        rng = np.random.default_rng([seed, restart])
        result = run_restart(data, k, max_iter, rng, empty_cluster_policy, restart)

        if result.state == MAX_ITER_REACHED:
            if require_convergence:
                raise NonConvergenceError(
                    f"K-means restart {restart} did not converge within {max_iter} iterations"
                )
            logger.warning(f"Restart {restart} stopped after {max_iter} iterations without converging")

        inertias.append(result.inertia)
        if best is None or result.inertia < best.inertia:
            best = result

    logger.info(f"K-means k={k}: best inertia {best.inertia:.4f} from restart "
                f"{best.restart} of {restarts} ({best.state} after {best.n_iter} iterations)")

    return KMeansResult(best, inertias, k, rownames)


def silhouette(data: np.ndarray, labels: np.ndarray) -> float:
    """
    Calculate the mean silhouette coefficient for a clustering.

    Points in singleton clusters contribute 0.

    Args:
        data: Data matrix
        labels: Cluster label per point

    Returns:
        Silhouette coefficient (between -1 and 1), 0 for fewer than 2 clusters
    """
    labels = np.asarray(labels)
    unique = np.unique(labels)
    if len(unique) <= 1 or data.shape[0] == 0:
        return 0.0

    dist_matrix = squareform(pdist(data))

    silhouette_values = []
    for idx in range(data.shape[0]):
        same = (labels == labels[idx])
        same[idx] = False

        if not same.any():
            silhouette_values.append(0.0)
            continue

        a = dist_matrix[idx, same].mean()
        b = min(dist_matrix[idx, labels == other].mean()
                for other in unique if other != labels[idx])

        if a == 0 and b == 0:
            silhouette_values.append(0.0)
        else:
            silhouette_values.append((b - a) / max(a, b))

    return float(np.mean(silhouette_values))


def clusters_to_dict(clusters: List[Cluster], data_indices: Optional[List[Any]] = None) -> List[Dict]:
    """
    Convert clusters to a dictionary format for serialization.

    Args:
        clusters: List of clusters
        data_indices: Optional mapping from numerical indices to row names

    Returns:
        List of cluster dictionaries
    """
    result = []

    for cluster in clusters:
        if data_indices is not None:
            members = [data_indices[idx] for idx in cluster.members]
        else:
            members = cluster.members

        result.append({
            'id': cluster.id,
            'center': cluster.center.tolist(),
            'members': members
        })

    return result


def summarize_clusters(result: KMeansResult, table: Optional[NamedMatrix] = None) -> List[Dict]:
    """
    Describe each cluster: size, members, centroid and indicator means.

    Args:
        result: K-means result
        table: Optional observation table (same rows) for per-cluster means

    Returns:
        One dictionary per cluster label, in label order
    """
    summaries = clusters_to_dict(result.clusters(), result.rownames)
    for summary in summaries:
        summary['size'] = len(summary['members'])
        if table is not None:
            subset = table.rowname_subset(summary['members'])
            summary['means'] = {
                col: float(value) for col, value in subset.to_dataframe().mean().items()
            }
    return summaries


def cluster_named_matrix(nmat: NamedMatrix,
                         k: int,
                         restarts: int = 1,
                         max_iter: int = 50,
                         seed: int = 0,
                         columns: Optional[List[Any]] = None,
                         empty_cluster_policy: str = 'reseed',
                         require_convergence: bool = False) -> KMeansResult:
    """
    Cluster the rows of a NamedMatrix.

    Args:
        nmat: Matrix of points (for example PCA scores)
        k: Number of clusters
        restarts: Number of restarts
        max_iter: Maximum iterations per restart
        seed: Random seed
        columns: Columns to cluster on (default all)
        empty_cluster_policy: 'reseed' or 'raise'
        require_convergence: Raise if a restart hits max_iter

    Returns:
        KMeansResult with labels keyed to the matrix row names
    """
    if columns is not None:
        missing = [col for col in columns if col not in nmat.get_col_index()]
        if missing:
            raise InvalidParameterError(f"Unknown column(s) for clustering: {missing}")
        nmat = nmat.colname_subset(columns)

    return kmeans(
        nmat.values,
        k,
        restarts=restarts,
        max_iter=max_iter,
        seed=seed,
        empty_cluster_policy=empty_cluster_policy,
        require_convergence=require_convergence,
        rownames=nmat.rownames(),
    )

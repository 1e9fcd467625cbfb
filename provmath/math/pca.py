"""
PCA (Principal Component Analysis) for provmath.

Components come from the eigen-decomposition of the correlation matrix of a
standardized data matrix. The eigen-solver sits behind decompose_symmetric so
the numerical backend can be swapped:

- ``lapack``: scipy.linalg.eigh
- ``power``: power iteration with deflation
"""

import logging
import numpy as np
import pandas as pd
import scipy.linalg
from typing import Any, Dict, List, Optional, Tuple

from provmath.errors import InvalidParameterError, NonConvergenceError
from provmath.math.named_matrix import NamedMatrix

logger = logging.getLogger(__name__)

BACKENDS = ('lapack', 'power')


def normalize_vector(v: np.ndarray) -> np.ndarray:
    """
    Normalize a vector to unit length.

    Args:
        v: Vector to normalize

    Returns:
        Normalized vector
    """
    norm = np.linalg.norm(v)
    if norm == 0:
        return v
    return v / norm


def proj_vec(u: np.ndarray, v: np.ndarray) -> np.ndarray:
    """
    Project vector v onto vector u.

    Args:
        u: Vector to project onto
        v: Vector to project

    Returns:
        Projection of v onto u
    """
    if np.dot(u, u) == 0:
        return np.zeros_like(v)
    return np.dot(u, v) / np.dot(u, u) * u


def orthogonalize(v: np.ndarray, basis: List[np.ndarray]) -> np.ndarray:
    """
    Remove from v its components along each vector of basis (Gram-Schmidt).
    """
    for b in basis:
        v = v - proj_vec(b, v)
    return v


def power_iteration(matrix: np.ndarray,
                    start_vector: np.ndarray,
                    max_iter: int = 1000,
                    tol: float = 1e-10) -> Tuple[float, np.ndarray]:
    """
    Find the dominant eigenpair of a symmetric positive semi-definite matrix.

    Plain power steps run until the Rayleigh quotient settles to within
    sqrt(tol). The pair is then polished with Rayleigh quotient iteration
    until the residual |Av - lambda v| is at most tol * max(1, |lambda|), so
    nearly tied eigenvalues do not stall convergence.

    Args:
        matrix: Symmetric matrix
        start_vector: Initial vector, not orthogonal to the dominant eigenvector
        max_iter: Maximum number of iterations for each of the two phases
        tol: Residual tolerance for the returned eigenpair

    Returns:
        Tuple of (eigenvalue, unit eigenvector)

    Raises:
        NonConvergenceError: if either phase exhausts max_iter
    """
    vec = normalize_vector(np.asarray(start_vector, dtype=float))
    coarse_tol = np.sqrt(tol)
    eigval = None

    for _ in range(max_iter):
        product = matrix @ vec
        length = np.linalg.norm(product)

        if length <= tol:
            # Null space: any unit vector is an eigenvector for 0
            return 0.0, vec

        vec = product / length
        rayleigh = float(vec @ matrix @ vec)
        if eigval is not None and abs(rayleigh - eigval) <= coarse_tol * max(1.0, abs(rayleigh)):
            return refine_eigenpair(matrix, rayleigh, vec, max_iter, tol)
        eigval = rayleigh

    raise NonConvergenceError(
        f"Power iteration did not converge within {max_iter} iterations"
    )


def refine_eigenpair(matrix: np.ndarray,
                     eigval: float,
                     vec: np.ndarray,
                     max_iter: int = 1000,
                     tol: float = 1e-10) -> Tuple[float, np.ndarray]:
    """
    Polish an approximate eigenpair with Rayleigh quotient iteration.

    Args:
        matrix: Symmetric matrix
        eigval: Approximate eigenvalue, closer to the target than to any other
        vec: Approximate unit eigenvector
        max_iter: Maximum number of shifted inverse iteration steps
        tol: Residual tolerance relative to max(1, |eigval|)

    Returns:
        Tuple of (eigenvalue, unit eigenvector)

    Raises:
        NonConvergenceError: if the residual is still above tolerance
    """
    identity = np.eye(matrix.shape[0])

    for _ in range(max_iter):
        residual = np.linalg.norm(matrix @ vec - eigval * vec)
        if residual <= tol * max(1.0, abs(eigval)):
            return eigval, vec

        try:
            step = np.linalg.solve(matrix - eigval * identity, vec)
        except np.linalg.LinAlgError:
            # The shift is an exact eigenvalue
            return eigval, vec
        if not np.all(np.isfinite(step)):
            return eigval, vec

        vec = normalize_vector(step)
        eigval = float(vec @ matrix @ vec)

    raise NonConvergenceError(
        f"Eigenpair refinement did not converge within {max_iter} iterations"
    )


def _power_eigh(matrix: np.ndarray,
                max_iter: int,
                tol: float,
                seed: int = 42) -> Tuple[np.ndarray, np.ndarray]:
    p = matrix.shape[0]
    rng = np.random.default_rng(seed)

    eigvals = []
    eigvecs = []
    deflated = matrix.copy()

    for _ in range(p):
        start = orthogonalize(rng.standard_normal(p), eigvecs)
        eigval, vec = power_iteration(deflated, start, max_iter, tol)
        # Keep the basis orthonormal when the remaining spectrum is all zero
        vec = normalize_vector(orthogonalize(vec, eigvecs))
        eigvals.append(eigval)
        eigvecs.append(vec)
        deflated = deflated - eigval * np.outer(vec, vec)

    return np.array(eigvals), np.column_stack(eigvecs)


def _lapack_eigh(matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    try:
        return scipy.linalg.eigh(matrix)
    except scipy.linalg.LinAlgError as e:
        raise NonConvergenceError(f"Eigen-decomposition failed: {e}") from e


def order_eigenpairs(eigvals: np.ndarray,
                     eigvecs: np.ndarray,
                     tol: float = 1e-10) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sort eigenpairs by eigenvalue, largest first, and fix eigenvector signs.

    Eigenvalues equal within tol are ordered by the index of the variable
    with the largest absolute entry in their eigenvector. Each eigenvector is
    flipped so that its largest-magnitude entry is positive.

    Args:
        eigvals: Eigenvalues, shape (p,)
        eigvecs: Eigenvectors as columns, shape (p, p)
        tol: Tolerance under which two eigenvalues count as tied

    Returns:
        Tuple of (eigenvalues, eigenvectors) in the new order
    """
    eigvals = np.asarray(eigvals, dtype=float)
    eigvecs = np.array(eigvecs, dtype=float)

    dominant = np.argmax(np.abs(eigvecs), axis=0)
    signs = np.sign(eigvecs[dominant, np.arange(eigvecs.shape[1])])
    signs[signs == 0] = 1.0
    eigvecs = eigvecs * signs

    # lexsort is stable and uses the last key as the primary one
    rounded = np.round(eigvals / tol) if tol > 0 else eigvals
    order = np.lexsort((dominant, -rounded))
    return eigvals[order], eigvecs[:, order]


def decompose_symmetric(matrix: np.ndarray,
                        backend: str = 'lapack',
                        max_iter: int = 1000,
                        tol: float = 1e-10) -> Tuple[np.ndarray, np.ndarray]:
    """
    Eigen-decompose a real symmetric matrix.

    Args:
        matrix: Symmetric (p x p) matrix
        backend: 'lapack' or 'power'
        max_iter: Iteration budget per eigenvector for the power backend
        tol: Convergence and tie tolerance

    Returns:
        Tuple of (eigenvalues, eigenvectors as columns), eigenvalues
        descending

    Raises:
        InvalidParameterError: for a non-square or non-symmetric matrix, or an
            unknown backend
        NonConvergenceError: if the solver fails to converge
    """
    matrix = np.asarray(matrix, dtype=float)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise InvalidParameterError(f"Expected a square matrix, got shape {matrix.shape}")
    if not np.allclose(matrix, matrix.T):
        raise InvalidParameterError("Matrix is not symmetric")

    if backend == 'lapack':
        eigvals, eigvecs = _lapack_eigh(matrix)
    elif backend == 'power':
        if max_iter < 1:
            raise InvalidParameterError(f"max_iter must be >= 1, got {max_iter}")
        eigvals, eigvecs = _power_eigh(matrix, max_iter, tol)
    else:
        raise InvalidParameterError(
            f"Unknown eigen backend '{backend}', expected one of {', '.join(BACKENDS)}"
        )

    return order_eigenpairs(eigvals, eigvecs, tol)


def correlation_matrix(data: np.ndarray) -> np.ndarray:
    """
    Calculate Z^T Z / (n - 1) for a standardized matrix Z.

    Args:
        data: Standardized matrix, observations in rows

    Returns:
        (p x p) correlation matrix
    """
    n_rows = data.shape[0]
    corr = data.T @ data / (n_rows - 1)
    # Remove rounding asymmetry
    return (corr + corr.T) / 2


class PCAResult:
    """
    Principal components of a standardized matrix.

    Components are numbered from 1 in every public accessor.
    """

    def __init__(self,
                 eigenvalues: np.ndarray,
                 eigenvectors: np.ndarray,
                 scores: np.ndarray,
                 total_variance: float,
                 rownames: Optional[List[Any]] = None,
                 colnames: Optional[List[Any]] = None):
        """
        Initialize a PCA result.

        Args:
            eigenvalues: Retained eigenvalues, descending, shape (c,)
            eigenvectors: Matching unit eigenvectors as columns, shape (p, c)
            scores: Projections of the observations, shape (n, c)
            total_variance: Sum of all eigenvalues (retained or not)
            rownames: Observation names
            colnames: Variable names
        """
        self.eigenvalues = eigenvalues
        self.eigenvectors = eigenvectors
        self.scores = scores
        self.total_variance = total_variance
        self.rownames = list(rownames) if rownames is not None else list(range(scores.shape[0]))
        self.colnames = list(colnames) if colnames is not None else list(range(eigenvectors.shape[0]))

    @property
    def n_components(self) -> int:
        return len(self.eigenvalues)

    @property
    def variance_explained(self) -> np.ndarray:
        """Fraction of total variance carried by each component."""
        return self.eigenvalues / self.total_variance

    @property
    def cumulative_variance(self) -> np.ndarray:
        return np.cumsum(self.variance_explained)

    @property
    def loadings(self) -> np.ndarray:
        """Correlation of each variable with each component, shape (p, c)."""
        return self.eigenvectors * np.sqrt(self.eigenvalues)

    def component_names(self, n: Optional[int] = None) -> List[str]:
        n = self.n_components if n is None else min(n, self.n_components)
        return [f"PC{i + 1}" for i in range(n)]

    def _check_component(self, component: int) -> int:
        if not 1 <= component <= self.n_components:
            raise InvalidParameterError(
                f"Component {component} out of range 1..{self.n_components}"
            )
        return component - 1

    def component(self, component: int) -> Dict[str, Any]:
        """
        Describe one component.

        Args:
            component: Component number, starting at 1

        Returns:
            Dictionary with eigenvalue, variance explained, loadings and
            scores keyed by variable and observation name
        """
        idx = self._check_component(component)
        return {
            'component': component,
            'eigenvalue': float(self.eigenvalues[idx]),
            'variance_explained': float(self.variance_explained[idx]),
            'loadings': dict(zip(self.colnames, self.loadings[:, idx].tolist())),
            'scores': dict(zip(self.rownames, self.scores[:, idx].tolist())),
        }

    def component_scores(self, component: int) -> np.ndarray:
        return self.scores[:, self._check_component(component)].copy()

    def scores_matrix(self, n: Optional[int] = None) -> NamedMatrix:
        """Leading n score columns as a NamedMatrix (PC1..PCn)."""
        names = self.component_names(n)
        return NamedMatrix(self.scores[:, :len(names)], self.rownames, names)

    def scores_frame(self, n: Optional[int] = None) -> pd.DataFrame:
        return self.scores_matrix(n).to_dataframe()

    def loadings_frame(self, n: Optional[int] = None) -> pd.DataFrame:
        names = self.component_names(n)
        return pd.DataFrame(self.loadings[:, :len(names)], index=self.colnames, columns=names)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the result to plain Python types for serialization.
        """
        return {
            'n_components': self.n_components,
            'eigenvalues': self.eigenvalues.tolist(),
            'variance_explained': self.variance_explained.tolist(),
            'cumulative_variance': self.cumulative_variance.tolist(),
            'variables': self.colnames,
            'loadings': {
                name: dict(zip(self.colnames, self.loadings[:, i].tolist()))
                for i, name in enumerate(self.component_names())
            },
        }

    def __repr__(self) -> str:
        return f"PCAResult(components={self.n_components}, variables={len(self.colnames)})"


def pca(data: np.ndarray,
        backend: str = 'lapack',
        max_iter: int = 1000,
        tol: float = 1e-10,
        rownames: Optional[List[Any]] = None,
        colnames: Optional[List[Any]] = None) -> PCAResult:
    """
    Compute principal components of a standardized matrix.

    Args:
        data: Standardized matrix, observations in rows, at least 2 columns
        backend: Eigen-solver backend, see decompose_symmetric
        max_iter: Iteration budget for iterative backends
        tol: Eigenvalues within tol (relative to the largest) are treated as 0
        rownames: Observation names
        colnames: Variable names

    Returns:
        PCAResult with zero-variance components dropped
    """
    data = np.asarray(data, dtype=float)
    if data.ndim != 2 or data.shape[1] < 2:
        raise InvalidParameterError(
            f"PCA needs at least 2 variables, got shape {data.shape}"
        )
    if data.shape[0] < 2:
        raise InvalidParameterError(
            f"PCA needs at least 2 observations, got {data.shape[0]}"
        )

    corr = correlation_matrix(data)
    eigvals, eigvecs = decompose_symmetric(corr, backend, max_iter, tol)

    threshold = tol * max(1.0, float(np.max(np.abs(eigvals))))
    eigvals = np.where(eigvals < threshold, 0.0, eigvals)

    keep = eigvals > 0
    if not np.all(keep):
        logger.info(f"Dropping {int(np.sum(~keep))} zero-variance component(s)")

    eigvals = eigvals[keep]
    eigvecs = eigvecs[:, keep]
    scores = data @ eigvecs

    return PCAResult(eigvals, eigvecs, scores, float(np.sum(eigvals)), rownames, colnames)


def pca_named_matrix(nmat: NamedMatrix,
                     backend: str = 'lapack',
                     max_iter: int = 1000,
                     tol: float = 1e-10) -> PCAResult:
    """
    Perform PCA on a standardized NamedMatrix.

    Args:
        nmat: Standardized matrix
        backend: Eigen-solver backend
        max_iter: Iteration budget for iterative backends
        tol: Eigenvalue tolerance

    Returns:
        PCAResult carrying the matrix row and column names
    """
    result = pca(nmat.values, backend, max_iter, tol, nmat.rownames(), nmat.colnames())
    logger.info(
        f"PCA ({backend}) on {nmat.shape[0]}x{nmat.shape[1]}: "
        f"{result.n_components} components, leading two explain "
        f"{float(result.cumulative_variance[min(1, result.n_components - 1)]):.1%}"
    )
    return result


def reconstruct(result: PCAResult, n_components: Optional[int] = None) -> np.ndarray:
    """
    Rebuild the standardized matrix from scores and loadings.

    With all components retained this reproduces the PCA input.

    Args:
        result: PCA result
        n_components: Number of leading components to use (default all)

    Returns:
        Approximation of the standardized matrix, shape (n, p)
    """
    c = result.n_components if n_components is None else min(n_components, result.n_components)
    scores = result.scores[:, :c]
    loadings = result.loadings[:, :c]
    return (scores / np.sqrt(result.eigenvalues[:c])) @ loadings.T


def top_loadings(result: PCAResult, component: int, n: int = 3) -> List[Tuple[Any, float]]:
    """
    Variables with the largest absolute loadings on a component.

    Args:
        result: PCA result
        component: Component number, starting at 1
        n: Number of variables to return

    Returns:
        List of (variable, loading) pairs, strongest first
    """
    loadings = result.component(component)['loadings']
    ranked = sorted(loadings.items(), key=lambda item: abs(item[1]), reverse=True)
    return ranked[:n]

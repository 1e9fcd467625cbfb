"""
Core numerical routines: feature derivation, standardization, PCA and k-means.
"""

from provmath.math.named_matrix import NamedMatrix, create_named_matrix
from provmath.math.features import derive_ratio, derive_features
from provmath.math.standardize import Standardization, standardize, standardize_named_matrix
from provmath.math.pca import PCAResult, decompose_symmetric, pca, pca_named_matrix, reconstruct, top_loadings
from provmath.math.clusters import KMeansResult, kmeans, cluster_named_matrix, silhouette, summarize_clusters

__all__ = [
    'NamedMatrix',
    'create_named_matrix',
    'derive_ratio',
    'derive_features',
    'Standardization',
    'standardize',
    'standardize_named_matrix',
    'PCAResult',
    'decompose_symmetric',
    'pca',
    'pca_named_matrix',
    'reconstruct',
    'top_loadings',
    'KMeansResult',
    'kmeans',
    'cluster_named_matrix',
    'silhouette',
    'summarize_clusters',
]

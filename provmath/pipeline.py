"""
End-to-end analysis pipeline for provmath.

This module ties the stages together: load the province table, derive
per-capita features, standardize, compute principal components, cluster the
leading component scores and summarize. Each stage takes a value and returns
a new one; a failing stage aborts the run.
"""

import json
import logging
import os
import time
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import pandas as pd

from provmath.components.config import Config
from provmath.data_loader import load_observations
from provmath.errors import InvalidParameterError, ProvmathError
from provmath.math.clusters import KMeansResult, cluster_named_matrix, silhouette, summarize_clusters
from provmath.math.features import derive_features
from provmath.math.named_matrix import NamedMatrix
from provmath.math.pca import PCAResult, pca_named_matrix, top_loadings
from provmath.math.standardize import standardize_named_matrix

# Logging configuration
logger = logging.getLogger(__name__)


class AnalysisResult:
    """
    Outputs of one pipeline run.
    """

    def __init__(self,
                 table: NamedMatrix,
                 standardized: NamedMatrix,
                 pca: PCAResult,
                 clustering: KMeansResult,
                 n_cluster_components: int,
                 config: Dict[str, Any]):
        """
        Initialize an analysis result.

        Args:
            table: Observation table including derived columns
            standardized: Standardized numeric matrix fed to PCA
            pca: Principal component result
            clustering: K-means result on the leading scores
            n_cluster_components: Number of score columns clustered on
            config: Configuration used for the run
        """
        self.table = table
        self.standardized = standardized
        self.pca = pca
        self.clustering = clustering
        self.n_cluster_components = n_cluster_components
        self.config = config

        points = pca.scores[:, :n_cluster_components]
        self.silhouette = silhouette(points, clustering.labels)
        self.cluster_summaries = summarize_clusters(clustering, table)

    def output_table(self) -> pd.DataFrame:
        """
        Observation table with PCA scores and cluster labels appended.

        Returns:
            DataFrame indexed by the key column
        """
        key = self.config['input']['key-column']
        frame = self.table.to_dataframe(index_name=key)
        scores = self.pca.scores_frame()
        for col in scores.columns:
            frame[col] = scores[col].values
        frame['cluster'] = self.clustering.labels
        return frame

    def get_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the run.

        Returns:
            Dictionary with summary information
        """
        return {
            'n_observations': self.table.shape[0],
            'variables': self.pca.colnames,
            'variance_explained': {
                name: float(value)
                for name, value in zip(self.pca.component_names(), self.pca.variance_explained)
            },
            'k': self.clustering.k,
            'inertia': float(self.clustering.inertia),
            'silhouette': float(self.silhouette),
            'best_restart': self.clustering.restart,
            'restart_state': self.clustering.state,
            'labels': self.clustering.labels_by_name(),
        }

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the run to plain Python types for serialization.

        Returns:
            Dictionary with summary, PCA, clusters and configuration
        """
        return {
            'summary': self.get_summary(),
            'pca': self.pca.to_dict(),
            'clusters': self.cluster_summaries,
            'config': self.config,
        }


class AnalysisPipeline:
    """
    Runs the load -> derive -> standardize -> PCA -> k-means sequence.
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize the pipeline.

        Args:
            config: Configuration for the run (defaults plus environment)
        """
        self.config = config or Config()

    @contextmanager
    def _stage(self, name: str):
        start_time = time.time()
        logger.info(f"Stage {name} started")
        try:
            yield
        except ProvmathError as e:
            e.stage = name
            logger.error(f"{name} failed: {e.message}")
            raise
        logger.info(f"[{time.time() - start_time:.2f}s] Stage {name} completed")

    def load(self) -> NamedMatrix:
        with self._stage('load'):
            return load_observations(
                self.config.get('input.path'),
                key_column=self.config.get('input.key-column'),
                separator=self.config.get('input.separator'),
                exclude_columns=self.config.get('input.exclude-columns'),
            )

    def derive(self, table: NamedMatrix) -> NamedMatrix:
        with self._stage('derive'):
            return derive_features(table, self.config.get('features.ratios') or {})

    def standardize(self, table: NamedMatrix) -> NamedMatrix:
        with self._stage('standardize'):
            return standardize_named_matrix(table)

    def decompose(self, standardized: NamedMatrix) -> PCAResult:
        with self._stage('pca'):
            return pca_named_matrix(
                standardized,
                backend=self.config.get('pca.backend'),
                max_iter=self.config.get('pca.max-iter'),
                tol=float(self.config.get('pca.tolerance')),
            )

    def cluster(self, pca_result: PCAResult) -> KMeansResult:
        with self._stage('kmeans'):
            n_comps = self.config.get('kmeans.components')
            if n_comps > pca_result.n_components:
                raise InvalidParameterError(
                    f"Cannot cluster on {n_comps} components, only "
                    f"{pca_result.n_components} available"
                )
            return cluster_named_matrix(
                pca_result.scores_matrix(n_comps),
                k=self.config.get('kmeans.k'),
                restarts=self.config.get('kmeans.restarts'),
                max_iter=self.config.get('kmeans.max-iter'),
                seed=self.config.get('kmeans.seed'),
                empty_cluster_policy=self.config.get('kmeans.empty-cluster-policy'),
                require_convergence=bool(self.config.get('kmeans.require-convergence')),
            )

    def run(self) -> AnalysisResult:
        """
        Run every stage.

        Returns:
            AnalysisResult for the run

        Raises:
            ProvmathError: from the first failing stage, with ``stage`` set
        """
        start_time = time.time()

        with self._stage('config'):
            self.config.validate()

        table = self.derive(self.load())
        standardized = self.standardize(table)
        pca_result = self.decompose(standardized)
        clustering = self.cluster(pca_result)

        with self._stage('summarize'):
            result = AnalysisResult(
                table,
                standardized,
                pca_result,
                clustering,
                self.config.get('kmeans.components'),
                self.config.to_dict(),
            )

        output_dir = self.config.get('output.dir')
        if output_dir:
            with self._stage('write'):
                write_outputs(result, output_dir)

        logger.info(f"Analysis completed in {time.time() - start_time:.2f}s")
        return result


def run_analysis(overrides: Optional[Dict[str, Any]] = None) -> AnalysisResult:
    """
    Run the pipeline with default configuration plus overrides.

    Args:
        overrides: Configuration overrides

    Returns:
        AnalysisResult for the run
    """
    return AnalysisPipeline(Config(overrides)).run()


def write_outputs(result: AnalysisResult, output_dir: str) -> Dict[str, str]:
    """
    Write the observation table, loadings and a JSON summary.

    Args:
        result: Analysis result
        output_dir: Directory to write into (created if needed)

    Returns:
        Mapping of output kind to file path
    """
    os.makedirs(output_dir, exist_ok=True)

    paths = {
        'observations': os.path.join(output_dir, 'observations.csv'),
        'loadings': os.path.join(output_dir, 'loadings.csv'),
        'summary': os.path.join(output_dir, 'summary.json'),
    }

    result.output_table().to_csv(paths['observations'])

    loadings = result.pca.loadings_frame()
    loadings.index.name = 'variable'
    loadings.to_csv(paths['loadings'])

    with open(paths['summary'], 'w', encoding='utf-8') as f:
        json.dump(result.to_dict(), f, indent=2, ensure_ascii=False)

    for kind, path in paths.items():
        logger.info(f"Wrote {kind} to {path}")
    return paths


def format_report(result: AnalysisResult, n_components: int = 2, n_loadings: int = 3) -> str:
    """
    Render a plain-text report of a run.

    Args:
        result: Analysis result
        n_components: Components to describe in detail
        n_loadings: Strongest loadings listed per component

    Returns:
        Report text
    """
    lines: List[str] = []
    pca_result = result.pca

    lines.append(f"Observations: {result.table.shape[0]}, variables: {len(pca_result.colnames)}")
    lines.append("")
    lines.append("Variance explained:")
    for name, frac, cum in zip(pca_result.component_names(),
                               pca_result.variance_explained,
                               pca_result.cumulative_variance):
        lines.append(f"  {name:>5}  {frac:6.1%}  (cumulative {cum:6.1%})")

    lines.append("")
    for component in range(1, min(n_components, pca_result.n_components) + 1):
        strongest = ", ".join(
            f"{var} {loading:+.2f}" for var, loading in top_loadings(pca_result, component, n_loadings)
        )
        lines.append(f"PC{component} strongest loadings: {strongest}")

    lines.append("")
    lines.append(f"K-means (k={result.clustering.k}) on PC1..PC{result.n_cluster_components}: "
                 f"inertia {result.clustering.inertia:.3f}, silhouette {result.silhouette:.3f}")
    for summary in result.cluster_summaries:
        centroid = ", ".join(f"{value:.2f}" for value in summary['center'])
        lines.append(f"  Cluster {summary['id']} ({summary['size']}) [{centroid}]: "
                     f"{', '.join(map(str, summary['members']))}")

    return "\n".join(lines)

"""
Provmath package for provincial indicator analysis.

Loads a table of provinces, derives per-capita features, runs PCA on the
standardized indicators and clusters provinces with k-means on the leading
component scores.
"""

__version__ = '0.1.0'

from provmath.components.config import Config
from provmath.pipeline import AnalysisPipeline, AnalysisResult, run_analysis

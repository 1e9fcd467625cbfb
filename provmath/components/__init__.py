"""
System components for provmath.

This module provides run-level components shared by the pipeline and the CLI.
"""

from provmath.components.config import Config, load_config_file

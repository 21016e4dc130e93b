"""SBOMRadar — org-wide SBOM scanner for watched npm package versions.

This package provides the core logic for loading a watch list, fetching
GitHub dependency-graph SBOMs, matching packages, and reporting on the
repositories that contain affected versions.
"""

__version__ = "0.1.0"

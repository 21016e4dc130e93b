#!/usr/bin/env python3
"""SBOMRadar scan — thin shim.

Keeps ``python sbom_scan.py --org=<org>`` invocations working.
The real implementation lives in ``sbomradar/``.
"""

from sbomradar.cli import main

if __name__ == "__main__":
    raise SystemExit(main())

"""Runtime producers for the trimcheck CLI.

These modules implement *how* to turn job results into reports, signatures
and pipeline verdicts. The checker itself lives in trimcheck.checker.
"""

from __future__ import annotations

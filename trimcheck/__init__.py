"""trimcheck: dependency-trim check/fix jobs over a shared cargo build context.

The checker never owns toolchain provisioning or artifact caching; it only
orchestrates the trimming tool against what the builder hands it.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version


def __getattr__(name: str):
    if name == "__version__":
        try:
            return version("trimcheck")
        except PackageNotFoundError:
            return "0.0.0"
    raise AttributeError(name)

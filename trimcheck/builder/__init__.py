"""Builder context: the shared common args and artifact reference every job reads."""

from __future__ import annotations

from trimcheck.builder.config import CONFIG_FILENAME, build_context_from_sources, load_builder_config
from trimcheck.builder.context import BuildContext, mk_build_context, read_crate_identity

__all__ = [
    "CONFIG_FILENAME",
    "BuildContext",
    "build_context_from_sources",
    "load_builder_config",
    "mk_build_context",
    "read_crate_identity",
]

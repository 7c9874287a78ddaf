from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Mapping

from trimcheck.builder.context import DEFAULT_MANIFEST_PATH, BuildContext, mk_build_context
from trimcheck.core.errors import BuildContextError


CONFIG_FILENAME = "trimcheck.toml"
ENV_CARGO_ARTIFACTS = "TRIMCHECK_CARGO_ARTIFACTS"

_KNOWN_KEYS = ("cargo_artifacts", "manifest_path", "native_build_inputs", "inherit_path", "env")


def load_builder_config(path: Path) -> dict[str, Any]:
    """Read the [builder] table of a trimcheck.toml file.

    A missing file yields an empty config. Unknown keys are rejected so a typo
    does not silently fall back to a default.
    """

    if not path.exists():
        return {}
    if path.is_symlink() or not path.is_file():
        raise BuildContextError(f"invalid config path: {path}")
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8", errors="strict"))
    except (OSError, UnicodeDecodeError) as e:
        raise BuildContextError(f"unable to read {path.name}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise BuildContextError(f"{path.name} is not valid TOML: {e}") from e

    builder = data.get("builder", {})
    if not isinstance(builder, dict):
        raise BuildContextError(f"{path.name}: [builder] must be a table")

    unknown = sorted(k for k in builder if k not in _KNOWN_KEYS)
    if unknown:
        raise BuildContextError(f"{path.name}: unknown [builder] keys: {', '.join(unknown)}")

    out: dict[str, Any] = {}
    if "cargo_artifacts" in builder:
        if not isinstance(builder["cargo_artifacts"], str):
            raise BuildContextError(f"{path.name}: builder.cargo_artifacts must be a string")
        out["cargo_artifacts"] = builder["cargo_artifacts"]
    if "manifest_path" in builder:
        if not isinstance(builder["manifest_path"], str):
            raise BuildContextError(f"{path.name}: builder.manifest_path must be a string")
        out["manifest_path"] = builder["manifest_path"]
    if "native_build_inputs" in builder:
        raw = builder["native_build_inputs"]
        if not isinstance(raw, list) or not all(isinstance(x, str) and x for x in raw):
            raise BuildContextError(f"{path.name}: builder.native_build_inputs must be a list of strings")
        out["native_build_inputs"] = list(raw)
    if "inherit_path" in builder:
        if not isinstance(builder["inherit_path"], bool):
            raise BuildContextError(f"{path.name}: builder.inherit_path must be a boolean")
        out["inherit_path"] = builder["inherit_path"]
    if "env" in builder:
        raw_env = builder["env"]
        if not isinstance(raw_env, dict) or not all(isinstance(v, str) for v in raw_env.values()):
            raise BuildContextError(f"{path.name}: [builder.env] values must be strings")
        out["env"] = dict(raw_env)
    return out


def build_context_from_sources(
    src: Path,
    *,
    config_path: Path | None = None,
    cargo_artifacts: str | None = None,
    manifest_path: str | None = None,
    native_build_inputs: list[str] | None = None,
    inherit_path: bool | None = None,
    environ: Mapping[str, str] | None = None,
) -> BuildContext:
    """Merge CLI overrides, environment and trimcheck.toml into one BuildContext.

    Precedence: explicit arguments > TRIMCHECK_CARGO_ARTIFACTS > config file > defaults.
    CLI native inputs are appended after the configured ones.
    """

    environ = os.environ if environ is None else environ
    src = Path(src)
    cfg = load_builder_config(config_path if config_path is not None else src / CONFIG_FILENAME)

    artifacts = cargo_artifacts
    if artifacts is None:
        artifacts = environ.get(ENV_CARGO_ARTIFACTS) or None
    if artifacts is None:
        artifacts = cfg.get("cargo_artifacts")

    inputs = list(cfg.get("native_build_inputs", []))
    inputs.extend(native_build_inputs or [])

    return mk_build_context(
        src,
        cargo_artifacts=artifacts,
        manifest_path=manifest_path or cfg.get("manifest_path", DEFAULT_MANIFEST_PATH),
        env=cfg.get("env"),
        native_build_inputs=inputs,
        inherit_path=cfg.get("inherit_path", True) if inherit_path is None else inherit_path,
    )

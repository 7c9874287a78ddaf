from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping

from trimcheck.core.errors import BuildContextError
from trimcheck.core.jail import resolve_repo_rel_path


DEFAULT_MANIFEST_PATH = "Cargo.toml"
# Fallback crane uses when a manifest carries no [package] table (virtual workspace).
DEFAULT_CRATE_VERSION = "0.0.1"


@dataclass(frozen=True)
class BuildContext:
    """Shared, read-only build inputs for every job derived in one session.

    `cargo_artifacts` is the compiled-dependency output (a cargo target dir)
    reused by both the check and the fix job. It may be None here; jobs
    reject such a context before invoking anything.
    `env` holds the extra environment as (name, value) pairs sorted by name.
    """

    src: Path
    pname: str
    version: str
    manifest_path: str
    cargo_artifacts: Path | None
    env: tuple[tuple[str, str], ...] = ()
    native_build_inputs: tuple[Path, ...] = ()
    inherit_path: bool = True

    @property
    def manifest_file(self) -> Path:
        return self.src / self.manifest_path

    def common_args(self) -> dict[str, Any]:
        """Attribute-set view of the shared build flags, keyed the way crane names them."""

        return {
            "src": str(self.src),
            "pname": self.pname,
            "version": self.version,
            "cargoToml": self.manifest_path,
            "nativeBuildInputs": [str(p) for p in self.native_build_inputs],
            "env": dict(self.env),
            "inheritPath": self.inherit_path,
            "cargoArtifacts": str(self.cargo_artifacts) if self.cargo_artifacts is not None else None,
        }


def read_crate_identity(manifest_file: Path) -> tuple[str | None, str | None]:
    """Return ([package].name, [package].version) from a Cargo manifest, None where absent."""

    try:
        data = tomllib.loads(manifest_file.read_text(encoding="utf-8", errors="strict"))
    except (OSError, UnicodeDecodeError) as e:
        raise BuildContextError(f"unable to read manifest {manifest_file}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise BuildContextError(f"manifest is not valid TOML: {manifest_file}: {e}") from e

    package = data.get("package")
    if not isinstance(package, dict):
        return None, None
    name = package.get("name")
    ver = package.get("version")
    # Inherited versions ({ workspace = true }) are not resolved.
    return (
        name if isinstance(name, str) and name else None,
        ver if isinstance(ver, str) and ver else None,
    )


def mk_build_context(
    src: Path,
    *,
    cargo_artifacts: Path | str | None,
    manifest_path: str = DEFAULT_MANIFEST_PATH,
    env: Mapping[str, str] | None = None,
    native_build_inputs: Iterable[Path | str] = (),
    inherit_path: bool = True,
    pname: str | None = None,
    version: str | None = None,
) -> BuildContext:
    """Construct the session's BuildContext.

    Relative artifact and native-input paths are resolved against `src`.
    """

    src = Path(src)
    if not src.exists() or not src.is_dir():
        raise BuildContextError(f"source directory does not exist: {src}")
    src = src.resolve()

    try:
        manifest_file = resolve_repo_rel_path(
            src,
            manifest_path,
            must_exist=True,
            must_be_file=True,
            allow_backslashes=False,
            forbid_symlinks=True,
        )
    except ValueError as e:
        raise BuildContextError(f"invalid manifest path {manifest_path!r}: {e}") from e
    manifest_rel = manifest_file.relative_to(src).as_posix()

    crate_name, crate_version = read_crate_identity(manifest_file)

    artifacts: Path | None = None
    if cargo_artifacts is not None and str(cargo_artifacts).strip():
        artifacts = Path(cargo_artifacts)
        if not artifacts.is_absolute():
            artifacts = src / artifacts
        artifacts = artifacts.resolve()

    inputs: list[Path] = []
    for raw in native_build_inputs:
        p = Path(raw)
        if not p.is_absolute():
            p = src / p
        inputs.append(p.resolve())

    env_out: dict[str, str] = {}
    for k, v in (env or {}).items():
        if not isinstance(k, str) or not k or "=" in k:
            raise BuildContextError(f"invalid env var name: {k!r}")
        env_out[k] = str(v)

    return BuildContext(
        src=src,
        pname=pname or crate_name or src.name,
        version=version or crate_version or DEFAULT_CRATE_VERSION,
        manifest_path=manifest_rel,
        cargo_artifacts=artifacts,
        env=tuple(sorted(env_out.items())),
        native_build_inputs=tuple(inputs),
        inherit_path=bool(inherit_path),
    )

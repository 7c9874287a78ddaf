from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


# `cargo <sub>` dispatches to `cargo-<sub>` on PATH, like the real driver.
FAKE_CARGO = """\
import os
import sys

if len(sys.argv) < 2:
    sys.stderr.write("usage: cargo <command>\\n")
    sys.exit(101)
sub = sys.argv[1]
os.execvp("cargo-" + sub, ["cargo-" + sub, *sys.argv[1:]])
"""

# Minimal stand-in for cargo-diet: a [dependencies] entry is superfluous when
# its crate name never appears under src/.
FAKE_CARGO_DIET = """\
import os
import sys
from pathlib import Path

args = sys.argv[2:]
dry_run = "--dry-run" in args

target = os.environ.get("CARGO_TARGET_DIR")
if target:
    Path(target, "diet-was-here").write_text("x")

manifest = Path("Cargo.toml")
text = manifest.read_text()
sources = "\\n".join(p.read_text() for p in sorted(Path("src").rglob("*.rs")))

kept = []
removable = []
in_deps = False
for line in text.splitlines(keepends=True):
    s = line.strip()
    if s.startswith("["):
        in_deps = s == "[dependencies]"
    elif in_deps and "=" in s:
        name = s.split("=", 1)[0].strip()
        if name.replace("-", "_") not in sources:
            removable.append(name)
            continue
    kept.append(line)

if dry_run:
    for name in removable:
        print("removable: " + name)
    sys.exit(1 if removable else 0)

if removable:
    manifest.write_text("".join(kept))
for name in removable:
    print("removed: " + name)
sys.exit(0)
"""


def write_executable(path: Path, body: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"#!{sys.executable}\n{body}", encoding="utf-8")
    os.chmod(path, 0o755)
    return path


def write_crate(root: Path, *, deps: dict[str, str], source: str) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    lines = [
        "[package]",
        'name = "demo"',
        'version = "0.3.1"',
        'edition = "2021"',
        "",
        "[dependencies]",
    ]
    lines.extend(f'{name} = "{ver}"' for name, ver in deps.items())
    (root / "Cargo.toml").write_text("\n".join(lines) + "\n", encoding="utf-8")
    (root / "src").mkdir(exist_ok=True)
    (root / "src" / "main.rs").write_text(source, encoding="utf-8")
    return root


def snapshot_tree(root: Path) -> dict[str, bytes]:
    out: dict[str, bytes] = {}
    for p in sorted(root.rglob("*")):
        if p.is_file():
            out[p.relative_to(root).as_posix()] = p.read_bytes()
    return out


@pytest.fixture
def toolchain(tmp_path: Path) -> Path:
    bin_dir = tmp_path / "toolchain" / "bin"
    write_executable(bin_dir / "cargo", FAKE_CARGO)
    write_executable(bin_dir / "cargo-diet", FAKE_CARGO_DIET)
    return bin_dir


@pytest.fixture
def cargo_only(tmp_path: Path) -> Path:
    bin_dir = tmp_path / "cargo-only" / "bin"
    write_executable(bin_dir / "cargo", FAKE_CARGO)
    return bin_dir


@pytest.fixture
def artifacts(tmp_path: Path) -> Path:
    d = tmp_path / "artifacts"
    (d / "release" / "deps").mkdir(parents=True)
    (d / "release" / "deps" / "libserde.rlib").write_bytes(b"\x00compiled")
    return d


@pytest.fixture
def bloated_crate(tmp_path: Path) -> Path:
    return write_crate(
        tmp_path / "bloated",
        deps={"serde": "1", "foo": "0.1"},
        source="use serde::Serialize;\nfn main() {}\n",
    )


@pytest.fixture
def minimal_crate(tmp_path: Path) -> Path:
    return write_crate(
        tmp_path / "minimal",
        deps={"serde": "1"},
        source="use serde::Serialize;\nfn main() {}\n",
    )

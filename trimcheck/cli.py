#!/usr/bin/env python3
"""trimcheck CLI: dependency-trim check/fix jobs over a shared build context.

This is the installable CLI entrypoint (console_scripts).

Subcommands:
- trimcheck check          → Run the trim tool in dry-run mode (never touches the tree)
- trimcheck apply          → Run the trim tool in apply mode (rewrites the manifest in place)
- trimcheck ci             → Run the session's jobs in order and gate on the result
- trimcheck context show   → Print the resolved build context as JSON
- trimcheck report sign    → Sign a job report with an Ed25519 key
- trimcheck report verify  → Verify a job report signature
- trimcheck about          → Print package identity info

Exit codes:
- 0: success
- N: the trim tool's own non-zero exit code, propagated unchanged
- 1: pipeline consistency failure / signature verification failed
- 128+N: the trim tool was killed by signal N
- 3: usage/context/tool-resolution/internal error
"""

from __future__ import annotations

import argparse
import json
import sys
from importlib.metadata import PackageNotFoundError, metadata, version
from pathlib import Path

from trimcheck.core.errors import ToolExitError, ToolInvocationError, TrimCheckError


ABOUT_REPO_URL = "https://github.com/trimcheck/trimcheck"


def _err(label: str, msg: str) -> None:
    print(f"[trimcheck {label}] ERROR: {msg}", file=sys.stderr)


def _remediate(label: str, msg: str) -> None:
    print(f"[trimcheck {label}] Remediation: {msg}", file=sys.stderr)


def _echo_tool_output(stdout: str, stderr: str) -> None:
    # Tool output is an opaque diagnostic blob; pass it through untouched.
    if stdout:
        sys.stderr.write(stdout if stdout.endswith("\n") else stdout + "\n")
    if stderr:
        sys.stderr.write(stderr if stderr.endswith("\n") else stderr + "\n")


def _context_from_args(args: argparse.Namespace):
    from trimcheck.builder.config import build_context_from_sources

    return build_context_from_sources(
        Path(str(args.src)),
        config_path=Path(str(args.config)) if getattr(args, "config", None) else None,
        cargo_artifacts=getattr(args, "cargo_artifacts", None),
        manifest_path=getattr(args, "manifest_path", None),
        native_build_inputs=[str(x) for x in (getattr(args, "native_build_input", None) or [])],
        inherit_path=False if getattr(args, "hermetic", False) else None,
    )


def _exit_status(code: int) -> int:
    # subprocess reports death by signal N as -N; shells report 128 + N.
    return 128 - code if code < 0 else code


def _describe_exit(code: int) -> str:
    if code < 0:
        return f"was killed by signal {-code}"
    return f"exited with code {code}"


def _diff_settings(args: argparse.Namespace, manifest_path: str):
    from trimcheck.checker.diff import DiffSettings

    if getattr(args, "force_color", False):
        color = True
    elif getattr(args, "no_color", False):
        color = False
    else:
        color = sys.stdout.isatty()
    return DiffSettings(
        left_name=manifest_path,
        right_name=manifest_path,
        marker_count=int(getattr(args, "marker_count", 4)),
        indent_spaces=int(getattr(args, "indent_spaces", 2)),
        color=color,
    )


def _print_manifest_change(result, settings) -> None:
    from trimcheck.checker.diff import render_line_diff

    if result.manifest_diff:
        sys.stdout.write(render_line_diff(result.manifest_diff, settings))
    elif result.manifest_changed:
        # line_diff does not report a change confined to the final newline.
        print(f"{result.manifest_path}: (trailing newline changed)")


# ---------------------------------------------------------------------------
# check / apply subcommands
# ---------------------------------------------------------------------------

def _run_single(args: argparse.Namespace, *, label: str, mode_name: str) -> int:
    from trimcheck.checker.job import make_job, parse_mode
    from trimcheck.checker.runner import execute
    from trimcheck.commands.report import build_job_report, write_job_report

    mode = parse_mode(mode_name)
    deterministic = bool(getattr(args, "deterministic", False))
    report_path = Path(str(args.report)) if getattr(args, "report", None) else None

    try:
        context = _context_from_args(args)
        job = make_job(context, mode)
        diff_settings = _diff_settings(args, context.manifest_path)
    except TrimCheckError as e:
        _err(label, str(e))
        _remediate(label, "Do point --src at a crate root and --cargo-artifacts at a prebuilt target dir, then re-run.")
        return 3
    except ValueError as e:
        _err(label, str(e))
        return 3

    print(f"[trimcheck {label}] running {job.name}: {job.command}", file=sys.stderr)
    try:
        result = execute(job, deterministic=deterministic)
    except ToolExitError as e:
        _echo_tool_output(e.stdout, e.stderr)
        _err(label, f"{job.command} {_describe_exit(e.exit_code)}")
        if job.mode.value == "dry-run" and e.exit_code > 0:
            _remediate(label, "Do run `trimcheck apply` to trim the manifest, then commit the result.")
        if report_path is not None and e.result is not None:
            try:
                write_job_report(report_path, build_job_report(e.result, context=context, deterministic=deterministic))
            except (OSError, ValueError) as we:
                _err(label, f"unable to write report: {we}")
                return 3
        return _exit_status(e.exit_code)
    except ToolInvocationError as e:
        _err(label, str(e))
        _remediate(label, f"Do add {job.tool} to --native-build-input (or PATH) and retry.")
        return 3
    except TrimCheckError as e:
        _err(label, str(e))
        return 3

    _echo_tool_output(result.stdout, result.stderr)
    _print_manifest_change(result, diff_settings)
    if report_path is not None:
        try:
            write_job_report(report_path, build_job_report(result, context=context, deterministic=deterministic))
        except (OSError, ValueError) as e:
            _err(label, f"unable to write report: {e}")
            return 3
        print(f"[trimcheck {label}] wrote: {report_path}", file=sys.stderr)

    state = "manifest rewritten" if result.manifest_changed else "manifest unchanged"
    print(f"[trimcheck {label}] OK: {job.name} ({state})", file=sys.stderr)
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    return _run_single(args, label="check", mode_name="dry-run")


def cmd_apply(args: argparse.Namespace) -> int:
    return _run_single(args, label="apply", mode_name="apply")


# ---------------------------------------------------------------------------
# ci subcommand
# ---------------------------------------------------------------------------

def cmd_ci(args: argparse.Namespace) -> int:
    from trimcheck.checker.job import Mode, parse_mode
    from trimcheck.commands.pipeline import run_pipeline

    try:
        modes = [parse_mode(m) for m in (args.mode or [])] or [Mode.DRY_RUN]
    except ValueError as e:
        _err("ci", str(e))
        return 3

    try:
        context = _context_from_args(args)
        diff_settings = _diff_settings(args, context.manifest_path)
        outcome = run_pipeline(
            context,
            modes,
            report_dir=Path(str(args.report_dir)) if args.report_dir else None,
            deterministic=bool(args.deterministic),
        )
    except TrimCheckError as e:
        _err("ci", str(e))
        _remediate("ci", "Do enter the CI environment (toolchain + artifact cache) before running the gate.")
        return 3
    except (OSError, ValueError) as e:
        _err("ci", str(e))
        return 3

    for r in outcome.results:
        _echo_tool_output(r.stdout, r.stderr)
        _print_manifest_change(r, diff_settings)
    if outcome.exit_code != 0:
        _err("ci", outcome.message)
        return _exit_status(outcome.exit_code)
    print(f"[trimcheck ci] OK: {outcome.message}", file=sys.stderr)
    return 0


# ---------------------------------------------------------------------------
# context subcommands
# ---------------------------------------------------------------------------

def cmd_context_show(args: argparse.Namespace) -> int:
    try:
        context = _context_from_args(args)
    except TrimCheckError as e:
        _err("context show", str(e))
        return 3
    print(json.dumps(context.common_args(), indent=2, sort_keys=True, ensure_ascii=False))
    return 0


# ---------------------------------------------------------------------------
# report subcommands
# ---------------------------------------------------------------------------

def cmd_report_sign(args: argparse.Namespace) -> int:
    from trimcheck.commands.attest import sign_report_bytes, write_signature
    from trimcheck.commands.report import load_job_report

    try:
        payload, _ = load_job_report(Path(str(args.report)))
        sig = sign_report_bytes(payload, Path(str(args.private_key)).read_bytes())
        out_path = Path(str(args.out)) if args.out else Path(str(args.report) + ".sig")
        write_signature(out_path, sig)
    except (TrimCheckError, OSError, ValueError) as e:
        _err("report sign", str(e))
        return 3

    print(f"[trimcheck report sign] wrote: {out_path}", file=sys.stderr)
    return 0


def cmd_report_verify(args: argparse.Namespace) -> int:
    from trimcheck.commands.attest import read_signature, verify_report_signature
    from trimcheck.commands.report import load_job_report
    from trimcheck.core.errors import AttestationError

    try:
        payload, _ = load_job_report(Path(str(args.report)))
        sig_path = Path(str(args.signature)) if args.signature else Path(str(args.report) + ".sig")
        sig = read_signature(sig_path)
        pub = Path(str(args.public_key)).read_bytes()
    except (OSError, ValueError) as e:
        _err("report verify", str(e))
        return 3

    try:
        verify_report_signature(payload, sig, pub)
    except AttestationError as e:
        _err("report verify", str(e))
        return 1

    verdict = "passed" if payload["passed"] else f"failed (exit {payload['exit_code']})"
    print(f"[trimcheck report verify] OK: {payload['job']} {verdict}", file=sys.stderr)
    return 0


# ---------------------------------------------------------------------------
# about subcommand
# ---------------------------------------------------------------------------

def cmd_about(_: argparse.Namespace) -> int:
    """Print package identity info (human-readable)."""

    try:
        pkg_version = version("trimcheck")
    except PackageNotFoundError:
        pkg_version = "0.0.0"

    pkg_name = "trimcheck"
    pkg_summary = ""
    try:
        meta = metadata("trimcheck")
        pkg_name = str(meta.get("Name") or pkg_name)
        pkg_summary = str(meta.get("Summary") or "")
    except PackageNotFoundError:
        pass

    print(f"{pkg_name} {pkg_version}")
    if pkg_summary:
        print(pkg_summary)
    print(f"Repo: {ABOUT_REPO_URL}")
    return 0


def _add_builder_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--src", default=".", help="Crate source root (default: .)")
    p.add_argument("--config", default=None, help="Path to trimcheck.toml (default: <src>/trimcheck.toml)")
    p.add_argument(
        "--cargo-artifacts",
        default=None,
        help="Prebuilt cargo target dir shared by every job (overrides TRIMCHECK_CARGO_ARTIFACTS)",
    )
    p.add_argument("--manifest-path", default=None, help="Manifest path relative to --src (default: Cargo.toml)")
    p.add_argument(
        "--native-build-input",
        action="append",
        default=[],
        help="Directory holding build-time executables (repeatable; searched before PATH)",
    )
    p.add_argument("--hermetic", action="store_true", help="Do not inherit the caller's PATH/environment")


def _add_diff_args(p: argparse.ArgumentParser) -> None:
    color = p.add_mutually_exclusive_group()
    color.add_argument("--force-color", action="store_true", help="Colour the manifest diff even when stdout is not a TTY")
    color.add_argument("--no-color", action="store_true", help="Never colour the manifest diff")
    p.add_argument("--marker-count", type=int, default=4, help="Marker characters in each diff header (default: 4)")
    p.add_argument("--indent-spaces", type=int, default=2, help="Indent before each diff line number (default: 2)")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="trimcheck",
        description="Dependency-trim check/fix jobs over a shared cargo build context",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # about
    subparsers.add_parser("about", help="Print package identity info")

    # check
    p_check = subparsers.add_parser("check", help="Dry-run the trim tool (exit 0 iff the manifest is minimal)")
    _add_builder_args(p_check)
    _add_diff_args(p_check)
    p_check.add_argument("--report", default=None, help="Write a JSON job report to this path")
    p_check.add_argument("--deterministic", action="store_true", help="Use fixed timestamps for deterministic output")

    # apply
    p_apply = subparsers.add_parser("apply", help="Run the trim tool and rewrite the manifest in place")
    _add_builder_args(p_apply)
    _add_diff_args(p_apply)
    p_apply.add_argument("--report", default=None, help="Write a JSON job report to this path")
    p_apply.add_argument("--deterministic", action="store_true", help="Use fixed timestamps for deterministic output")

    # ci
    p_ci = subparsers.add_parser("ci", help="Run the session's jobs in order and gate on the result")
    _add_builder_args(p_ci)
    _add_diff_args(p_ci)
    p_ci.add_argument(
        "--mode",
        action="append",
        default=[],
        help="Job mode to run, in order (dry-run|apply; repeatable; default: dry-run)",
    )
    p_ci.add_argument("--report-dir", default=None, help="Directory for one JSON report per job")
    p_ci.add_argument("--deterministic", action="store_true", help="Use fixed timestamps for deterministic output")

    # context (subparser group)
    p_context = subparsers.add_parser("context", help="Build context helpers")
    context_subs = p_context.add_subparsers(dest="context_command", help="Context subcommand")
    p_context_show = context_subs.add_parser("show", help="Print the resolved build context as JSON")
    _add_builder_args(p_context_show)

    # report (subparser group)
    p_report = subparsers.add_parser("report", help="Job report attestation")
    report_subs = p_report.add_subparsers(dest="report_command", help="Report subcommand")

    p_report_sign = report_subs.add_parser("sign", help="Sign a job report with an Ed25519 private key")
    p_report_sign.add_argument("--report", required=True, help="Job report JSON path")
    p_report_sign.add_argument("--private-key", required=True, help="Ed25519 private key (hex seed or PEM)")
    p_report_sign.add_argument("--out", default=None, help="Signature output path (default: <report>.sig)")

    p_report_verify = report_subs.add_parser("verify", help="Verify a job report signature")
    p_report_verify.add_argument("--report", required=True, help="Job report JSON path")
    p_report_verify.add_argument("--public-key", required=True, help="Ed25519 public key (hex or PEM)")
    p_report_verify.add_argument("--signature", default=None, help="Signature path (default: <report>.sig)")

    args = parser.parse_args(argv)

    if args.command == "about":
        return cmd_about(args)
    elif args.command == "check":
        return cmd_check(args)
    elif args.command == "apply":
        return cmd_apply(args)
    elif args.command == "ci":
        return cmd_ci(args)
    elif args.command == "context":
        if args.context_command == "show":
            return cmd_context_show(args)
        p_context.print_help()
        return 3
    elif args.command == "report":
        if args.report_command == "sign":
            return cmd_report_sign(args)
        elif args.report_command == "verify":
            return cmd_report_verify(args)
        p_report.print_help()
        return 3
    else:
        parser.print_help()
        return 3


if __name__ == "__main__":
    sys.exit(main())

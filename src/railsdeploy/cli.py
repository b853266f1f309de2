#!/usr/bin/env python3
"""railsdeploy — render and lint the deployment artifacts of a Rails + Postgres app."""

import argparse
import os
import sys

from railsdeploy.core.config import load_config, save_config, set_value, validate_config
from railsdeploy.core.constants import CONFIG_FILE
from railsdeploy.core.lint import has_failures, lint
from railsdeploy.core.output import emit_findings, emit_warnings, write_artifacts
from railsdeploy.core.parse import parse_artifacts
from railsdeploy.core.render import render


def _cmd_init(args) -> int:
    if os.path.exists(args.config):
        print(f"{args.config} already exists — not overwritten", file=sys.stderr)
        return 0
    save_config(args.config, load_config(args.config))
    print(f"Wrote {args.config}", file=sys.stderr)
    return 0


def _cmd_render(args) -> int:
    first_run = not os.path.exists(args.config)
    config = load_config(args.config)

    for assignment in args.set or []:
        key, sep, raw = assignment.partition("=")
        if not sep or not key:
            print(f"--set expects key.path=value, got '{assignment}'", file=sys.stderr)
            return 2
        set_value(config, key, raw)

    errors = validate_config(config)
    if errors:
        for e in errors:
            print(f"✗ {args.config}: {e}", file=sys.stderr)
        return 2

    # Step 1: render
    artifacts, warnings = render(config)
    emit_warnings(warnings)
    if not artifacts:
        print("No artifacts rendered — nothing to write.", file=sys.stderr)
        return 1

    # Step 2: write outputs
    os.makedirs(args.output_dir, exist_ok=True)
    write_artifacts(artifacts, args.output_dir)
    if first_run:
        save_config(args.config, config)
        print(f"Wrote {args.config}", file=sys.stderr)

    # Step 3: lint what was written; placeholders are expected in a fresh template
    findings = lint(parse_artifacts(args.output_dir))
    emit_findings(findings)
    if first_run:
        print(
            f"\n⚠ First run — {args.config} was created with placeholder values.\n"
            "  Fill in git_user, dockerhub_user and the credentials (or add replacements), "
            "then re-render.",
            file=sys.stderr,
        )
    return 0


def _cmd_lint(args) -> int:
    if not os.path.isdir(args.dir):
        print(f"{args.dir} is not a directory", file=sys.stderr)
        return 2
    aset = parse_artifacts(args.dir)
    kinds = {k: len(v) for k, v in aset.manifests.items()}
    print(f"Parsed manifests: {kinds}", file=sys.stderr)
    findings = lint(aset)
    emit_findings(findings)
    errors = sum(1 for f in findings if f.level == "error")
    print(f"{errors} error(s), {len(findings) - errors} warning(s)", file=sys.stderr)
    return 1 if has_failures(findings, strict=args.strict) else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Render and lint Dockerfile, compose, Kubernetes, ArgoCD and Tekton artifacts"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init", help=f"Write a default {CONFIG_FILE}")
    p_init.add_argument("--config", default=CONFIG_FILE,
                        help=f"Path of the values file (default: {CONFIG_FILE})")
    p_init.set_defaults(func=_cmd_init)

    p_render = sub.add_parser("render", help="Render every artifact from the values file")
    p_render.add_argument("--config", default=CONFIG_FILE,
                          help=f"Path of the values file (default: {CONFIG_FILE})")
    p_render.add_argument("--output-dir", default=".",
                          help="Where to write the artifacts (default: .)")
    p_render.add_argument("--set", action="append", metavar="KEY=VALUE",
                          help="Override a config value, e.g. --set app.replicas=3 (repeatable)")
    p_render.set_defaults(func=_cmd_render)

    p_lint = sub.add_parser("lint", help="Check an artifact directory")
    p_lint.add_argument("dir", nargs="?", default=".",
                        help="Directory holding the artifacts (default: .)")
    p_lint.add_argument("--strict", action="store_true",
                        help="Fail on warnings as well as errors")
    p_lint.set_defaults(func=_cmd_lint)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

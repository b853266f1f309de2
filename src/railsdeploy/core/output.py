"""Writing rendered artifacts and reporting to stderr."""

import os
import sys

import yaml

from railsdeploy.pacts.types import Artifact, Finding
from railsdeploy.core.constants import GENERATED_HEADER


def dump_artifact(artifact: Artifact) -> str:
    """Serialize an artifact to file content."""
    if not artifact.is_yaml:
        return artifact.text
    # Every document gets an explicit '---', also in single-document files
    body = yaml.dump_all(artifact.documents, default_flow_style=False, sort_keys=False,
                         explicit_start=True, allow_unicode=True)
    return GENERATED_HEADER + body


def write_artifacts(artifacts: list[Artifact], output_dir: str) -> list[str]:
    """Write every artifact under output_dir. Returns the written paths."""
    written = []
    for artifact in artifacts:
        path = os.path.join(output_dir, artifact.path)
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(dump_artifact(artifact))
        print(f"Wrote {path}", file=sys.stderr)
        written.append(path)
    return written


def emit_warnings(warnings: list[str]) -> None:
    """Print all warnings to stderr."""
    for w in warnings:
        print(f"⚠ {w}", file=sys.stderr)


def emit_findings(findings: list[Finding]) -> None:
    """Print lint findings to stderr, errors marked ✗ and warnings ⚠."""
    for finding in findings:
        marker = "✗" if finding.level == "error" else "⚠"
        print(f"{marker} {finding}", file=sys.stderr)

"""Load an artifact directory into an ArtifactSet for linting."""

from pathlib import Path

import yaml

from railsdeploy.pacts.types import ArtifactSet
from railsdeploy.core.constants import CONFIG_FILE, COMPOSE_FILES, DOCKERFILE


def _rel(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix()


def parse_artifacts(root_dir: str) -> ArtifactSet:
    """Load all YAML files, the compose file and the Dockerfile under root_dir.

    Manifests are classified by kind. YAML syntax errors are recorded in
    parse_errors instead of aborting the whole run.
    """
    root = Path(root_dir)
    result = ArtifactSet()
    yaml_files = sorted(
        p for p in root.rglob("*")
        if p.is_file() and p.suffix in (".yaml", ".yml")
        and not any(part.startswith(".") for part in p.relative_to(root).parts)
    )
    for yaml_file in yaml_files:
        rel = _rel(yaml_file, root)
        if yaml_file.name == CONFIG_FILE:
            continue
        try:
            with open(yaml_file, encoding="utf-8") as f:
                docs = list(yaml.safe_load_all(f))
        except (yaml.YAMLError, UnicodeDecodeError) as exc:
            result.parse_errors.append((rel, str(exc).replace("\n", " ")))
            continue
        if yaml_file.name in COMPOSE_FILES and result.compose is None:
            result.compose = docs[0] if docs and isinstance(docs[0], dict) else {}
            result.compose_path = rel
            continue
        for doc in docs:
            if doc is None:
                continue
            if not isinstance(doc, dict):
                result.parse_errors.append((rel, f"document is a {type(doc).__name__}, not a mapping"))
                continue
            kind = doc.get("kind", "Unknown")
            if not isinstance(kind, str):
                kind = "Unknown"
            result.manifests.setdefault(kind, []).append((rel, doc))

    dockerfile = root / DOCKERFILE
    if dockerfile.is_file():
        result.dockerfile_path = DOCKERFILE
        try:
            with open(dockerfile, encoding="utf-8") as f:
                result.dockerfile = f.read()
        except UnicodeDecodeError as exc:
            result.parse_errors.append((DOCKERFILE, str(exc)))
    return result

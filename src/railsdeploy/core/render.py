"""Main render orchestration — render(), replacements, overrides, excludes."""

import copy
import fnmatch

from railsdeploy.pacts.helpers import apply_replacements, full_name
from railsdeploy.pacts.types import Artifact, RenderContext
from railsdeploy.core.argocd import ArgoCDRenderer
from railsdeploy.core.docker import DockerRenderer
from railsdeploy.core.kubernetes import KubernetesRenderer
from railsdeploy.core.tekton import TektonRenderer

# Renderer instances used by render(), in output order
_RENDERERS = [DockerRenderer(), KubernetesRenderer(), ArgoCDRenderer(), TektonRenderer()]


def _is_excluded(path: str, exclude_list: list[str]) -> bool:
    """Check if an artifact path matches any exclude pattern (supports wildcards)."""
    return any(fnmatch.fnmatch(path, pattern) for pattern in exclude_list)


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base. None values delete keys."""
    for key, val in overrides.items():
        if val is None:
            base.pop(key, None)
        elif isinstance(val, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], val)
        else:
            base[key] = val


def _replace_in(obj, replacements: list[dict]):
    """Recursively apply string replacements to every string value."""
    if isinstance(obj, str):
        return apply_replacements(obj, replacements)
    if isinstance(obj, list):
        return [_replace_in(item, replacements) for item in obj]
    if isinstance(obj, dict):
        return {k: _replace_in(v, replacements) for k, v in obj.items()}
    return obj


def _apply_replacements(artifacts: list[Artifact], replacements: list[dict]) -> None:
    if not replacements:
        return
    for artifact in artifacts:
        if artifact.is_yaml:
            artifact.documents = [_replace_in(doc, replacements) for doc in artifact.documents]
        else:
            artifact.text = apply_replacements(artifact.text, replacements)


def _apply_overrides(artifacts: list[Artifact], overrides: dict, warnings: list[str]) -> None:
    """Deep-merge `Kind/name` overrides from config into the matching manifests."""
    matched = set()
    for artifact in artifacts:
        for doc in artifact.documents:
            key = full_name(doc)
            if key in overrides:
                _deep_merge(doc, copy.deepcopy(overrides[key]))
                matched.add(key)
    for key in overrides:
        if key not in matched:
            warnings.append(f"override for '{key}' but no such rendered manifest — skipped")


def render(config: dict) -> tuple[list[Artifact], list[str]]:
    """Main render: returns (artifacts, warnings)."""
    warnings: list[str] = []
    ctx = RenderContext(config=config, warnings=warnings)

    artifacts: list[Artifact] = []
    for renderer in _RENDERERS:
        artifacts.extend(renderer.render(ctx).artifacts)

    # Overrides are keyed on final names, so replacements go first
    _apply_replacements(artifacts, config.get("replacements") or [])
    _apply_overrides(artifacts, config.get("overrides") or {}, warnings)

    exclude = config.get("exclude") or []
    kept = [a for a in artifacts if not _is_excluded(a.path, exclude)]
    for pattern in exclude:
        if not any(fnmatch.fnmatch(a.path, pattern) for a in artifacts):
            warnings.append(f"exclude pattern '{pattern}' matched no artifact")
    return kept, warnings

"""Config file handling: load, defaults, validation, derived values."""

import copy
import os
from urllib.parse import quote

import yaml

from railsdeploy.core.constants import (
    CONFIG_VERSION, DNS_LABEL_RE, DOCKERHUB_USER_PLACEHOLDER,
    GIT_USER_PLACEHOLDER, QUANTITY_RE,
)

DEFAULTS = {
    "name": "rails-app",
    "namespace": "default",
    "git_user": GIT_USER_PLACEHOLDER,
    "dockerhub_user": DOCKERHUB_USER_PLACEHOLDER,
    "repo_url": "",
    "revision": "main",
    "image_tag": "latest",
    "app": {
        "port": 3000,
        "service_port": 80,
        "replicas": 2,
        "ruby_version": "3.2",
        "rails_env": "production",
        "host": "rails-app.local",
    },
    "database": {
        "image": "postgres:15",
        "user": "rails_user",
        "name": "rails_app_production",
        "port": 5432,
        "storage": "1Gi",
        "password": None,  # cluster secret; unset renders placeholders
        "local_password": "password",
    },
    "argocd": {
        "namespace": "argocd",
        "project": "default",
        "path": "k8s-manifests",
        "target_revision": "HEAD",
        "destination_server": "https://kubernetes.default.svc",
        "prune": True,
        "self_heal": True,
        "repo_secret": "repo-secret",
        "default_policy": "role:readonly",
    },
    "tekton": {
        "namespace": "tekton-pipelines",
        "registry": "docker.io",
        "workspace_size": "1Gi",
        "registry_secret": "docker-credentials",
        "registry_username": None,
        "registry_password": None,
        "registry_email": "",
    },
    "replacements": [],
    "overrides": {},
    "exclude": [],
}

# Registry hostnames docker clients expect in .dockerconfigjson
_REGISTRY_AUTH_KEYS = {"docker.io": "https://index.docker.io/v1/"}


def _fill_defaults(cfg: dict, defaults: dict) -> None:
    """Recursively setdefault every key of defaults into cfg."""
    for key, val in defaults.items():
        if isinstance(val, dict):
            if not isinstance(cfg.get(key), dict):
                cfg[key] = {}
            _fill_defaults(cfg[key], val)
        else:
            cfg.setdefault(key, copy.deepcopy(val))


def load_config(path: str) -> dict:
    """Load railsdeploy.yaml or return the default config."""
    if os.path.exists(path):
        with open(path, encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    else:
        cfg = {}
    cfg.setdefault("railsdeployVersion", CONFIG_VERSION)
    _fill_defaults(cfg, DEFAULTS)
    return cfg


def save_config(path: str, config: dict) -> None:
    """Write railsdeploy.yaml."""
    header = "# Values for railsdeploy: every rendered artifact is derived from this file\n\n"
    # Ensure version key comes first
    ordered = {"railsdeployVersion": config.get("railsdeployVersion", CONFIG_VERSION)}
    for k, v in config.items():
        if k != "railsdeployVersion":
            ordered[k] = v
    with open(path, "w", encoding="utf-8") as f:
        f.write(header)
        yaml.dump(ordered, f, default_flow_style=False, sort_keys=False)


def set_value(config: dict, dotted_key: str, raw: str) -> None:
    """Set config[a][b][c] from 'a.b.c'; the raw value is parsed as YAML."""
    keys = dotted_key.split(".")
    target = config
    for key in keys[:-1]:
        if not isinstance(target.get(key), dict):
            target[key] = {}
        target = target[key]
    target[keys[-1]] = yaml.safe_load(raw) if raw != "" else ""


def _check_port(errors: list[str], label: str, value) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or not 1 <= value <= 65535:
        errors.append(f"{label} must be a port number (1-65535), got {value!r}")


def _check_name(errors: list[str], label: str, value) -> None:
    if not isinstance(value, str) or not DNS_LABEL_RE.match(value) or len(value) > 63:
        errors.append(f"{label} must be a DNS-1123 label, got {value!r}")


def _check_quantity(errors: list[str], label: str, value) -> None:
    if not isinstance(value, str) or not QUANTITY_RE.match(value):
        errors.append(f"{label} must be a storage quantity like '1Gi', got {value!r}")


def _check_string(errors: list[str], label: str, value) -> None:
    if not isinstance(value, str) or not value:
        errors.append(f"{label} must be a non-empty string (quote numbers, e.g. '10'), got {value!r}")


def validate_config(config: dict) -> list[str]:
    """Return a list of human-readable config errors (empty when valid)."""
    errors: list[str] = []
    if config.get("railsdeployVersion") != CONFIG_VERSION:
        errors.append(f"unsupported railsdeployVersion {config.get('railsdeployVersion')!r}")
    _check_name(errors, "name", config["name"])
    _check_name(errors, "namespace", config["namespace"])
    _check_name(errors, "argocd.namespace", config["argocd"]["namespace"])
    _check_name(errors, "tekton.namespace", config["tekton"]["namespace"])

    app = config["app"]
    _check_port(errors, "app.port", app["port"])
    _check_port(errors, "app.service_port", app["service_port"])
    _check_string(errors, "app.ruby_version", app["ruby_version"])
    _check_string(errors, "app.host", app["host"])
    for key in ("image_tag", "revision", "git_user", "dockerhub_user"):
        _check_string(errors, key, config[key])
    replicas = app["replicas"]
    if not isinstance(replicas, int) or isinstance(replicas, bool) or replicas < 0:
        errors.append(f"app.replicas must be a non-negative integer, got {replicas!r}")

    db = config["database"]
    _check_port(errors, "database.port", db["port"])
    _check_quantity(errors, "database.storage", db["storage"])
    _check_quantity(errors, "tekton.workspace_size", config["tekton"]["workspace_size"])
    for key in ("user", "name", "image"):
        if not isinstance(db[key], str) or not db[key]:
            errors.append(f"database.{key} must be a non-empty string")

    if not isinstance(config.get("replacements"), list):
        errors.append("replacements must be a list of {old, new} mappings")
    else:
        for i, r in enumerate(config["replacements"]):
            if not isinstance(r, dict) or "old" not in r or "new" not in r:
                errors.append(f"replacements[{i}] must have 'old' and 'new' keys")
    if not isinstance(config.get("overrides"), dict):
        errors.append("overrides must be a mapping of 'Kind/name' to partial manifests")
    if not isinstance(config.get("exclude"), list):
        errors.append("exclude must be a list of path patterns")
    return errors


# ---------------------------------------------------------------------------
# Derived values
# ---------------------------------------------------------------------------

def repo_url(config: dict) -> str:
    """Git repository URL: explicit repo_url, else GitHub under git_user."""
    if config.get("repo_url"):
        return config["repo_url"]
    return f"https://github.com/{config['git_user']}/{config['name']}.git"


def image_ref(config: dict, with_registry: bool = False) -> str:
    """Application image reference, e.g. user/rails-app:latest."""
    ref = f"{config['dockerhub_user']}/{config['name']}:{config['image_tag']}"
    if with_registry:
        return f"{config['tekton']['registry']}/{ref}"
    return ref


def database_url(config: dict, host: str, password: str) -> str:
    """Connection URL for the application database."""
    db = config["database"]
    user, secret = quote(db["user"], safe=""), quote(password, safe="")
    return f"postgresql://{user}:{secret}@{host}:{db['port']}/{db['name']}"


def registry_auth_key(registry: str) -> str:
    """Key used under 'auths' in .dockerconfigjson for a registry host."""
    return _REGISTRY_AUTH_KEYS.get(registry, registry)

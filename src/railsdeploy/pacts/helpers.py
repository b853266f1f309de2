"""Helper functions shared by renderers and lint checks."""

import base64
import json


def apply_replacements(text: str, replacements: list[dict]) -> str:
    """Apply user-defined string replacements from config."""
    for r in replacements:
        text = text.replace(r["old"], str(r["new"]))
    return text


def full_name(manifest: dict) -> str:
    """Return 'Kind/name' string for use in messages."""
    meta = manifest.get("metadata")
    meta = meta if isinstance(meta, dict) else {}
    return f"{manifest.get('kind', '?')}/{meta.get('name', '?')}"


def b64(value: str) -> str:
    """Base64-encode a text value the way Secret data expects it."""
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def secret_value(secret: dict, key: str) -> str | None:
    """Get a decoded value from a K8s Secret (base64 data or plain stringData)."""
    string_data, data = secret.get("stringData"), secret.get("data")
    # stringData is plain text
    val = string_data.get(key) if isinstance(string_data, dict) else None
    if val is not None:
        return str(val)
    # data is base64-encoded
    val = data.get(key) if isinstance(data, dict) else None
    if val is not None:
        try:
            return base64.b64decode(val, validate=True).decode("utf-8")
        except (TypeError, ValueError, UnicodeDecodeError):
            # fallback: return raw if decode fails
            return val if isinstance(val, str) else None
    return None


def docker_config_json(registry: str, username: str, password: str, email: str = "") -> str:
    """Build a .dockerconfigjson payload for a single registry."""
    entry = {
        "username": username,
        "password": password,
        "auth": b64(f"{username}:{password}"),
    }
    if email:
        entry["email"] = email
    return json.dumps({"auths": {registry: entry}}, sort_keys=True)


def container_env(container: dict) -> dict[str, dict]:
    """Index a container's env entries by name."""
    return {e.get("name", ""): e for e in container.get("env") or [] if isinstance(e, dict)}


def pod_spec(manifest: dict) -> dict:
    """Return the pod spec of a workload manifest, or {}."""
    spec = manifest.get("spec")
    template = spec.get("template") if isinstance(spec, dict) else None
    pod = template.get("spec") if isinstance(template, dict) else None
    return pod if isinstance(pod, dict) else {}


def walk_strings(obj, location: str = ""):
    """Yield (location, string) for every string value in a nested structure."""
    if isinstance(obj, str):
        yield location, obj
    elif isinstance(obj, list):
        for i, item in enumerate(obj):
            yield from walk_strings(item, f"{location}[{i}]")
    elif isinstance(obj, dict):
        for k, v in obj.items():
            yield from walk_strings(v, f"{location}.{k}" if location else str(k))

"""Lint checks over a parsed artifact set.

Each check_* function takes an ArtifactSet and returns a list of Findings.
A missing referent that may live outside the set (a Secret applied by hand,
a Pipeline installed separately) is a warning; an inconsistency between two
objects that are both present is an error.
"""

import base64
import json
import re
from urllib.parse import unquote, urlparse

from railsdeploy.pacts.helpers import container_env, full_name, pod_spec, secret_value, walk_strings
from railsdeploy.pacts.types import ArtifactSet, Finding
from railsdeploy.core.constants import (
    API_VERSIONS, DATABASE_URL_KEY, DATABASE_URL_SCHEMES, K8S_DNS_RE,
    PLACEHOLDER_RE, WORKLOAD_KINDS,
)

# $(tasks.<name>.results.<result>) creates an implicit ordering in Tekton
_TASK_RESULT_RE = re.compile(r'\$\(tasks\.([a-z0-9-]+)\.results\.')
_EXPOSE_RE = re.compile(r'^\s*EXPOSE\s+(.+)$', re.IGNORECASE | re.MULTILINE)


def _error(source: str, message: str) -> Finding:
    return Finding(level="error", source=source, message=message)


def _warning(source: str, message: str) -> Finding:
    return Finding(level="warning", source=source, message=message)


def _source(path: str, doc: dict) -> str:
    return f"{path} {full_name(doc)}"


def _name(doc: dict) -> str:
    name = _dict(doc.get("metadata")).get("name", "")
    return name if isinstance(name, str) else ""


def _index_by_name(aset: ArtifactSet, kind: str) -> dict[str, dict]:
    """Index manifests of one kind by metadata.name."""
    return {_name(doc): doc for _path, doc in aset.of_kind(kind) if _name(doc)}


def _template_labels(doc: dict) -> dict:
    return _dict(_dict(_dict(_dict(doc.get("spec")).get("template")).get("metadata")).get("labels"))


def _selects(selector: dict, labels: dict) -> bool:
    return isinstance(selector, dict) and bool(selector) and all(labels.get(k) == v for k, v in selector.items())


def _dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _mappings(items) -> list[dict]:
    """The mapping entries of a list field; anything else is dropped."""
    return [x for x in items if isinstance(x, dict)] if isinstance(items, list) else []


def _non_mappings(src: str, field: str, items) -> list[Finding]:
    """Error findings for list entries that should be mappings."""
    if items is None or items == []:
        return []
    if not isinstance(items, list):
        return [_error(src, f"{field} must be a list, got {type(items).__name__}")]
    return [_error(src, f"{field}[{i}] must be a mapping, got {item!r}")
            for i, item in enumerate(items) if not isinstance(item, dict)]


def _spec(doc: dict) -> dict:
    return _dict(doc.get("spec"))


def _containers(doc: dict) -> list[dict]:
    return _mappings(pod_spec(doc).get("containers"))


def _is_postgres_image(image) -> bool:
    if not isinstance(image, str) or not image:
        return False
    return image.split("@")[0].split("/")[-1].split(":")[0] == "postgres"


def _is_placeholder(value) -> bool:
    return isinstance(value, str) and bool(PLACEHOLDER_RE.search(value))


def _valid_base64(value) -> bool:
    if not isinstance(value, str):
        return False
    try:
        base64.b64decode(value, validate=True)
    except ValueError:
        return False
    return True


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

def _check_workload(src: str, doc: dict) -> list[Finding]:
    findings = []
    spec = _spec(doc)
    pod = pod_spec(doc)
    findings.extend(_non_mappings(src, "spec.template.spec.containers", pod.get("containers")))
    containers = _containers(doc)
    if not containers:
        findings.append(_error(src, "pod template has no containers"))
    for c in containers:
        if not c.get("name"):
            findings.append(_error(src, "container without a name"))
        if not c.get("image"):
            findings.append(_error(src, f"container '{c.get('name', '?')}' has no image"))
        findings.extend(_non_mappings(src, f"container '{c.get('name', '?')}' env", c.get("env")))
        findings.extend(_non_mappings(src, f"container '{c.get('name', '?')}' ports", c.get("ports")))
        findings.extend(_non_mappings(src, f"container '{c.get('name', '?')}' volumeMounts",
                                      c.get("volumeMounts")))
    match_labels = _dict(spec.get("selector")).get("matchLabels")
    if not match_labels:
        findings.append(_error(src, "spec.selector.matchLabels is empty"))
    elif not _selects(match_labels, _template_labels(doc)):
        findings.append(_error(src, "spec.selector.matchLabels does not match the pod template labels"))
    replicas = spec.get("replicas")
    if replicas is not None and (not isinstance(replicas, int) or replicas < 0):
        findings.append(_error(src, f"spec.replicas must be a non-negative integer, got {replicas!r}"))
    findings.extend(_non_mappings(src, "spec.volumeClaimTemplates", spec.get("volumeClaimTemplates")))
    return findings


def _check_service(src: str, doc: dict) -> list[Finding]:
    ports = _spec(doc).get("ports")
    if not ports:
        return [_error(src, "spec.ports is empty")]
    findings = _non_mappings(src, "spec.ports", ports)
    findings.extend(_error(src, f"spec.ports[{i}] has no numeric port")
                    for i, p in enumerate(_mappings(ports)) if not isinstance(p.get("port"), int))
    return findings


def _check_ingress(src: str, doc: dict) -> list[Finding]:
    findings = []
    spec = _spec(doc)
    rules = spec.get("rules")
    if not rules and not spec.get("defaultBackend"):
        findings.append(_error(src, "ingress has neither rules nor a defaultBackend"))
    findings.extend(_non_mappings(src, "spec.rules", rules))
    for i, rule in enumerate(_mappings(rules)):
        paths = _dict(rule.get("http")).get("paths")
        findings.extend(_non_mappings(src, f"spec.rules[{i}].http.paths", paths))
        for path_entry in _mappings(paths):
            service = _dict(_dict(path_entry.get("backend")).get("service"))
            port = _dict(service.get("port"))
            if not service.get("name") or not (port.get("number") or port.get("name")):
                findings.append(_error(
                    src, f"path '{path_entry.get('path', '/')}' needs backend.service name and port"))
            if not path_entry.get("pathType"):
                findings.append(_error(src, f"path '{path_entry.get('path', '/')}' has no pathType"))
    return findings


def _check_secret(src: str, doc: dict) -> list[Finding]:
    findings = []
    data = doc.get("data")
    if data is not None and not isinstance(data, dict):
        return [_error(src, f"data must be a mapping, got {type(data).__name__}")]
    data = data or {}
    for key, val in data.items():
        if _is_placeholder(val):
            continue  # reported by check_placeholders
        if not _valid_base64(val):
            findings.append(_error(src, f"data['{key}'] is not valid base64"))
    if doc.get("type") == "kubernetes.io/dockerconfigjson":
        raw = data.get(".dockerconfigjson")
        if raw is None:
            findings.append(_error(src, "dockerconfigjson Secret has no '.dockerconfigjson' key"))
        elif not _is_placeholder(raw) and _valid_base64(raw):
            try:
                payload = json.loads(base64.b64decode(raw).decode("utf-8"))
            except (ValueError, UnicodeDecodeError):
                payload = None
            if not isinstance(payload, dict) or not isinstance(payload.get("auths"), dict):
                findings.append(_error(src, "'.dockerconfigjson' does not decode to JSON with 'auths'"))
    return findings


def _check_pvc(src: str, doc: dict) -> list[Finding]:
    spec = _spec(doc)
    findings = []
    if not spec.get("accessModes"):
        findings.append(_error(src, "spec.accessModes is empty"))
    if not _dict(_dict(spec.get("resources")).get("requests")).get("storage"):
        findings.append(_error(src, "spec.resources.requests.storage is missing"))
    return findings


def _check_application(src: str, doc: dict) -> list[Finding]:
    spec = _spec(doc)
    findings = []
    if not _dict(spec.get("source")).get("repoURL"):
        findings.append(_error(src, "spec.source.repoURL is missing"))
    dest = _dict(spec.get("destination"))
    if not (dest.get("server") or dest.get("name")):
        findings.append(_error(src, "spec.destination needs a server or name"))
    return findings


def _check_pipeline(src: str, doc: dict) -> list[Finding]:
    spec = _spec(doc)
    tasks = spec.get("tasks")
    if not tasks:
        return [_error(src, "spec.tasks is empty")]
    findings = _non_mappings(src, "spec.tasks", tasks)
    findings.extend(_non_mappings(src, "spec.workspaces", spec.get("workspaces")))
    seen = set()
    for task in _mappings(tasks):
        name = str(task.get("name", ""))
        if name in seen:
            findings.append(_error(src, f"duplicate task name '{name}'"))
        seen.add(name)
        if not task.get("taskRef") and not task.get("taskSpec"):
            findings.append(_error(src, f"task '{name}' needs a taskRef or taskSpec"))
        findings.extend(_non_mappings(src, f"task '{name}' workspaces", task.get("workspaces")))
        findings.extend(_non_mappings(src, f"task '{name}' params", task.get("params")))
        run_after = task.get("runAfter")
        if run_after is not None and not (isinstance(run_after, list)
                                          and all(isinstance(r, str) for r in run_after)):
            findings.append(_error(src, f"task '{name}' runAfter must be a list of task names"))
    return findings


def _check_pipeline_run(src: str, doc: dict) -> list[Finding]:
    spec = _spec(doc)
    if not _dict(spec.get("pipelineRef")).get("name") and not spec.get("pipelineSpec"):
        return [_error(src, "spec needs a pipelineRef or pipelineSpec")]
    return _non_mappings(src, "spec.workspaces", spec.get("workspaces"))


_KIND_CHECKS = {
    "Deployment": _check_workload,
    "StatefulSet": _check_workload,
    "Service": _check_service,
    "Ingress": _check_ingress,
    "Secret": _check_secret,
    "PersistentVolumeClaim": _check_pvc,
    "Application": _check_application,
    "Pipeline": _check_pipeline,
    "PipelineRun": _check_pipeline_run,
}


def _depends_on(svc: dict) -> list[str]:
    """Service names from compose depends_on, in list or mapping form."""
    deps = svc.get("depends_on") or []
    return [str(d) for d in deps if isinstance(d, (str, int))] if isinstance(deps, (list, dict)) else []


def _check_compose_schema(aset: ArtifactSet) -> list[Finding]:
    if aset.compose is None:
        return []
    src = aset.compose_path
    services = aset.compose.get("services")
    if not isinstance(services, dict) or not services:
        return [_error(src, "compose file has no services")]
    findings = []
    for name, svc in services.items():
        if not isinstance(svc, dict) or not (svc.get("image") or svc.get("build")):
            findings.append(_error(src, f"service '{name}' needs an image or build"))
            continue
        for dep in _depends_on(svc):
            if dep not in services:
                findings.append(_error(src, f"service '{name}' depends on unknown service '{dep}'"))
    return findings


def check_schema(aset: ArtifactSet) -> list[Finding]:
    """Every document is a known apiVersion/kind with its required fields."""
    findings = [_error(path, f"unparseable YAML: {msg}") for path, msg in aset.parse_errors]
    for path, doc in aset.documents():
        src = _source(path, doc)
        kind, api_version = doc.get("kind"), doc.get("apiVersion")
        if not isinstance(kind, str) or not isinstance(api_version, str) or not kind or not api_version:
            findings.append(_error(src, "document needs both apiVersion and kind"))
            continue
        if not _name(doc):
            findings.append(_error(src, "metadata.name is missing"))
        allowed = API_VERSIONS.get(kind)
        if allowed is None:
            findings.append(_warning(src, f"unknown kind '{kind}' — schema not checked"))
            continue
        if api_version not in allowed:
            findings.append(_error(
                src, f"apiVersion '{api_version}' is not valid for {kind} "
                     f"(expected {' or '.join(allowed)})"))
            continue
        check = _KIND_CHECKS.get(kind)
        if check:
            findings.extend(check(src, doc))
    findings.extend(_check_compose_schema(aset))
    return findings


# ---------------------------------------------------------------------------
# Placeholders
# ---------------------------------------------------------------------------

def check_placeholders(aset: ArtifactSet) -> list[Finding]:
    """No <placeholder> token may remain in a deployable artifact."""
    findings = []
    for path, doc in aset.documents():
        src = _source(path, doc)
        for location, value in walk_strings(doc):
            for m in PLACEHOLDER_RE.finditer(value):
                findings.append(_error(src, f"placeholder '{m.group(0)}' left at {location}"))
        if doc.get("kind") == "Secret":
            for key, val in _dict(doc.get("data")).items():
                if _is_placeholder(val) or not _valid_base64(val):
                    continue
                decoded = secret_value(doc, key)
                for m in PLACEHOLDER_RE.finditer(decoded or ""):
                    findings.append(_error(
                        src, f"placeholder '{m.group(0)}' left inside decoded data['{key}']"))
    if aset.compose is not None:
        for location, value in walk_strings(aset.compose):
            for m in PLACEHOLDER_RE.finditer(value):
                findings.append(_error(aset.compose_path,
                                       f"placeholder '{m.group(0)}' left at {location}"))
    if aset.dockerfile is not None:
        for lineno, line in enumerate(aset.dockerfile.splitlines(), 1):
            if line.lstrip().startswith("#"):
                continue
            for m in PLACEHOLDER_RE.finditer(line):
                findings.append(_error(f"{aset.dockerfile_path}:{lineno}",
                                       f"placeholder '{m.group(0)}' left in Dockerfile"))
    return findings


# ---------------------------------------------------------------------------
# Database URL consistency
# ---------------------------------------------------------------------------

def _resolve_env(container: dict, secrets: dict[str, dict]) -> dict[str, str | None]:
    """Resolve literal and secretKeyRef env values; unresolvable ones map to None."""
    resolved = {}
    for name, entry in container_env(container).items():
        if "value" in entry:
            resolved[name] = None if entry["value"] is None else str(entry["value"])
            continue
        ref = _dict(_dict(entry.get("valueFrom")).get("secretKeyRef"))
        secret = secrets.get(str(ref.get("name", "")))
        val = secret_value(secret, str(ref.get("key", ""))) if secret else None
        resolved[name] = None if _is_placeholder(val) else val
    return resolved


def _postgres_targets(aset: ArtifactSet, secrets: dict[str, dict]) -> dict[str, dict]:
    """Map every host name a Postgres workload answers to -> its env and ports."""
    targets: dict[str, dict] = {}
    services = aset.of_kind("Service")
    for _path, doc in aset.of_kind(*WORKLOAD_KINDS):
        pg = [c for c in _containers(doc) if _is_postgres_image(c.get("image"))]
        if not pg:
            continue
        env = _resolve_env(pg[0], secrets)
        labels = _template_labels(doc)
        for _svc_path, svc in services:
            svc_spec = _spec(svc)
            if _selects(svc_spec.get("selector") or {}, labels):
                ports = [p.get("port") for p in _mappings(svc_spec.get("ports"))]
                targets[_name(svc)] = {"workload": full_name(doc), "env": env, "ports": ports,
                                      "namespace": _dict(svc.get("metadata")).get("namespace")}
    return targets


def _compare_url(src: str, url: str, env: dict, ports: list, target: str) -> list[Finding]:
    """Compare the parts of a parsed database URL to the database's env and ports."""
    findings = []
    parsed = urlparse(url)
    user = unquote(parsed.username or "")
    password = unquote(parsed.password or "")
    db_name = parsed.path.lstrip("/")
    try:
        port = parsed.port or 5432
    except ValueError:
        return [_error(src, "database URL has an invalid port")]
    expected_user = env.get("POSTGRES_USER") or "postgres"
    if user != expected_user:
        findings.append(_error(src, f"database URL user '{user}' != POSTGRES_USER "
                                    f"'{expected_user}' of {target}"))
    expected_db = env.get("POSTGRES_DB") or expected_user
    if db_name != expected_db:
        findings.append(_error(src, f"database URL database '{db_name}' != POSTGRES_DB "
                                    f"'{expected_db}' of {target}"))
    if ports and port not in ports:
        findings.append(_error(src, f"database URL port {port} is not served by {target} "
                                    f"(ports: {', '.join(str(p) for p in ports)})"))
    expected_password = env.get("POSTGRES_PASSWORD")
    if expected_password is not None and password != expected_password:
        findings.append(_error(src, f"database URL password does not match POSTGRES_PASSWORD of {target}"))
    return findings


def _parse_db_url(src: str, url: str) -> tuple[str | None, list[Finding]]:
    """Return (host, findings) for a candidate database URL."""
    parsed = urlparse(url)
    if parsed.scheme not in DATABASE_URL_SCHEMES:
        return None, [_error(src, f"database URL scheme '{parsed.scheme}' is not "
                                  f"{' or '.join(DATABASE_URL_SCHEMES)}")]
    if not parsed.hostname:
        return None, [_error(src, "database URL has no host")]
    if not parsed.path.lstrip("/"):
        return None, [_error(src, "database URL names no database")]
    return parsed.hostname, []


def _check_cluster_database_urls(aset: ArtifactSet, secrets: dict[str, dict]) -> list[Finding]:
    findings = []
    targets = _postgres_targets(aset, secrets)
    for path, doc in aset.of_kind("Secret"):
        raw = _dict(doc.get("data")).get(DATABASE_URL_KEY)
        if raw is None and DATABASE_URL_KEY not in _dict(doc.get("stringData")):
            continue
        if _is_placeholder(raw):
            continue  # reported by check_placeholders
        src = f"{_source(path, doc)} [{DATABASE_URL_KEY}]"
        url = secret_value(doc, DATABASE_URL_KEY)
        if not url or _is_placeholder(url):
            continue
        host, problems = _parse_db_url(src, url)
        findings.extend(problems)
        if host is None:
            continue
        if not targets:
            findings.append(_warning(src, "no Postgres workload with a Service in the set to check against"))
            continue
        m = K8S_DNS_RE.match(host)
        service = m.group(1) if m else host
        target = targets.get(service)
        if target is None:
            findings.append(_error(src, f"database URL host '{host}' is not a Service selecting "
                                        f"a Postgres workload (known: {', '.join(sorted(targets))})"))
            continue
        namespace = m.group(2) if m else None
        if namespace and target["namespace"] and namespace != target["namespace"]:
            findings.append(_error(src, f"database URL host '{host}' points at namespace '{namespace}' "
                                        f"but Service/{service} is in '{target['namespace']}'"))
            continue
        findings.extend(_compare_url(src, url, target["env"], target["ports"],
                                     f"Service/{service} -> {target['workload']}"))
    return findings


def _compose_env(svc: dict) -> dict[str, str | None]:
    """Normalize compose environment (mapping or KEY=VALUE list) to a dict."""
    env = svc.get("environment") or {}
    if not isinstance(env, (list, dict)):
        return {}
    if isinstance(env, list):
        result = {}
        for item in env:
            key, sep, val = str(item).partition("=")
            result[key] = val if sep else None
        return result
    return {k: None if v is None else str(v) for k, v in env.items()}


def _check_compose_database_urls(aset: ArtifactSet) -> list[Finding]:
    if not aset.compose or not isinstance(aset.compose.get("services"), dict):
        return []
    findings = []
    services = aset.compose["services"]
    for name, svc in services.items():
        if not isinstance(svc, dict):
            continue
        url = _compose_env(svc).get("DATABASE_URL")
        if not url or _is_placeholder(url):
            continue
        src = f"{aset.compose_path} services.{name}.environment.DATABASE_URL"
        host, problems = _parse_db_url(src, url)
        findings.extend(problems)
        if host is None:
            continue
        db_svc = services.get(host)
        if not isinstance(db_svc, dict) or not _is_postgres_image(db_svc.get("image")):
            findings.append(_error(src, f"database URL host '{host}' is not a Postgres service"))
            continue
        if host not in _depends_on(svc):
            findings.append(_warning(src, f"service '{name}' does not depend_on '{host}'"))
        # compose services talk container to container, on Postgres' own port
        findings.extend(_compare_url(src, url, _compose_env(db_svc), [5432], f"service '{host}'"))
    return findings


def check_database_url(aset: ArtifactSet) -> list[Finding]:
    """database-url values decode to a URL matching the Postgres objects it points at."""
    secrets = _index_by_name(aset, "Secret")
    return _check_cluster_database_urls(aset, secrets) + _check_compose_database_urls(aset)


# ---------------------------------------------------------------------------
# Tekton ordering
# ---------------------------------------------------------------------------

def _run_after(task: dict) -> list[str]:
    run_after = task.get("runAfter")
    return [r for r in run_after if isinstance(r, str)] if isinstance(run_after, list) else []


def _binding_name(binding: dict) -> str | None:
    """Workspace a task binding points at (the task-side name when unmapped)."""
    ws = binding.get("workspace", binding.get("name"))
    return ws if isinstance(ws, str) else None


def _task_dependencies(task: dict) -> set[str]:
    """Explicit runAfter plus implicit result-reference dependencies."""
    deps = set(_run_after(task))
    for _location, value in walk_strings(task.get("params") or []):
        deps.update(_TASK_RESULT_RE.findall(value))
    return deps


def _find_cycle(graph: dict[str, set[str]]) -> list[str] | None:
    """Return one dependency cycle as a list of task names, or None."""
    state: dict[str, int] = {}  # 1 = visiting, 2 = done
    stack: list[str] = []

    def visit(node: str) -> list[str] | None:
        state[node] = 1
        stack.append(node)
        for dep in sorted(graph.get(node, ())):
            if dep not in graph:
                continue
            if state.get(dep) == 1:
                return stack[stack.index(dep):] + [dep]
            if dep not in state:
                cycle = visit(dep)
                if cycle:
                    return cycle
        stack.pop()
        state[node] = 2
        return None

    for node in sorted(graph):
        if node not in state:
            cycle = visit(node)
            if cycle:
                return cycle
    return None


def _ancestors(graph: dict[str, set[str]], node: str) -> set[str]:
    """Every task that must finish before node starts."""
    seen: set[str] = set()
    pending = list(graph.get(node, ()))
    while pending:
        dep = pending.pop()
        if dep in seen or dep not in graph:
            continue
        seen.add(dep)
        pending.extend(graph[dep])
    return seen


def _check_pipeline_order(src: str, doc: dict) -> list[Finding]:
    findings = []
    spec = _spec(doc)
    tasks = _mappings(spec.get("tasks"))
    declared = {_binding_name(w) for w in _mappings(spec.get("workspaces"))}
    graph = {str(t.get("name", "")): _task_dependencies(t) for t in tasks}

    for task in tasks:
        name = str(task.get("name", ""))
        for dep in _run_after(task):
            if dep not in graph:
                findings.append(_error(src, f"task '{name}' runs after unknown task '{dep}'"))
        for binding in _mappings(task.get("workspaces")):
            ws = _binding_name(binding)
            if ws not in declared:
                findings.append(_error(src, f"task '{name}' binds undeclared workspace '{ws}'"))

    cycle = _find_cycle(graph)
    if cycle:
        findings.append(_error(src, f"runAfter cycle: {' -> '.join(cycle)}"))
        return findings

    # A task sharing a workspace with an earlier task must be ordered after it
    for i, task in enumerate(tasks):
        name = str(task.get("name", ""))
        before = _ancestors(graph, name)
        mine = {_binding_name(b) for b in _mappings(task.get("workspaces"))}
        for earlier in tasks[:i]:
            other = str(earlier.get("name", ""))
            theirs = {_binding_name(b) for b in _mappings(earlier.get("workspaces"))}
            shared = sorted(w for w in mine & theirs if w)
            if shared and other not in before:
                findings.append(_error(
                    src, f"task '{name}' shares workspace '{shared[0]}' with '{other}' "
                         f"but does not declare runAfter: [{other}]"))
    return findings


def _check_pipeline_run_binding(src: str, doc: dict, pipelines: dict[str, dict]) -> list[Finding]:
    spec = _spec(doc)
    ref = _dict(spec.get("pipelineRef")).get("name")
    if not ref:
        return []
    pipeline = pipelines.get(ref)
    if pipeline is None:
        if pipelines:
            return [_error(src, f"pipelineRef '{ref}' names no Pipeline in the set "
                                f"(known: {', '.join(sorted(pipelines))})")]
        return [_warning(src, f"Pipeline '{ref}' is not in the set — bindings not checked")]
    findings = []
    bound = {_binding_name(w) for w in _mappings(spec.get("workspaces"))}
    for ws in _mappings(_spec(pipeline).get("workspaces")):
        if ws.get("name") not in bound and not ws.get("optional"):
            findings.append(_error(src, f"workspace '{ws.get('name')}' of Pipeline/{ref} is not bound"))
    declared = {_binding_name(w) for w in _mappings(_spec(pipeline).get("workspaces"))}
    for name in sorted(n for n in bound - declared if n):
        findings.append(_warning(src, f"binds workspace '{name}' that Pipeline/{ref} does not declare"))
    return findings


def check_tekton(aset: ArtifactSet) -> list[Finding]:
    """Pipelines are acyclic and order every task after the tasks it shares data with."""
    findings = []
    for path, doc in aset.of_kind("Pipeline"):
        findings.extend(_check_pipeline_order(_source(path, doc), doc))
    pipelines = _index_by_name(aset, "Pipeline")
    for path, doc in aset.of_kind("PipelineRun"):
        findings.extend(_check_pipeline_run_binding(_source(path, doc), doc, pipelines))
    return findings


# ---------------------------------------------------------------------------
# Cross-references
# ---------------------------------------------------------------------------

def _check_service_selectors(aset: ArtifactSet) -> list[Finding]:
    findings = []
    workloads = [_template_labels(doc) for _path, doc in aset.of_kind(*WORKLOAD_KINDS)]
    for path, doc in aset.of_kind("Service"):
        selector = _spec(doc).get("selector") or {}
        if selector and not any(_selects(selector, labels) for labels in workloads):
            findings.append(_warning(_source(path, doc), f"selector {selector} matches no workload in the set"))
    return findings


def _check_ingress_backends(aset: ArtifactSet) -> list[Finding]:
    findings = []
    services = _index_by_name(aset, "Service")
    for path, doc in aset.of_kind("Ingress"):
        src = _source(path, doc)
        for rule in _mappings(_spec(doc).get("rules")):
            for path_entry in _mappings(_dict(rule.get("http")).get("paths")):
                backend = _dict(_dict(path_entry.get("backend")).get("service"))
                name = backend.get("name")
                if not isinstance(name, str) or not name:
                    continue
                svc = services.get(name)
                if svc is None:
                    findings.append(_warning(src, f"backend Service '{name}' is not in the set"))
                    continue
                port = _dict(backend.get("port"))
                svc_ports = _mappings(_spec(svc).get("ports"))
                if "number" in port and port["number"] not in [p.get("port") for p in svc_ports]:
                    findings.append(_error(src, f"backend port {port['number']} is not a port of Service/{name}"))
                elif "name" in port and port["name"] not in [p.get("name") for p in svc_ports]:
                    findings.append(_error(src, f"backend port '{port['name']}' is not a port of Service/{name}"))
    return findings


def _check_secret_refs(aset: ArtifactSet) -> list[Finding]:
    findings = []
    secrets = _index_by_name(aset, "Secret")
    for path, doc in aset.of_kind(*WORKLOAD_KINDS):
        src = _source(path, doc)
        for c in _containers(doc):
            for env_name, entry in container_env(c).items():
                ref = _dict(entry.get("valueFrom")).get("secretKeyRef")
                if not isinstance(ref, dict) or ref.get("optional"):
                    continue
                secret = secrets.get(str(ref.get("name", "")))
                if secret is None:
                    findings.append(_warning(src, f"env {env_name}: Secret '{ref.get('name')}' is not in the set"))
                    continue
                keys = set(_dict(secret.get("data"))) | set(_dict(secret.get("stringData")))
                if str(ref.get("key")) not in keys:
                    findings.append(_error(src, f"env {env_name}: key '{ref.get('key')}' "
                                                f"not found in Secret '{ref.get('name')}'"))
    return findings


def _check_volume_mounts(aset: ArtifactSet) -> list[Finding]:
    findings = []
    for path, doc in aset.of_kind(*WORKLOAD_KINDS):
        spec = _spec(doc)
        volumes = {str(v.get("name")) for v in _mappings(pod_spec(doc).get("volumes"))}
        volumes |= {str(_dict(t.get("metadata")).get("name")) for t in _mappings(spec.get("volumeClaimTemplates"))}
        for c in _containers(doc):
            for vm in _mappings(c.get("volumeMounts")):
                if str(vm.get("name")) not in volumes:
                    findings.append(_error(_source(path, doc),
                                           f"container '{c.get('name')}' mounts unknown volume '{vm.get('name')}'"))
    return findings


def _check_run_claims(aset: ArtifactSet) -> list[Finding]:
    findings = []
    pvcs = _index_by_name(aset, "PersistentVolumeClaim")
    secrets = _index_by_name(aset, "Secret")
    for path, doc in aset.of_kind("PipelineRun"):
        src = _source(path, doc)
        for ws in _mappings(_spec(doc).get("workspaces")):
            claim = _dict(ws.get("persistentVolumeClaim")).get("claimName")
            if claim and str(claim) not in pvcs:
                findings.append(_warning(src, f"workspace '{ws.get('name')}': PVC '{claim}' is not in the set"))
            secret = _dict(ws.get("secret")).get("secretName")
            if secret and str(secret) not in secrets:
                findings.append(_warning(src, f"workspace '{ws.get('name')}': Secret '{secret}' is not in the set"))
    return findings


def _dockerfile_ports(dockerfile: str) -> set[int]:
    ports = set()
    for m in _EXPOSE_RE.finditer(dockerfile):
        for token in m.group(1).split():
            number = token.split("/")[0]
            if number.isdigit():
                ports.add(int(number))
    return ports


def _built_images(aset: ArtifactSet) -> set[str]:
    """Image references pushed by Tekton kaniko tasks, with and without registry."""
    images = set()
    for _path, doc in aset.of_kind("Pipeline"):
        for task in _mappings(_spec(doc).get("tasks")):
            for param in _mappings(task.get("params")):
                if param.get("name") == "IMAGE" and isinstance(param.get("value"), str):
                    image = param["value"]
                    images.add(image)
                    if image.startswith("docker.io/"):
                        images.add(image[len("docker.io/"):])
    return images


def _check_exposed_ports(aset: ArtifactSet) -> list[Finding]:
    if aset.dockerfile is None:
        return []
    exposed = _dockerfile_ports(aset.dockerfile)
    if not exposed:
        return []
    findings = []
    built = _built_images(aset)
    for path, doc in aset.of_kind(*WORKLOAD_KINDS):
        for c in _containers(doc):
            if not isinstance(c.get("image"), str) or c.get("image") not in built:
                continue
            ports = {p.get("containerPort") for p in _mappings(c.get("ports"))
                     if isinstance(p.get("containerPort"), int)}
            for port in sorted(p for p in ports if p not in exposed):
                findings.append(_error(_source(path, doc),
                                       f"containerPort {port} is not EXPOSEd by the Dockerfile "
                                       f"({', '.join(str(p) for p in sorted(exposed))})"))
    if aset.compose and isinstance(aset.compose.get("services"), dict):
        for name, svc in aset.compose["services"].items():
            if not isinstance(svc, dict) or not svc.get("build"):
                continue
            for mapping in svc.get("ports") or []:
                container_port = str(mapping).split(":")[-1].split("/")[0]
                if container_port.isdigit() and int(container_port) not in exposed:
                    findings.append(_error(aset.compose_path,
                                           f"service '{name}' publishes container port {container_port} "
                                           f"not EXPOSEd by the Dockerfile"))
    return findings


def check_references(aset: ArtifactSet) -> list[Finding]:
    """Objects that refer to each other agree on names, keys and ports."""
    return (_check_service_selectors(aset) + _check_ingress_backends(aset)
            + _check_secret_refs(aset) + _check_volume_mounts(aset)
            + _check_run_claims(aset) + _check_exposed_ports(aset))


_CHECKS = [check_schema, check_placeholders, check_database_url, check_tekton, check_references]


def lint(aset: ArtifactSet) -> list[Finding]:
    """Run every check over the artifact set."""
    findings: list[Finding] = []
    for check in _CHECKS:
        findings.extend(check(aset))
    return findings


def has_failures(findings: list[Finding], strict: bool = False) -> bool:
    """True if any finding should fail the run."""
    return any(f.level == "error" or strict for f in findings)

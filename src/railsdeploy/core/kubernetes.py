"""Kubernetes manifests: app Deployment, Postgres StatefulSet, Services, Ingress, Secrets."""

from railsdeploy.pacts.helpers import b64
from railsdeploy.pacts.types import Artifact, RenderContext, RenderResult
from railsdeploy.core.config import database_url, image_ref
from railsdeploy.core.constants import (
    DATABASE_URL_KEY, DATABASE_URL_PLACEHOLDER, POSTGRES_DATA_DIR,
    POSTGRES_PASSWORD_KEY, POSTGRES_PASSWORD_PLACEHOLDER,
)

POSTGRES_NAME = "postgres"
POSTGRES_VOLUME = "postgres-data"
MANIFEST_DIR = "k8s-manifests"


def app_names(config: dict) -> dict[str, str]:
    """Object names derived from the application name."""
    name = config["name"]
    return {
        "app": name,
        "service": f"{name}-service",
        "ingress": f"{name}-ingress",
        "secret": f"{name}-secrets",
        "db_service": f"{POSTGRES_NAME}-service",
        "db_secret": f"{POSTGRES_NAME}-secrets",
    }


def _metadata(name: str, namespace: str, labels: dict | None = None) -> dict:
    meta = {"name": name, "namespace": namespace}
    if labels:
        meta["labels"] = labels
    return meta


def _service(name: str, namespace: str, selector: dict, port: int, target_port: int) -> dict:
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(name, namespace),
        "spec": {
            "selector": dict(selector),
            "ports": [{"protocol": "TCP", "port": port, "targetPort": target_port}],
            "type": "ClusterIP",
        },
    }


def _secret_key_ref(env_name: str, secret: str, key: str) -> dict:
    return {"name": env_name, "valueFrom": {"secretKeyRef": {"name": secret, "key": key}}}


def render_app(config: dict) -> list[dict]:
    """Deployment + ClusterIP Service for the web application."""
    names = app_names(config)
    ns = config["namespace"]
    app = config["app"]
    labels = {"app": names["app"]}
    deployment = {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": _metadata(names["app"], ns),
        "spec": {
            "replicas": app["replicas"],
            "selector": {"matchLabels": dict(labels)},
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {
                    "containers": [{
                        "name": names["app"],
                        "image": image_ref(config),
                        "ports": [{"containerPort": app["port"]}],
                        "env": [
                            {"name": "RAILS_ENV", "value": app["rails_env"]},
                            _secret_key_ref("DATABASE_URL", names["secret"], DATABASE_URL_KEY),
                        ],
                    }],
                },
            },
        },
    }
    service = _service(names["service"], ns, labels, app["service_port"], app["port"])
    return [deployment, service]


def render_postgres(config: dict) -> list[dict]:
    """StatefulSet with a volumeClaimTemplate + ClusterIP Service for Postgres."""
    names = app_names(config)
    ns = config["namespace"]
    db = config["database"]
    labels = {"app": POSTGRES_NAME}
    statefulset = {
        "apiVersion": "apps/v1",
        "kind": "StatefulSet",
        "metadata": _metadata(POSTGRES_NAME, ns),
        "spec": {
            "serviceName": POSTGRES_NAME,
            "replicas": 1,
            "selector": {"matchLabels": dict(labels)},
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {
                    "containers": [{
                        "name": POSTGRES_NAME,
                        "image": db["image"],
                        "env": [
                            {"name": "POSTGRES_USER", "value": db["user"]},
                            _secret_key_ref("POSTGRES_PASSWORD", names["db_secret"],
                                            POSTGRES_PASSWORD_KEY),
                            {"name": "POSTGRES_DB", "value": db["name"]},
                        ],
                        "ports": [{"containerPort": 5432}],
                        "volumeMounts": [
                            {"name": POSTGRES_VOLUME, "mountPath": POSTGRES_DATA_DIR},
                        ],
                    }],
                },
            },
            "volumeClaimTemplates": [{
                "metadata": {"name": POSTGRES_VOLUME},
                "spec": {
                    "accessModes": ["ReadWriteOnce"],
                    "resources": {"requests": {"storage": db["storage"]}},
                },
            }],
        },
    }
    service = _service(names["db_service"], ns, labels, db["port"], 5432)
    return [statefulset, service]


def render_ingress(config: dict) -> dict:
    """Route the configured host / to the application Service."""
    names = app_names(config)
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": _metadata(names["ingress"], config["namespace"]),
        "spec": {
            "rules": [{
                "host": config["app"]["host"],
                "http": {
                    "paths": [{
                        "path": "/",
                        "pathType": "Prefix",
                        "backend": {
                            "service": {
                                "name": names["service"],
                                "port": {"number": config["app"]["service_port"]},
                            },
                        },
                    }],
                },
            }],
        },
    }


def render_secrets(config: dict) -> list[dict]:
    """Opaque Secrets for the database URL and the Postgres password.

    Without database.password the data values are placeholder tokens, to be
    filled via `replacements` or by hand before apply.
    """
    names = app_names(config)
    ns = config["namespace"]
    password = config["database"].get("password")
    if password is None:
        url_data, password_data = DATABASE_URL_PLACEHOLDER, POSTGRES_PASSWORD_PLACEHOLDER
    else:
        password = str(password)
        url_data = b64(database_url(config, names["db_service"], password))
        password_data = b64(password)
    return [
        {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": _metadata(names["secret"], ns),
            "type": "Opaque",
            "data": {DATABASE_URL_KEY: url_data},
        },
        {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": _metadata(names["db_secret"], ns),
            "type": "Opaque",
            "data": {POSTGRES_PASSWORD_KEY: password_data},
        },
    ]


class KubernetesRenderer:
    """Render the manifests ArgoCD syncs from k8s-manifests/."""
    name = "kubernetes"

    def render(self, ctx: RenderContext) -> RenderResult:
        config = ctx.config
        if config["app"]["replicas"] == 0:
            ctx.warnings.append(f"Deployment/{config['name']} has replicas: 0 — app will not run")
        return RenderResult(artifacts=[
            Artifact(path=f"{MANIFEST_DIR}/{config['name']}-deployment.yaml",
                     documents=render_app(config)),
            Artifact(path=f"{MANIFEST_DIR}/postgres-statefulset.yaml",
                     documents=render_postgres(config)),
            Artifact(path=f"{MANIFEST_DIR}/ingress.yaml", documents=[render_ingress(config)]),
            Artifact(path=f"{MANIFEST_DIR}/secrets.yaml", documents=render_secrets(config)),
        ])

"""ArgoCD Application and ConfigMaps for GitOps sync of k8s-manifests/."""

import yaml

from railsdeploy.pacts.types import Artifact, RenderContext, RenderResult
from railsdeploy.core.config import repo_url

ARGOCD_DIR = "argocd"


def _argocd_labels(name: str) -> dict:
    return {"app.kubernetes.io/name": name, "app.kubernetes.io/part-of": "argocd"}


def render_application(config: dict) -> dict:
    """Application syncing the manifest path into the app namespace."""
    argo = config["argocd"]
    sync_policy = {}
    if argo["prune"] or argo["self_heal"]:
        sync_policy["automated"] = {"prune": bool(argo["prune"]),
                                    "selfHeal": bool(argo["self_heal"])}
    return {
        "apiVersion": "argoproj.io/v1alpha1",
        "kind": "Application",
        "metadata": {"name": config["name"], "namespace": argo["namespace"]},
        "spec": {
            "project": argo["project"],
            "source": {
                "repoURL": repo_url(config),
                "targetRevision": argo["target_revision"],
                "path": argo["path"],
            },
            "destination": {
                "server": argo["destination_server"],
                "namespace": config["namespace"],
            },
            "syncPolicy": sync_policy,
        },
    }


def render_repo_config(config: dict) -> dict:
    """argocd-cm registering the Git repository with secret-backed credentials."""
    argo = config["argocd"]
    repositories = [{
        "url": repo_url(config),
        "usernameSecret": {"name": argo["repo_secret"], "key": "username"},
        "passwordSecret": {"name": argo["repo_secret"], "key": "password"},
    }]
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {
            "name": "argocd-cm",
            "namespace": argo["namespace"],
            "labels": _argocd_labels("argocd-cm"),
        },
        # argocd-cm carries nested config as YAML strings
        "data": {
            "repositories": yaml.dump(repositories, default_flow_style=False, sort_keys=False),
        },
    }


def render_rbac_config(config: dict) -> dict:
    """argocd-rbac-cm with the default role for authenticated users."""
    argo = config["argocd"]
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {
            "name": "argocd-rbac-cm",
            "namespace": argo["namespace"],
            "labels": _argocd_labels("argocd-rbac-cm"),
        },
        "data": {"policy.default": argo["default_policy"]},
    }


class ArgoCDRenderer:
    """Render the GitOps objects under argocd/."""
    name = "argocd"

    def render(self, ctx: RenderContext) -> RenderResult:
        config = ctx.config
        if not config["argocd"]["prune"] and not config["argocd"]["self_heal"]:
            ctx.warnings.append(
                f"Application/{config['name']}: automated sync disabled — "
                f"changes in {config['argocd']['path']} need a manual sync"
            )
        return RenderResult(artifacts=[
            Artifact(path=f"{ARGOCD_DIR}/application.yaml",
                     documents=[render_application(config)]),
            Artifact(path=f"{ARGOCD_DIR}/argocd-cm.yaml", documents=[render_repo_config(config)]),
            Artifact(path=f"{ARGOCD_DIR}/argocd-rbac-cm.yaml",
                     documents=[render_rbac_config(config)]),
        ])

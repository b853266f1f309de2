"""Tekton CI objects: clone -> build-and-push Pipeline, its run, workspace PVC, registry Secret."""

from railsdeploy.pacts.helpers import b64, docker_config_json
from railsdeploy.pacts.types import Artifact, RenderContext, RenderResult
from railsdeploy.core.config import image_ref, registry_auth_key, repo_url
from railsdeploy.core.constants import DOCKER_CONFIG_PLACEHOLDER

TEKTON_DIR = "tekton"
TEKTON_API = "tekton.dev/v1beta1"
SHARED_WORKSPACE = "shared-workspace"
CREDENTIALS_WORKSPACE = "docker-credentials"


def tekton_names(config: dict) -> dict[str, str]:
    """Object names derived from the application name."""
    name = config["name"]
    return {
        "pipeline": f"{name}-build",
        "run": f"{name}-build-run",
        "pvc": f"{name}-build-pvc",
        "secret": config["tekton"]["registry_secret"],
    }


def render_pipeline(config: dict) -> dict:
    """Two catalog tasks sharing one workspace; kaniko runs after git-clone."""
    names = tekton_names(config)
    return {
        "apiVersion": TEKTON_API,
        "kind": "Pipeline",
        "metadata": {"name": names["pipeline"], "namespace": config["tekton"]["namespace"]},
        "spec": {
            "workspaces": [{"name": SHARED_WORKSPACE}, {"name": CREDENTIALS_WORKSPACE}],
            "tasks": [
                {
                    "name": "clone",
                    "taskRef": {"name": "git-clone"},
                    "params": [
                        {"name": "url", "value": repo_url(config)},
                        {"name": "revision", "value": config["revision"]},
                    ],
                    "workspaces": [{"name": "output", "workspace": SHARED_WORKSPACE}],
                },
                {
                    "name": "build-and-push",
                    "taskRef": {"name": "kaniko"},
                    "runAfter": ["clone"],
                    "params": [
                        {"name": "IMAGE", "value": image_ref(config, with_registry=True)},
                        {"name": "DOCKERFILE", "value": "./Dockerfile"},
                    ],
                    "workspaces": [
                        {"name": "source", "workspace": SHARED_WORKSPACE},
                        {"name": "dockerconfig", "workspace": CREDENTIALS_WORKSPACE},
                    ],
                },
            ],
        },
    }


def render_pipeline_run(config: dict) -> dict:
    """Bind the pipeline workspaces to the PVC and the registry Secret."""
    names = tekton_names(config)
    return {
        "apiVersion": TEKTON_API,
        "kind": "PipelineRun",
        "metadata": {"name": names["run"], "namespace": config["tekton"]["namespace"]},
        "spec": {
            "pipelineRef": {"name": names["pipeline"]},
            "workspaces": [
                {"name": SHARED_WORKSPACE,
                 "persistentVolumeClaim": {"claimName": names["pvc"]}},
                {"name": CREDENTIALS_WORKSPACE, "secret": {"secretName": names["secret"]}},
            ],
        },
    }


def render_workspace_pvc(config: dict) -> dict:
    names = tekton_names(config)
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": {"name": names["pvc"], "namespace": config["tekton"]["namespace"]},
        "spec": {
            "accessModes": ["ReadWriteOnce"],
            "resources": {"requests": {"storage": config["tekton"]["workspace_size"]}},
        },
    }


def render_registry_secret(config: dict) -> dict:
    """kubernetes.io/dockerconfigjson Secret kaniko pushes with."""
    tekton = config["tekton"]
    username, password = tekton.get("registry_username"), tekton.get("registry_password")
    if username and password:
        payload = b64(docker_config_json(registry_auth_key(tekton["registry"]),
                                         str(username), str(password),
                                         tekton.get("registry_email") or ""))
    else:
        payload = DOCKER_CONFIG_PLACEHOLDER
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": tekton_names(config)["secret"], "namespace": tekton["namespace"]},
        "type": "kubernetes.io/dockerconfigjson",
        "data": {".dockerconfigjson": payload},
    }


class TektonRenderer:
    """Render the CI objects under tekton/."""
    name = "tekton"

    def render(self, ctx: RenderContext) -> RenderResult:
        config = ctx.config
        tekton = config["tekton"]
        if bool(tekton.get("registry_username")) != bool(tekton.get("registry_password")):
            ctx.warnings.append(
                "tekton.registry_username and tekton.registry_password must both be set — "
                "registry Secret left as placeholder"
            )
        return RenderResult(artifacts=[
            Artifact(path=f"{TEKTON_DIR}/pipeline.yaml", documents=[render_pipeline(config)]),
            Artifact(path=f"{TEKTON_DIR}/pipelinerun.yaml",
                     documents=[render_pipeline_run(config)]),
            Artifact(path=f"{TEKTON_DIR}/pvc.yaml", documents=[render_workspace_pvc(config)]),
            Artifact(path=f"{TEKTON_DIR}/docker-secret.yaml",
                     documents=[render_registry_secret(config)]),
        ])

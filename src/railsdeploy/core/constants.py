"""Constants shared across railsdeploy modules."""

import re

CONFIG_VERSION = "v1"
CONFIG_FILE = "railsdeploy.yaml"

# Tokens standing for user-supplied input: <your-username>, <base64-encoded-...>
PLACEHOLDER_RE = re.compile(r'<([a-z0-9][a-z0-9-]*[a-z0-9])>')

GIT_USER_PLACEHOLDER = "<your-username>"
DOCKERHUB_USER_PLACEHOLDER = "<your-dockerhub-username>"
DATABASE_URL_PLACEHOLDER = "<base64-encoded-database-url>"
POSTGRES_PASSWORD_PLACEHOLDER = "<base64-encoded-postgres-password>"
DOCKER_CONFIG_PLACEHOLDER = "<base64-encoded-docker-config-json>"

# RFC 1123 label, as Kubernetes requires for most object names
DNS_LABEL_RE = re.compile(r'^[a-z0-9]([a-z0-9-]*[a-z0-9])?$')
QUANTITY_RE = re.compile(r'^[0-9]+(\.[0-9]+)?(Ki|Mi|Gi|Ti|Pi|Ei|k|M|G|T|P|E)?$')

# K8s internal DNS: <svc>.<ns>.svc.cluster.local
K8S_DNS_RE = re.compile(
    r'^([a-z0-9](?:[a-z0-9-]*[a-z0-9])?)'          # service name (captured)
    r'(?:\.([a-z0-9](?:[a-z0-9-]*[a-z0-9])?))?'     # namespace (captured)
    r'(?:\.svc(?:\.cluster\.local)?)?$'
)

# Known kind -> accepted apiVersions
API_VERSIONS = {
    "Deployment": ("apps/v1",),
    "StatefulSet": ("apps/v1",),
    "Service": ("v1",),
    "Secret": ("v1",),
    "ConfigMap": ("v1",),
    "PersistentVolumeClaim": ("v1",),
    "Ingress": ("networking.k8s.io/v1",),
    "Application": ("argoproj.io/v1alpha1",),
    "Pipeline": ("tekton.dev/v1beta1", "tekton.dev/v1"),
    "PipelineRun": ("tekton.dev/v1beta1", "tekton.dev/v1"),
    "Task": ("tekton.dev/v1beta1", "tekton.dev/v1"),
}

WORKLOAD_KINDS = ("Deployment", "StatefulSet")

COMPOSE_FILES = ("docker-compose.yml", "docker-compose.yaml", "compose.yml", "compose.yaml")
DOCKERFILE = "Dockerfile"

POSTGRES_DATA_DIR = "/var/lib/postgresql/data"
DATABASE_URL_KEY = "database-url"
POSTGRES_PASSWORD_KEY = "postgres-password"
DATABASE_URL_SCHEMES = ("postgres", "postgresql")

GENERATED_HEADER = "# Generated by railsdeploy — edit railsdeploy.yaml and re-render instead\n"

"""Public data types shared by renderers and lint checks."""

from dataclasses import dataclass, field


@dataclass
class Artifact:
    """One output file: either a YAML document stream or raw text."""
    path: str
    documents: list = field(default_factory=list)
    text: str | None = None

    @property
    def is_yaml(self) -> bool:
        return self.text is None


@dataclass
class RenderContext:
    """Shared state passed to all renderers during a render run."""
    config: dict
    warnings: list


@dataclass
class RenderResult:
    """Output of a single renderer."""
    artifacts: list = field(default_factory=list)


@dataclass
class Finding:
    """A single lint result."""
    level: str
    source: str
    message: str

    def __str__(self) -> str:
        return f"{self.source}: {self.message}"


@dataclass
class ArtifactSet:
    """Parsed artifacts, as seen by lint checks.

    manifests maps kind -> list of (path, document) pairs.
    """
    manifests: dict = field(default_factory=dict)
    compose: dict | None = None
    compose_path: str = ""
    dockerfile: str | None = None
    dockerfile_path: str = ""
    parse_errors: list = field(default_factory=list)

    def of_kind(self, *kinds: str) -> list[tuple[str, dict]]:
        """Return (path, document) pairs for the given kinds, in parse order."""
        result = []
        for kind in kinds:
            result.extend(self.manifests.get(kind, []))
        return result

    def documents(self) -> list[tuple[str, dict]]:
        """Return every parsed (path, document) pair."""
        return [pair for pairs in self.manifests.values() for pair in pairs]

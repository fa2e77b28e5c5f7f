"""Shared types for the repository analysis engine.

Every type here is built fresh for one analysis and discarded once the
response has been rendered. ``to_dict`` produces the JSON wire shape.
"""

from dataclasses import dataclass, field
from typing import Optional

ExtensionCounts = dict[str, int]

BLOB = "blob"
TREE = "tree"
OTHER = "other"


@dataclass(frozen=True)
class TreeEntry:
    """One object from a recursive tree listing."""

    path: str
    type: str
    sha: str = ""

    @property
    def is_blob(self) -> bool:
        return self.type == BLOB

    @classmethod
    def from_api(cls, item: dict) -> "TreeEntry":
        """Build from a GitHub git/trees item; submodules etc. become ``other``."""
        kind = item.get("type", "")
        if kind not in (BLOB, TREE):
            kind = OTHER
        return cls(path=item.get("path", ""), type=kind, sha=item.get("sha", ""))

    def to_dict(self) -> dict:
        return {"path": self.path, "type": self.type, "sha": self.sha}


@dataclass(frozen=True)
class FileSnippet:
    path: str
    text: str


@dataclass
class DockerInfo:
    """Facts pulled out of a Dockerfile."""

    cmd: Optional[str] = None
    entrypoint: Optional[str] = None
    exposed_ports: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "cmd": self.cmd,
            "entrypoint": self.entrypoint,
            "exposedPorts": list(self.exposed_ports),
        }


@dataclass
class DetectedFacts:
    """Heuristic findings for a repository.

    Scalar fields start as None and are filled by the first rule that
    detects them (see ``heuristics.fill_if_absent``). Command lists keep
    discovery order and are not de-duplicated.
    """

    project_type: Optional[str] = None
    entrypoint: Optional[str] = None
    run_commands: list[str] = field(default_factory=list)
    test_commands: list[str] = field(default_factory=list)
    package_manager: Optional[str] = None
    env_vars: set[str] = field(default_factory=set)
    has_docker: bool = False
    docker_info: Optional[DockerInfo] = None
    has_ci: bool = False
    ci_files: list[str] = field(default_factory=list)
    has_tests: bool = False
    readme: Optional[str] = None
    license: Optional[str] = None
    assumptions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "projectType": self.project_type,
            "entrypoint": self.entrypoint,
            "runCommands": list(self.run_commands),
            "testCommands": list(self.test_commands),
            "packageManager": self.package_manager,
            # Sorted so identical inputs always render identically.
            "envVars": sorted(self.env_vars),
            "hasDocker": self.has_docker,
            "dockerInfo": self.docker_info.to_dict() if self.docker_info else None,
            "hasCI": self.has_ci,
            "ciFiles": list(self.ci_files),
            "hasTests": self.has_tests,
            "readme": self.readme,
            "license": self.license,
            "assumptions": list(self.assumptions),
        }


@dataclass
class AnalysisResult:
    """Complete analysis output for one ``(owner, repo, ref)``."""

    repo: str
    ref: str
    primary_languages: list[str]
    ext_counts: ExtensionCounts
    files_found: list[str]
    detected: DetectedFacts
    snippets: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "repo": self.repo,
            "ref": self.ref,
            "primaryLanguages": list(self.primary_languages),
            "extCounts": dict(self.ext_counts),
            "filesFound": list(self.files_found),
            "detected": self.detected.to_dict(),
            "snippets": dict(self.snippets),
        }

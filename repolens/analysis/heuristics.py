"""Classification rules over fetched manifest text.

Each ``apply_*`` function inspects one kind of evidence and updates a
``DetectedFacts`` in place. Rules run in a fixed order and scalar facts go
through ``fill_if_absent``: the first rule to detect a value wins and
later rules can only fill what is still None. Command lists are appended
to, in discovery order.

All functions here are pure (no network) and deterministic.
"""

import json
import logging
import re
import tomllib
from typing import Iterable, Optional

from repolens.analysis.env_vars import extract_env_vars
from repolens.analysis.selection import CI_PATH_PREFIX, README_SNIPPET_CHARS, short_snippet
from repolens.analysis.types import DetectedFacts, DockerInfo, TreeEntry

logger = logging.getLogger(__name__)

NODE_PACKAGE_MANAGER = "npm|yarn"
PYTHON_PACKAGE_MANAGER = "pip/poetry/pipenv"

PYTHON_MANIFESTS = ("requirements.txt", "pyproject.toml", "Pipfile", "setup.py")

# Manifest -> (package manager, project type) for ecosystems that are only
# recognised by presence. Order matters: first match wins.
OTHER_ECOSYSTEMS: list[tuple[str, str, str]] = [
    ("go.mod", "go", "go-project"),
    ("Cargo.toml", "cargo", "rust-project"),
    ("Gemfile", "bundler", "ruby-project"),
    ("composer.json", "composer", "php-project"),
]

CONTAINER_FILES = ("Dockerfile", "docker-compose.yml")

_DOCKER_CMD_RE = re.compile(r"^\s*CMD\s+(.+?)\s*$", re.IGNORECASE | re.MULTILINE)
_DOCKER_ENTRYPOINT_RE = re.compile(r"^\s*ENTRYPOINT\s+(.+?)\s*$", re.IGNORECASE | re.MULTILINE)
_DOCKER_EXPOSE_RE = re.compile(r"^\s*EXPOSE\s+(.+?)\s*$", re.IGNORECASE | re.MULTILINE)
_PORT_RE = re.compile(r"^(\d+)(?:/\w+)?$")

_TEST_DIR_RE = re.compile(r"(^|/)(__tests__|tests|test)($|/)", re.IGNORECASE)
_README_RE = re.compile(r"readme", re.IGNORECASE)
_LICENSE_RE = re.compile(r"licen[cs]e", re.IGNORECASE)

FALLBACK_NODE_RUN = "npm install && npm start"
FALLBACK_PYTHON_RUN = "pip install -r requirements.txt && python main.py"
FALLBACK_DOCKER_RUN = "docker build -t myapp . && docker run -p 3000:3000 myapp"
FALLBACK_GENERIC_RUN = "Check project files for run instructions"

ASSUMPTION_NO_ENTRYPOINT = "Entry point not obvious; assumed from package files or Dockerfile."
ASSUMPTION_NO_ENV_VARS = "No ENV vars detected by static scan; there may still be runtime envs."


def fill_if_absent(detected: DetectedFacts, **updates: Optional[str]) -> list[str]:
    """Set each field only if it is currently None.

    Returns the names of the fields that were actually filled.
    """
    filled: list[str] = []
    for name, value in updates.items():
        if value is None or getattr(detected, name) is not None:
            continue
        setattr(detected, name, value)
        filled.append(name)
    return filled


# ---------------------------------------------------------------------------
# Dependency manifests
# ---------------------------------------------------------------------------


def apply_package_json(detected: DetectedFacts, text: str) -> None:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.debug("package.json is not parseable (possibly truncated): %s", exc)
        return
    if not isinstance(data, dict):
        return

    fill_if_absent(detected, package_manager=NODE_PACKAGE_MANAGER)

    scripts = data.get("scripts")
    if not isinstance(scripts, dict):
        scripts = {}
    detected.run_commands.extend(str(cmd) for cmd in scripts.values())

    if scripts.get("start"):
        fill_if_absent(detected, entrypoint=str(scripts["start"]))
    if scripts.get("test"):
        detected.test_commands.append(str(scripts["test"]))
        detected.has_tests = True
    if data.get("main"):
        fill_if_absent(detected, entrypoint=f"node {data['main']}")
    if data.get("name"):
        fill_if_absent(detected, project_type="node-project")


def _declares_pytest(pyproject_text: str) -> bool:
    try:
        data = tomllib.loads(pyproject_text)
    except tomllib.TOMLDecodeError:
        # Truncated snippets rarely parse; fall back to a plain text check.
        return "[tool.pytest" in pyproject_text
    tool = data.get("tool")
    return isinstance(tool, dict) and "pytest" in tool


def apply_python_manifests(detected: DetectedFacts, snippets: dict[str, str]) -> None:
    if not any(name in snippets for name in PYTHON_MANIFESTS):
        return

    fill_if_absent(detected, package_manager=PYTHON_PACKAGE_MANAGER)
    pyproject = snippets.get("pyproject.toml")
    if pyproject and _declares_pytest(pyproject):
        detected.has_tests = True
        detected.test_commands.append("pytest")
    fill_if_absent(detected, project_type="python-project")


def apply_other_ecosystems(detected: DetectedFacts, snippets: dict[str, str]) -> None:
    for manifest, package_manager, project_type in OTHER_ECOSYSTEMS:
        if manifest in snippets:
            fill_if_absent(detected, package_manager=package_manager, project_type=project_type)
            return


# ---------------------------------------------------------------------------
# Containers and CI
# ---------------------------------------------------------------------------


def parse_dockerfile(text: str) -> DockerInfo:
    """Pull the effective CMD / ENTRYPOINT and every exposed port.

    Docker only honours the last CMD and ENTRYPOINT, so those are the ones
    reported. Ports keep their declaration order; ``/tcp``-style suffixes
    are dropped.
    """
    cmds = _DOCKER_CMD_RE.findall(text)
    entrypoints = _DOCKER_ENTRYPOINT_RE.findall(text)
    ports: list[str] = []
    for line in _DOCKER_EXPOSE_RE.findall(text):
        for token in line.split():
            match = _PORT_RE.match(token)
            if match:
                ports.append(match.group(1))
    return DockerInfo(
        cmd=cmds[-1] if cmds else None,
        entrypoint=entrypoints[-1] if entrypoints else None,
        exposed_ports=ports,
    )


def apply_docker(detected: DetectedFacts, snippets: dict[str, str]) -> None:
    if not any(name in snippets for name in CONTAINER_FILES):
        return

    detected.has_docker = True
    dockerfile = snippets.get("Dockerfile")
    info = parse_dockerfile(dockerfile) if dockerfile else DockerInfo()
    detected.docker_info = info
    fill_if_absent(detected, entrypoint=info.cmd)
    fill_if_absent(detected, project_type="dockerized-app")


def apply_ci(detected: DetectedFacts, files_found: Iterable[str]) -> None:
    ci_files = [path for path in files_found if path.startswith(CI_PATH_PREFIX)]
    if ci_files:
        detected.has_ci = True
        detected.ci_files = ci_files


# ---------------------------------------------------------------------------
# README, LICENSE and test layout
# ---------------------------------------------------------------------------


def apply_readme_and_license(
    detected: DetectedFacts,
    snippets: dict[str, str],
    entries: Iterable[TreeEntry],
) -> None:
    readme_path = next((path for path in snippets if _README_RE.search(path)), None)
    if readme_path:
        detected.readme = short_snippet(snippets[readme_path], README_SNIPPET_CHARS)

    license_path = next(
        (
            entry.path
            for entry in entries
            if entry.is_blob and _LICENSE_RE.search(entry.path.rsplit("/", 1)[-1])
        ),
        None,
    )
    fill_if_absent(detected, license=license_path)


def fallback_test_command(package_manager: Optional[str]) -> str:
    """Generic test invocation for a repo with a test directory.

    Only Node and everything-else are distinguished; Go, Rust, Ruby and
    PHP projects get ``pytest`` too.
    """
    if package_manager and "npm" in package_manager:
        return "npm test"
    return "pytest"


def apply_test_layout(detected: DetectedFacts, entries: Iterable[TreeEntry]) -> None:
    if detected.has_tests:
        return
    if any(_TEST_DIR_RE.search(entry.path) for entry in entries):
        detected.has_tests = True
        detected.test_commands.append(fallback_test_command(detected.package_manager))


# ---------------------------------------------------------------------------
# Env vars, fallbacks and assumptions
# ---------------------------------------------------------------------------


def apply_env_vars(detected: DetectedFacts, snippets: dict[str, str]) -> None:
    detected.env_vars |= extract_env_vars("\n\n".join(snippets.values()))


def apply_fallback_run_command(detected: DetectedFacts) -> None:
    if detected.run_commands:
        return
    pm = detected.package_manager or ""
    if "npm" in pm:
        detected.run_commands.append(FALLBACK_NODE_RUN)
    elif "pip" in pm:
        detected.run_commands.append(FALLBACK_PYTHON_RUN)
    elif detected.has_docker:
        detected.run_commands.append(FALLBACK_DOCKER_RUN)
    else:
        detected.run_commands.append(FALLBACK_GENERIC_RUN)


def apply_assumptions(detected: DetectedFacts) -> None:
    if not detected.entrypoint:
        detected.assumptions.append(ASSUMPTION_NO_ENTRYPOINT)
    if not detected.env_vars:
        detected.assumptions.append(ASSUMPTION_NO_ENV_VARS)


def classify(
    snippets: dict[str, str],
    files_found: list[str],
    entries: list[TreeEntry],
) -> DetectedFacts:
    """Run every rule in precedence order and return the combined facts."""
    detected = DetectedFacts()
    if "package.json" in snippets:
        apply_package_json(detected, snippets["package.json"])
    apply_python_manifests(detected, snippets)
    apply_other_ecosystems(detected, snippets)
    apply_docker(detected, snippets)
    apply_ci(detected, files_found)
    apply_readme_and_license(detected, snippets, entries)
    apply_test_layout(detected, entries)
    apply_env_vars(detected, snippets)
    apply_fallback_run_command(detected)
    apply_assumptions(detected)
    return detected

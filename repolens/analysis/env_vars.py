"""Environment-variable name extraction.

A table of regex descriptors, one per access idiom. Adding an ecosystem
means adding a row; ``extract_env_vars`` applies every row the same way
and unions the captures.
"""

import re
from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class EnvVarPattern:
    name: str
    regex: re.Pattern
    group: int = 1


_NAME = r"([A-Za-z0-9_]+)"

ENV_VAR_PATTERNS: list[EnvVarPattern] = [
    # JavaScript
    EnvVarPattern("process.env.NAME", re.compile(r"process\.env\." + _NAME)),
    EnvVarPattern("process.env['NAME']", re.compile(r"process\.env\[['\"]" + _NAME + r"['\"]\]")),
    # Python
    EnvVarPattern("os.getenv('NAME')", re.compile(r"os\.getenv\(\s*['\"]" + _NAME + r"['\"]")),
    EnvVarPattern("os.environ.get('NAME')", re.compile(r"os\.environ\.get\(\s*['\"]" + _NAME + r"['\"]")),
    EnvVarPattern("os.environ['NAME']", re.compile(r"os\.environ\[['\"]" + _NAME + r"['\"]\]")),
    # Ruby / generic
    EnvVarPattern("ENV['NAME']", re.compile(r"ENV\[['\"]" + _NAME + r"['\"]\]")),
    # Shell, Dockerfile, compose and CI files
    EnvVarPattern("${NAME}", re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::?[-=?+][^}]*)?\}")),
    EnvVarPattern("$NAME", re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)")),
]


def extract_env_vars(
    text: str,
    patterns: Iterable[EnvVarPattern] = ENV_VAR_PATTERNS,
) -> set[str]:
    names: set[str] = set()
    if not text:
        return names
    for pattern in patterns:
        for match in pattern.regex.finditer(text):
            names.add(match.group(pattern.group))
    return names

"""Extension statistics and primary-language ranking.

Only blob entries count. The extension is the lowercased text after the
last ``.`` in the path; paths without one are not counted.
"""

from typing import Iterable

from repolens.analysis.types import ExtensionCounts, TreeEntry

PRIMARY_LANGUAGE_LIMIT = 3

# Extension -> language label. Extensions missing here never take one of
# the ranked slots, however common they are.
LANGUAGE_BY_EXTENSION: dict[str, str] = {
    "js": "JavaScript",
    "ts": "TypeScript",
    "py": "Python",
    "java": "Java",
    "go": "Go",
    "rs": "Rust",
    "rb": "Ruby",
    "php": "PHP",
    "cpp": "C/C++",
    "c": "C/C++",
    "cs": "C#",
    "swift": "Swift",
    "kt": "Kotlin",
    "sh": "Shell",
}


def extension_of(path: str) -> str:
    if "." not in path:
        return ""
    return path.rsplit(".", 1)[1].lower()


def ext_counts_from_tree(entries: Iterable[TreeEntry]) -> ExtensionCounts:
    counts: ExtensionCounts = {}
    for entry in entries:
        if not entry.is_blob:
            continue
        ext = extension_of(entry.path)
        if not ext:
            continue
        counts[ext] = counts.get(ext, 0) + 1
    return counts


def detect_primary_languages(
    ext_counts: ExtensionCounts,
    limit: int = PRIMARY_LANGUAGE_LIMIT,
) -> list[str]:
    """Rank mapped languages by file count, most common first.

    ``sorted`` is stable, so extensions with equal counts keep the order
    in which they were first seen in the tree.
    """
    ranked = sorted(ext_counts.items(), key=lambda item: item[1], reverse=True)
    languages: list[str] = []
    for ext, _count in ranked:
        label = LANGUAGE_BY_EXTENSION.get(ext)
        if label is None or label in languages:
            continue
        languages.append(label)
        if len(languages) == limit:
            break
    return languages

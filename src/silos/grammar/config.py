from pathlib import Path
from typing import Optional

# Every tag the registry accepts, mapped to the canonical language name.
LANGUAGE_ALIASES = {
    "go": "go",
    "rust": "rust",
    "rs": "rust",
    "c": "c",
    "h": "c",
    "cpp": "cpp",
    "c++": "cpp",
    "cc": "cpp",
    "cxx": "cpp",
    "hpp": "cpp",
    "javascript": "javascript",
    "js": "javascript",
    "jsx": "javascript",
    "typescript": "typescript",
    "ts": "typescript",
    "python": "python",
    "py": "python",
}

SUPPORTED_LANGUAGES = tuple(sorted(set(LANGUAGE_ALIASES.values())))


def canonical_language(tag: str) -> str:
    """
    Normalize a language tag ("RS", ".go", "hpp") to its canonical name.

    Unknown tags come back lower-cased so snippet namespaces for languages
    without a grammar still line up.
    """
    key = tag.strip().lower().lstrip(".")
    return LANGUAGE_ALIASES.get(key, key)


def language_for_path(path: Path) -> Optional[str]:
    """Return the canonical language for a file extension, or None."""
    suffix = Path(path).suffix
    if not suffix:
        return None
    key = suffix.lower().lstrip(".")
    return LANGUAGE_ALIASES.get(key)

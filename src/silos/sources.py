"""
Definition discovery and loading.

Layout, one directory per language:

    <root>/snippets/<language>/*.json     {"description": ..., "body": ...}
    <root>/mutations/<language>/*.json    {"description": ..., "rules": [
                                              {"expression": ..., "template": [
                                                  {"literal": ...}, {"capture": ...}]}]}

Files load in sorted order so ids and tie-breaking are reproducible.
Invalid records are logged and skipped; the rest keep loading.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Tuple

from silos.config import DEFINITIONS_CONFIG
from silos.exceptions import ConfigInvalid
from silos.logging_config import logger

if TYPE_CHECKING:
    from silos.engine import SilosEngine


@dataclass
class LoadReport:
    snippets: int = 0
    collections: int = 0
    rejected: List[Tuple[Path, str]] = field(default_factory=list)


def definition_files(root: Path, kind: str) -> Dict[str, List[Path]]:
    """
    Map each language directory under `root/kind` to its definition files.

    Returns:
        {language_dir_name: [sorted file paths]}; empty if the directory is missing.
    """
    base = Path(root) / kind
    if not base.is_dir():
        logger.debug(f"No definitions directory at {base}")
        return {}

    extension = DEFINITIONS_CONFIG["extension"]
    files_by_language = {}
    for language_dir in sorted(p for p in base.iterdir() if p.is_dir()):
        files_by_language[language_dir.name] = sorted(
            p for p in language_dir.iterdir() if p.is_file() and p.suffix == extension
        )
    return files_by_language


def read_record(path: Path) -> Dict[str, Any]:
    """
    Raises:
        ConfigInvalid: unreadable file, invalid JSON, or not a JSON object.
    """
    try:
        record = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigInvalid(f"cannot read definition: {e}", source=str(path)) from e
    except json.JSONDecodeError as e:
        raise ConfigInvalid(f"invalid JSON: {e}", source=str(path)) from e
    if not isinstance(record, dict):
        raise ConfigInvalid("definition must be a JSON object", source=str(path))
    return record


def load_definitions(engine: "SilosEngine", root: Path) -> LoadReport:
    """
    Load snippets and mutation collections from a definitions directory into `engine`.

    BackendUnavailable is not caught: without an embedder nothing can be indexed.
    """
    root = Path(root)
    report = LoadReport()

    for language, paths in definition_files(root, DEFINITIONS_CONFIG["snippets_dir"]).items():
        for path in paths:
            try:
                record = read_record(path)
                engine.add_snippet(record.get("description"), language, record.get("body"))
                report.snippets += 1
            except ConfigInvalid as e:
                logger.warning(f"Skipping snippet {path}: {e}")
                report.rejected.append((path, str(e)))

    for language, paths in definition_files(root, DEFINITIONS_CONFIG["mutations_dir"]).items():
        for path in paths:
            try:
                record = read_record(path)
                rules = record.get("rules")
                if not isinstance(rules, list):
                    raise ConfigInvalid("'rules' must be a list", source=str(path))
                engine.add_mutation_collection(record.get("description"), rules, language=language)
                report.collections += 1
            except ConfigInvalid as e:
                logger.warning(f"Skipping mutation collection {path}: {e}")
                report.rejected.append((path, str(e)))

    return report

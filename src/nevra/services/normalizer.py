"""Response Normalizer
===================

Turns raw completion text into an artifact: either one self-contained
document (``SingleFile``) or a multi-file project manifest (``MultiFile``).

Models wrap JSON in markdown fences, return it bare, or return plain HTML.
``extract_structured_object`` is the one place JSON is dug out of markdown;
the planner uses it as well.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from nevra.constants import FileKind, Framework, coerce_enum
from nevra.utils.errors import EmptyResponseError

logger = logging.getLogger(__name__)

MULTI_FILE_TYPE = 'multi-file'

# ```lang\n body ```  (lang optional)
FENCE_PATTERN = re.compile(r"```([\w+-]*)[ \t]*\r?\n?(.*?)```", re.DOTALL)

# Conventional application entry points, tried against each file in order
ENTRY_PATTERNS = (
    re.compile(r"(^|/)app/page\.\w+$"),
    re.compile(r"(^|/)App\.\w+$"),
    re.compile(r"(^|/)main\.\w+$"),
    re.compile(r"(^|/)index\.\w+$"),
)


@dataclass(frozen=True)
class FileEntry:
    path: str
    content: str
    kind: FileKind = FileKind.OTHER

    def to_dict(self) -> Dict[str, Any]:
        return {'path': self.path, 'content': self.content, 'type': self.kind.value}


@dataclass(frozen=True)
class SingleFile:
    """One self-contained document, e.g. an HTML page."""
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'single-file', 'content': self.content}


@dataclass(frozen=True)
class MultiFile:
    """A project manifest; ``entry_path`` always names one of ``files``."""
    files: Tuple[FileEntry, ...]
    entry_path: str
    framework: Optional[Framework] = None

    def __post_init__(self):
        if not self.files:
            raise ValueError("MultiFile requires at least one file")
        if self.entry_path not in {entry.path for entry in self.files}:
            raise ValueError(f"entry_path {self.entry_path!r} is not one of the files")

    def file(self, path: str) -> Optional[FileEntry]:
        return next((entry for entry in self.files if entry.path == path), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': MULTI_FILE_TYPE,
            'framework': self.framework.value if self.framework else None,
            'files': [entry.to_dict() for entry in self.files],
            'entry': self.entry_path,
        }


Artifact = Union[SingleFile, MultiFile]


def _load_object(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def extract_structured_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Find a JSON object in model output.

    Looks at fenced blocks first (tagged ``json``, or untagged with a body
    starting with ``{``), then at the whole trimmed text if it starts with
    ``{``. Returns the first candidate that parses to an object.
    """
    if not text:
        return None

    for match in FENCE_PATTERN.finditer(text):
        tag = match.group(1).lower()
        body = match.group(2).strip()
        if tag == 'json' or (not tag and body.startswith('{')):
            data = _load_object(body)
            if data is not None:
                return data

    trimmed = text.strip()
    if trimmed.startswith('{'):
        return _load_object(trimmed)
    return None


def select_entry_path(files: Sequence[FileEntry], declared: Optional[str] = None) -> str:
    """Declared entry if it names a file, else the first conventional entry, else the first file."""
    paths = [entry.path for entry in files]
    if declared and declared in paths:
        return declared
    for path in paths:
        if any(pattern.search(path) for pattern in ENTRY_PATTERNS):
            return path
    return paths[0]


def _parse_files(raw_files: Any) -> List[FileEntry]:
    entries = []
    for raw in raw_files if isinstance(raw_files, list) else []:
        if not isinstance(raw, Mapping):
            continue
        path = raw.get('path')
        content = raw.get('content')
        if not isinstance(path, str) or not path.strip() or content is None:
            continue
        kind = coerce_enum(FileKind, raw.get('type') or raw.get('kind'), FileKind.OTHER)
        entries.append(FileEntry(path=path.strip(), content=str(content), kind=kind))
    return entries


def parse_manifest(data: Optional[Mapping[str, Any]]) -> Optional[MultiFile]:
    """Build a MultiFile from a decoded manifest, or None if it is not one."""
    if not data or data.get('type') != MULTI_FILE_TYPE:
        return None
    files = _parse_files(data.get('files'))
    if not files:
        return None
    framework = data.get('framework')
    return MultiFile(
        files=tuple(files),
        entry_path=select_entry_path(files, data.get('entry')),
        framework=coerce_enum(Framework, framework, None) if framework else None,
    )


def normalize(raw: Optional[str]) -> Artifact:
    """Normalize a completion into an artifact.

    Raises:
        EmptyResponseError: ``raw`` is empty or whitespace only
    """
    if raw is None or not raw.strip():
        raise EmptyResponseError()

    manifest = parse_manifest(extract_structured_object(raw))
    if manifest is not None:
        logger.debug(f"Normalized multi-file artifact with {len(manifest.files)} files, entry {manifest.entry_path}")
        return manifest
    return SingleFile(content=raw)

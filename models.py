"""Data models for the vault graph export pipeline."""

import hashlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple


HASH_CHUNK_SIZE = 1024 * 1024


class LinkKind(Enum):
    """Kind of file a link points to."""
    NOTE = "note"
    ATTACHMENT = "attachment"


class LinkSyntax(Enum):
    """Markup used to write a link."""
    WIKILINK = "wikilink"
    MARKDOWN = "markdown"


class ExportAction(Enum):
    """Decision taken by a registry for one resolved file."""
    SKIPPED = "skipped"          # identical content already exported
    COPIED = "copied"            # exported under its natural basename
    COPIED_UNIQUE = "copied_unique"  # exported under a content-derived name
    PINNED = "pinned"            # seed document registered in place


class RegistryFrozenError(RuntimeError):
    """Raised when a registry or rename table is mutated after the walk."""
    pass


@dataclass
class LinkReference:
    """A single link found in a document."""

    raw_target: str
    target: str
    kind: LinkKind
    syntax: LinkSyntax
    alias: Optional[str] = None
    fragment: Optional[str] = None
    embed: bool = False
    span: Tuple[int, int] = (0, 0)
    explicit_extension: bool = True
    encoded: bool = False

    @property
    def has_path_prefix(self) -> bool:
        return '/' in self.target

    @property
    def is_relative(self) -> bool:
        return self.target.startswith(('./', '../'))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize link reference to dictionary."""
        return {
            'raw_target': self.raw_target,
            'target': self.target,
            'kind': self.kind.value,
            'syntax': self.syntax.value,
            'alias': self.alias,
            'fragment': self.fragment,
            'embed': self.embed
        }


class ResolvedFile:
    """Absolute source path with lazily computed content hash and size."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._content_hash: Optional[str] = None
        self._size: Optional[int] = None

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def size(self) -> int:
        if self._size is None:
            self._size = self.path.stat().st_size
        return self._size

    @property
    def content_hash(self) -> str:
        """SHA-256 hex digest of the file content, read once in chunks."""
        if self._content_hash is None:
            digest = hashlib.sha256()
            with open(self.path, 'rb') as f:
                for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b''):
                    digest.update(chunk)
            self._content_hash = digest.hexdigest()
        return self._content_hash

    def __repr__(self) -> str:
        return f"ResolvedFile({str(self.path)!r})"


@dataclass
class ExportEntry:
    """One physical file held by a registry."""

    content_hash: str
    name: str
    output_path: Path
    source_path: Path
    size: int
    reference: str
    pinned: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serialize entry to dictionary."""
        return {
            'content_hash': self.content_hash,
            'name': self.name,
            'output_path': str(self.output_path),
            'source_path': str(self.source_path),
            'size': self.size,
            'reference': self.reference,
            'pinned': self.pinned
        }


@dataclass
class ExportOutcome:
    """Result of handing a resolved file to a registry."""

    action: ExportAction
    entry: ExportEntry

    @property
    def name(self) -> str:
        return self.entry.name


class ExportRegistry:
    """
    Mapping from exported output path to the reference string that caused it.

    Grows monotonically during the walk and is read-only once frozen.
    """

    def __init__(self, kind: LinkKind):
        self.kind = kind
        self._exports: Dict[Path, str] = {}
        self._frozen = False

    def record(self, output_path: Path, reference: str) -> None:
        self._check_mutable()
        self._exports[Path(output_path)] = reference

    def move(self, old_path: Path, new_path: Path) -> None:
        """Re-key an export after its physical file was renamed."""
        self._check_mutable()
        reference = self._exports.pop(Path(old_path))
        self._exports[Path(new_path)] = reference

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RegistryFrozenError(
                f"{self.kind.value} registry is frozen; exports are final once the walk completes"
            )

    def __contains__(self, output_path: object) -> bool:
        return Path(output_path) in self._exports  # type: ignore[arg-type]

    def __getitem__(self, output_path: Path) -> str:
        return self._exports[Path(output_path)]

    def __len__(self) -> int:
        return len(self._exports)

    def __iter__(self) -> Iterator[Path]:
        return iter(self._exports)

    def items(self):
        return self._exports.items()


class RenameTable:
    """
    Append-only mapping from a previously chosen output name to its final name.

    Lookups follow at most one additional hop, so ``a -> b -> c`` resolves
    ``a`` to ``c``; longer chains stop after the second hop.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('vault_exporter.models.rename_table')
        self._renames: Dict[str, str] = {}
        self._frozen = False

    def record(self, old_name: str, new_name: str) -> None:
        if self._frozen:
            raise RegistryFrozenError("Rename table is frozen; renames are final once the walk completes")
        if old_name == new_name:
            return
        existing = self._renames.get(old_name)
        if existing is not None and existing != new_name:
            raise ValueError(
                f"Rename table is append-only: '{old_name}' already maps to '{existing}'"
            )
        self._renames[old_name] = new_name

    def resolve(self, name: str) -> str:
        """Return the final name for ``name`` following one extra hop."""
        first = self._renames.get(name)
        if first is None:
            return name
        second = self._renames.get(first)
        if second is None:
            return first
        if second in self._renames:
            self.logger.warning(
                f"Rename chain for '{name}' is longer than two hops; stopping at '{second}'"
            )
        return second

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, name: object) -> bool:
        return name in self._renames

    def __len__(self) -> int:
        return len(self._renames)

    def to_dict(self) -> Dict[str, str]:
        return dict(self._renames)


@dataclass
class ResolvedLink:
    """Registry entry a link target resolved to during the walk."""

    kind: LinkKind
    name: str  # output name at the time the link was resolved
    entry: ExportEntry


@dataclass
class ExportedDocument:
    """A document written to the output tree, with the links resolved for it."""

    source_path: Path
    entry: ExportEntry
    reference: str
    is_seed: bool = False
    link_map: Dict[str, ResolvedLink] = field(default_factory=dict)
    unresolved: List[str] = field(default_factory=list)

    @property
    def output_path(self) -> Path:
        # Follows the entry so retroactive renames are picked up
        return self.entry.output_path

    def record_link(self, target: str, kind: LinkKind, entry: ExportEntry) -> None:
        """Remember the entry chosen for a target written in this document."""
        self.link_map[target] = ResolvedLink(kind=kind, name=entry.name, entry=entry)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize document to dictionary."""
        return {
            'source_path': str(self.source_path),
            'output_path': str(self.output_path),
            'reference': self.reference,
            'is_seed': self.is_seed,
            'links': {target: link.entry.name for target, link in self.link_map.items()},
            'unresolved': list(self.unresolved)
        }


@dataclass
class ExportLayout:
    """Output directory layout for one run."""

    root: Path
    attachments_dir_name: str = 'attachments'
    references_dir_name: str = 'references'

    @property
    def attachments_dir(self) -> Path:
        return self.root / self.attachments_dir_name

    @property
    def references_dir(self) -> Path:
        return self.root / self.references_dir_name


__all__ = [
    'LinkKind',
    'LinkSyntax',
    'ExportAction',
    'RegistryFrozenError',
    'LinkReference',
    'ResolvedFile',
    'ExportEntry',
    'ExportOutcome',
    'ExportRegistry',
    'RenameTable',
    'ResolvedLink',
    'ExportedDocument',
    'ExportLayout',
]

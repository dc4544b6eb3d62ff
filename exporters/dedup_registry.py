"""Content-addressed registry that deduplicates and names exported files."""

import filecmp
import logging
import posixpath
import shutil
from pathlib import Path
from typing import Dict, List, Optional

from models import (
    ExportAction,
    ExportEntry,
    ExportOutcome,
    ExportRegistry,
    LinkKind,
    RegistryFrozenError,
    RenameTable,
    ResolvedFile
)


class DedupRegistry:
    """
    Decides how a resolved file lands in one flat output directory.

    The registry is a store keyed by content hash with a secondary index from
    natural basename to the hashes exported under it:

    1. Content already stored: reuse that entry, nothing is copied.
    2. Basename already taken by other content: every entry still holding the
       natural name is renamed to ``stem_<hash>.ext`` and the newcomer is
       copied under its own content-derived name.
    3. Otherwise the file is copied under its natural basename.

    Names derived from content never change again, and pinned entries (seed
    documents kept in place) are never renamed.
    """

    def __init__(
        self,
        kind: LinkKind,
        directory: Path,
        rename_table: RenameTable,
        hash_length: int = 8,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the registry.

        Args:
            kind: Kind of files held (notes or attachments)
            directory: Flat output directory for copied files
            rename_table: Rename table shared by all registries of the run
            hash_length: Hex characters of SHA-256 used in unique names
            logger: Logger instance
        """
        self.kind = kind
        self.directory = Path(directory)
        self.rename_table = rename_table
        self.hash_length = hash_length
        self.logger = logger or logging.getLogger('vault_exporter.exporters.dedup_registry')

        self.exports = ExportRegistry(kind)
        self._entries: Dict[str, ExportEntry] = {}                # {hash: entry}
        self._by_basename: Dict[str, Dict[str, ExportEntry]] = {}  # {basename: {hash: entry}}
        self._by_source: Dict[Path, ExportEntry] = {}             # {source path: entry}
        self._names: Dict[str, str] = {}                          # {name in directory: hash}

        self.stats = {
            'exported': 0,
            'deduplicated': 0,
            'renamed': 0,
            'pinned': 0,
            'missing': 0,
            'prefix_collisions': 0,
            'total_size_bytes': 0
        }

    def export(self, resolved: ResolvedFile, reference: str) -> Optional[ExportOutcome]:
        """
        Export a resolved file into the registry directory.

        Args:
            resolved: Source file to export
            reference: Link target string that led to this file

        Returns:
            ExportOutcome, or None when the source file vanished

        Raises:
            OSError: Any filesystem failure other than a missing source
        """
        self._check_mutable()

        try:
            content_hash = resolved.content_hash
            size = resolved.size
        except FileNotFoundError:
            self._warn_missing(resolved, reference)
            return None

        existing = self._entries.get(content_hash)
        if existing is not None:
            if self._same_content(existing, resolved, size):
                self.stats['deduplicated'] += 1
                self._by_source.setdefault(resolved.path, existing)
                self.logger.info(
                    f"Skipping '{reference}': identical content already exported as '{existing.name}'"
                )
                return ExportOutcome(ExportAction.SKIPPED, existing)
            self.logger.warning(
                f"'{resolved.path}' shares a SHA-256 digest with '{existing.source_path}' "
                f"but differs byte-wise; exporting it separately"
            )

        basename = resolved.name
        siblings = self._by_basename.get(basename, {})
        owner = self._names.get(basename)

        if siblings or (owner is not None and owner != content_hash):
            for entry in list(siblings.values()):
                if not entry.pinned and entry.name == basename:
                    self._rename_to_unique(entry)
            name = self._unique_name(basename, content_hash)
            action = ExportAction.COPIED_UNIQUE
        else:
            name = basename
            action = ExportAction.COPIED

        output_path = self.directory / name
        try:
            self._copy(resolved.path, output_path)
        except FileNotFoundError:
            self._warn_missing(resolved, reference)
            return None

        entry = ExportEntry(
            content_hash=content_hash,
            name=name,
            output_path=output_path,
            source_path=resolved.path,
            size=size,
            reference=reference
        )
        self._register(entry, basename)
        self.stats['exported'] += 1
        self.stats['total_size_bytes'] += size

        if action == ExportAction.COPIED_UNIQUE:
            self.logger.info(f"Exported '{reference}' as '{name}' (basename collision)")
        else:
            self.logger.debug(f"Exported '{reference}' as '{name}'")

        return ExportOutcome(action, entry)

    def pin(self, resolved: ResolvedFile, output_path: Path, reference: str) -> Optional[ExportOutcome]:
        """
        Copy a document to a fixed location and register it there.

        Pinned entries keep their path for the whole run. They take part in
        content matching and block their basename for later newcomers. A file
        pinned at its own path is registered without being copied.
        """
        self._check_mutable()

        try:
            content_hash = resolved.content_hash
            size = resolved.size
            if Path(output_path) != resolved.path:
                self._copy(resolved.path, output_path)
        except FileNotFoundError:
            self._warn_missing(resolved, reference)
            return None

        entry = ExportEntry(
            content_hash=content_hash,
            name=Path(output_path).name,
            output_path=Path(output_path),
            source_path=resolved.path,
            size=size,
            reference=reference,
            pinned=True
        )
        self._entries.setdefault(content_hash, entry)
        self._by_basename.setdefault(resolved.name, {}).setdefault(content_hash, entry)
        self._by_source[resolved.path] = entry
        self.exports.record(entry.output_path, reference)
        self.stats['pinned'] += 1
        self.stats['total_size_bytes'] += size

        self.logger.debug(f"Pinned '{reference}' at {output_path}")
        return ExportOutcome(ExportAction.PINNED, entry)

    def entry_for_source(self, source_path: Path) -> Optional[ExportEntry]:
        """Entry a source file was exported or deduplicated into, if any."""
        return self._by_source.get(Path(source_path))

    def entry_for_output(self, output_path: Path) -> Optional[ExportEntry]:
        """Entry currently written at ``output_path``, if any."""
        output_path = Path(output_path)
        for entry in self._by_source.values():
            if entry.output_path == output_path:
                return entry
        return None

    def unique_name(self, basename: str, content_hash: str, length: Optional[int] = None) -> str:
        """Content-derived name for ``basename``; identical content gives an identical name."""
        stem, ext = posixpath.splitext(basename)
        return f"{stem}_{content_hash[:length or self.hash_length]}{ext}"

    def entries(self) -> List[ExportEntry]:
        """Distinct entries in the order their sources were first seen."""
        return list({id(entry): entry for entry in self._by_source.values()}.values())

    def freeze(self) -> None:
        self.exports.freeze()

    @property
    def frozen(self) -> bool:
        return self.exports.frozen

    def get_stats(self) -> Dict[str, int]:
        """Get registry statistics."""
        return self.stats.copy()

    def _unique_name(self, basename: str, content_hash: str) -> str:
        """
        Pick the content-derived name, lengthening the hash suffix if a
        different content already owns the truncated one.
        """
        lengths = sorted({self.hash_length, max(16, self.hash_length * 2), len(content_hash)})

        for length in lengths:
            name = self.unique_name(basename, content_hash, length)
            owner = self._names.get(name)
            if owner is None or owner == content_hash:
                return name
            self.stats['prefix_collisions'] += 1
            self.logger.warning(
                f"Hash prefix collision for '{name}'; lengthening suffix beyond {length} characters"
            )

        raise RuntimeError(f"No unique name available for '{basename}' ({content_hash})")

    def _rename_to_unique(self, entry: ExportEntry) -> None:
        new_name = self._unique_name(entry.name, entry.content_hash)
        new_path = self.directory / new_name

        entry.output_path.rename(new_path)
        self.exports.move(entry.output_path, new_path)
        self.rename_table.record(entry.name, new_name)

        self._names.pop(entry.name, None)
        self._names[new_name] = entry.content_hash
        self.stats['renamed'] += 1
        self.logger.info(f"Renamed '{entry.name}' to '{new_name}' (basename collision)")

        entry.name = new_name
        entry.output_path = new_path

    def _register(self, entry: ExportEntry, basename: str) -> None:
        self._entries.setdefault(entry.content_hash, entry)
        self._by_basename.setdefault(basename, {})[entry.content_hash] = entry
        self._by_source[entry.source_path] = entry
        self._names[entry.name] = entry.content_hash
        self.exports.record(entry.output_path, entry.reference)

    @staticmethod
    def _same_content(entry: ExportEntry, resolved: ResolvedFile, size: int) -> bool:
        if entry.size != size:
            return False
        return filecmp.cmp(entry.output_path, resolved.path, shallow=False)

    @staticmethod
    def _copy(source: Path, destination: Path) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, destination)

    def _warn_missing(self, resolved: ResolvedFile, reference: str) -> None:
        self.stats['missing'] += 1
        self.logger.warning(f"Source file not found: {resolved.path} (referenced as '{reference}')")

    def _check_mutable(self) -> None:
        if self.exports.frozen:
            raise RegistryFrozenError(
                f"{self.kind.value} registry is frozen; no exports after the walk completes"
            )


__all__ = ['DedupRegistry']

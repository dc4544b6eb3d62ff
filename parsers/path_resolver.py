"""Path resolver implementing shortest-link resolution against a vault."""

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional


class PathResolver:
    """
    Resolves link targets to absolute source paths inside the vault.

    Resolution order:
    1. Bare filename: the global attachments directory first, then the first
       match of a lexicographic depth-first walk over the whole vault.
    2. ``./`` or ``../`` prefix: relative to the referring document.
    3. Anything else: relative to the vault root.
    """

    def __init__(
        self,
        vault_root: Path,
        attachments_dir: Optional[Path] = None,
        ignore_directories: Optional[Iterable[str]] = None,
        excluded_paths: Optional[Iterable[Path]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the path resolver.

        Args:
            vault_root: Root directory of the document store
            attachments_dir: Global attachments directory, checked first for bare names
            ignore_directories: Directory names never searched (e.g. '.obsidian')
            excluded_paths: Directory trees never searched (e.g. the output root)
            logger: Logger instance
        """
        self.vault_root = Path(vault_root).resolve()
        self.attachments_dir = Path(attachments_dir).resolve() if attachments_dir else None
        self.ignore_directories = set(ignore_directories or [])
        self.excluded_paths = [Path(p).resolve() for p in (excluded_paths or [])]
        self.logger = logger or logging.getLogger('vault_exporter.parsers.path_resolver')

        # Built on first bare-name miss: {filename: first path in walk order}
        self._name_index: Optional[Dict[str, Path]] = None

        self.stats = {
            'resolved': 0,
            'resolved_attachments_dir': 0,
            'resolved_by_search': 0,
            'outside_vault': 0,
            'not_found': 0
        }

    @classmethod
    def from_config(
        cls,
        config: dict,
        excluded_paths: Optional[Iterable[Path]] = None,
        logger: Optional[logging.Logger] = None
    ) -> 'PathResolver':
        vault = config.get('vault', {})
        vault_root = Path(vault.get('root', '.'))
        attachments = vault.get('attachments_directory')
        return cls(
            vault_root=vault_root,
            attachments_dir=vault_root / attachments if attachments else None,
            ignore_directories=vault.get('ignore_directories') or [],
            excluded_paths=excluded_paths,
            logger=logger
        )

    def resolve(self, referrer: Path, target: str) -> Optional[Path]:
        """
        Resolve a classified link target.

        Args:
            referrer: Absolute path of the document containing the link
            target: Normalized link target (decoded, fragment stripped)

        Returns:
            Absolute path of an existing file, or None if not found
        """
        if '/' not in target:
            resolved = self._resolve_bare_name(target)
        elif target.startswith(('./', '../')):
            resolved = self._existing(Path(referrer).parent / target)
        else:
            resolved = self._existing(self.vault_root / target.lstrip('/'))

        if resolved is None:
            self.stats['not_found'] += 1
            self.logger.debug(f"Could not resolve '{target}' from {referrer}")
        else:
            self.stats['resolved'] += 1

        return resolved

    def vault_relative(self, path: Path) -> Optional[str]:
        """POSIX path of ``path`` relative to the vault root, or None if outside."""
        try:
            return Path(os.path.normpath(path)).relative_to(self.vault_root).as_posix()
        except ValueError:
            return None

    def _resolve_bare_name(self, name: str) -> Optional[Path]:
        if self.attachments_dir is not None:
            candidate = self._existing(self.attachments_dir / name)
            if candidate is not None:
                self.stats['resolved_attachments_dir'] += 1
                return candidate

        found = self._get_name_index().get(name)
        if found is not None:
            self.stats['resolved_by_search'] += 1
        return found

    def _get_name_index(self) -> Dict[str, Path]:
        if self._name_index is None:
            self._name_index = self._build_name_index()
            self.logger.debug(
                f"Indexed {len(self._name_index)} file name(s) under {self.vault_root}"
            )
        return self._name_index

    def _build_name_index(self) -> Dict[str, Path]:
        """
        Walk the vault depth-first in lexicographic order.

        Directories and files are interleaved by name, so for duplicate names
        the first one in sorted path order wins.
        """
        index: Dict[str, Path] = {}
        stack: List[Iterator[os.DirEntry]] = [iter(self._sorted_entries(self.vault_root))]

        while stack:
            entry = next(stack[-1], None)
            if entry is None:
                stack.pop()
                continue

            if entry.is_dir(follow_symlinks=False):
                directory = Path(entry.path)
                if entry.name in self.ignore_directories or self._is_excluded(directory):
                    continue
                stack.append(iter(self._sorted_entries(directory)))
            elif entry.is_file() and entry.name not in index:
                index[entry.name] = Path(entry.path)

        return index

    @staticmethod
    def _sorted_entries(directory: Path) -> List[os.DirEntry]:
        try:
            with os.scandir(directory) as entries:
                return sorted(entries, key=lambda entry: entry.name)
        except FileNotFoundError:
            return []

    def _is_excluded(self, directory: Path) -> bool:
        for excluded in self.excluded_paths:
            if directory == excluded or excluded in directory.parents:
                return True
        return False

    def _existing(self, path: Path) -> Optional[Path]:
        normalized = Path(os.path.normpath(path))
        if normalized != self.vault_root and self.vault_root not in normalized.parents:
            self.stats['outside_vault'] += 1
            self.logger.debug(f"Ignoring {normalized}: outside the vault")
            return None
        if normalized.is_file():
            return normalized
        return None


__all__ = ['PathResolver']

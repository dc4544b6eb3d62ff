"""Graph walker that exports every document and attachment reachable from the seeds."""

import logging
import os
import posixpath
from collections import deque
from pathlib import Path
from typing import Deque, Dict, List, Optional, Sequence, Set, Tuple

from logger import ProgressTracker
from models import (
    ExportAction,
    ExportedDocument,
    ExportEntry,
    ExportOutcome,
    LinkKind,
    LinkReference,
    ResolvedFile
)
from parsers import LinkParser, PathResolver

from .dedup_registry import DedupRegistry


class GraphWalker:
    """
    Breadth-first traversal of the document graph.

    Each processed document has its attachments exported through the
    attachments registry and its note links queued for processing. Notes are
    tracked in a visited set keyed by the normalized link target, plus a guard
    set of source paths, so cyclic graphs terminate and no file is parsed twice.
    """

    def __init__(
        self,
        link_parser: LinkParser,
        path_resolver: PathResolver,
        notes: DedupRegistry,
        attachments: DedupRegistry,
        output_root: Optional[Path] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the walker.

        Args:
            link_parser: Parser used to extract links from documents
            path_resolver: Resolver mapping link targets to vault files
            notes: Registry for re-exported notes (references directory)
            attachments: Registry for attachments (attachments directory)
            output_root: Root of the export; files already under it are registered in place
            logger: Logger instance
        """
        self.link_parser = link_parser
        self.path_resolver = path_resolver
        self.notes = notes
        self.attachments = attachments
        self.output_root = Path(output_root) if output_root is not None else None
        self.logger = logger or logging.getLogger('vault_exporter.exporters.graph_walker')

        self.visited: Set[str] = set()
        self._note_entries: Dict[str, Optional[ExportEntry]] = {}  # {visit key: entry or None}
        self._walked_sources: Set[Path] = set()
        self.unresolved: List[Tuple[str, str]] = []  # (document reference, target)

        self.stats = {
            'seeds': 0,
            'documents': 0,
            'links_found': 0,
            'note_links': 0,
            'attachment_links': 0,
            'already_visited': 0,
            'unresolved_notes': 0,
            'unresolved_attachments': 0,
            'in_place': 0,
            'unreadable_documents': 0
        }

    def walk(self, seeds: Sequence[Tuple[Path, Path]]) -> List[ExportedDocument]:
        """
        Export the closure of documents reachable from ``seeds``.

        Seeds are pinned first, in the given order, so that links between
        seeds always resolve to the seed copies rather than flattened ones.

        Args:
            seeds: (source path, output path) pairs for the seed documents

        Returns:
            Every exported document in processing order, seeds first
        """
        queue: Deque[ExportedDocument] = deque()
        documents: List[ExportedDocument] = []

        for source_path, output_path in seeds:
            document = self._pin_seed(Path(source_path), Path(output_path))
            if document is not None:
                queue.append(document)
                documents.append(document)

        with ProgressTracker(len(documents), "documents") as progress:
            while queue:
                document = queue.popleft()
                discovered = self._process_document(document)
                if discovered is None:
                    progress.increment(success=False)
                    continue

                for new_document in discovered:
                    queue.append(new_document)
                    documents.append(new_document)
                progress.grow(len(discovered))
                progress.increment()

        self.stats['documents'] = len(documents)
        self.logger.info(
            f"Walk complete: {len(documents)} document(s), "
            f"{self.stats['unresolved_notes'] + self.stats['unresolved_attachments']} unresolved link(s)"
        )
        return documents

    def get_stats(self) -> Dict[str, int]:
        """Get walker statistics."""
        return self.stats.copy()

    def _pin_seed(self, source_path: Path, output_path: Path) -> Optional[ExportedDocument]:
        reference = self.path_resolver.vault_relative(source_path) or source_path.name
        outcome = self.notes.pin(ResolvedFile(source_path), output_path, reference)
        if outcome is None:
            return None

        self.stats['seeds'] += 1
        self.visited.add(reference)
        self._note_entries[reference] = outcome.entry
        self._walked_sources.add(source_path)
        return ExportedDocument(
            source_path=source_path,
            entry=outcome.entry,
            reference=reference,
            is_seed=True
        )

    def _process_document(self, document: ExportedDocument) -> Optional[List[ExportedDocument]]:
        """
        Export the attachments of one document and collect newly reached notes.

        Returns:
            Newly exported documents, or None when the source could not be read
        """
        try:
            with open(document.source_path, 'r', encoding='utf-8', errors='replace') as f:
                text = f.read()
        except FileNotFoundError:
            self.stats['unreadable_documents'] += 1
            self.logger.warning(f"Document disappeared before it could be read: {document.source_path}")
            return None

        links = self.link_parser.parse(text)
        self.stats['links_found'] += len(links)
        self.logger.debug(f"Processing '{document.reference}' ({len(links)} link(s))")

        discovered: List[ExportedDocument] = []
        for link in links:
            if link.target in document.link_map or link.target in document.unresolved:
                continue
            if link.kind == LinkKind.ATTACHMENT:
                self.stats['attachment_links'] += 1
                self._export_attachment(document, link)
            else:
                self.stats['note_links'] += 1
                new_document = self._follow_note(document, link)
                if new_document is not None:
                    discovered.append(new_document)

        return discovered

    def _export_attachment(self, document: ExportedDocument, link: LinkReference) -> None:
        resolved = self.path_resolver.resolve(document.source_path, link.target)
        if resolved is None:
            self._mark_unresolved(document, link, 'unresolved_attachments', "Attachment not found")
            return

        entry = self.attachments.entry_for_source(resolved)
        if entry is None:
            outcome = self._export(self.attachments, resolved, link.target)
            if outcome is None:
                self._mark_unresolved(document, link, 'unresolved_attachments', "Attachment missing")
                return
            entry = outcome.entry

        document.record_link(link.target, LinkKind.ATTACHMENT, entry)

    def _follow_note(self, document: ExportedDocument, link: LinkReference) -> Optional[ExportedDocument]:
        """
        Resolve a note link, exporting the note the first time it is reached.

        Returns:
            A new document to process, or None when nothing new was exported
        """
        key = self._visit_key(document, link.target)

        if key in self.visited:
            self.stats['already_visited'] += 1
            entry = self._note_entries.get(key)
            if entry is None:
                self._mark_unresolved(document, link, 'unresolved_notes', "Note not found")
            else:
                document.record_link(link.target, LinkKind.NOTE, entry)
            return None

        self.visited.add(key)
        self._note_entries[key] = None

        resolved = self.path_resolver.resolve(document.source_path, link.target)
        if resolved is None:
            self._mark_unresolved(document, link, 'unresolved_notes', "Note not found")
            return None

        entry = self.notes.entry_for_source(resolved)
        new_document = None

        if entry is None:
            outcome = self._export(self.notes, resolved, link.target)
            if outcome is None:
                self._mark_unresolved(document, link, 'unresolved_notes', "Note missing")
                return None
            entry = outcome.entry
            if outcome.action != ExportAction.SKIPPED and resolved not in self._walked_sources:
                self._walked_sources.add(resolved)
                new_document = ExportedDocument(
                    source_path=resolved,
                    entry=entry,
                    reference=self.path_resolver.vault_relative(resolved) or link.target
                )

        self._note_entries[key] = entry
        document.record_link(link.target, LinkKind.NOTE, entry)
        return new_document

    def _export(self, registry: DedupRegistry, resolved: Path, reference: str) -> Optional[ExportOutcome]:
        """
        Export ``resolved`` through ``registry``.

        A file already under the output root is never copied. If this run
        wrote it, the existing entry is reused; otherwise it is pinned where
        it is.
        """
        if not self._in_output_root(resolved):
            return registry.export(ResolvedFile(resolved), reference)

        entry = self.notes.entry_for_output(resolved) or self.attachments.entry_for_output(resolved)
        if entry is not None:
            return ExportOutcome(ExportAction.SKIPPED, entry)

        self.stats['in_place'] += 1
        self.logger.info(f"'{reference}' is already in the output directory; registering it in place")
        return registry.pin(ResolvedFile(resolved), resolved, reference)

    def _in_output_root(self, path: Path) -> bool:
        if self.output_root is None:
            return False
        return path == self.output_root or self.output_root in path.parents

    def _visit_key(self, document: ExportedDocument, target: str) -> str:
        """
        Normalized target used as the visited-set key.

        Bare names and vault-absolute paths mean the same file everywhere.
        Relative targets are anchored to the referring document's folder.
        """
        if not target.startswith(('./', '../')):
            return target.lstrip('/')

        relative = self.path_resolver.vault_relative(document.source_path)
        if relative is None:
            return os.path.normpath(document.source_path.parent / target)

        key = posixpath.normpath(posixpath.join(posixpath.dirname(relative), target))
        # Keep anchored keys distinct from bare-name keys
        if '/' not in key:
            key = './' + key
        return key

    def _mark_unresolved(self, document: ExportedDocument, link: LinkReference, stat: str, reason: str) -> None:
        self.stats[stat] += 1
        if link.target not in document.unresolved:
            document.unresolved.append(link.target)
        self.unresolved.append((document.reference, link.target))
        self.logger.warning(f"{reason}: '{link.target}' (linked from '{document.reference}')")


__all__ = ['GraphWalker']

"""Link rewriter for pointing exported documents at their final output names."""

import logging
import os
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote

from tqdm import tqdm

from config_loader import LINK_STYLES
from models import ExportedDocument, LinkKind, LinkReference, LinkSyntax, RenameTable
from parsers import LinkParser


class LinkRewriter:
    """
    Rewrites links in exported documents once the walk has finished.

    This rewriter:
    1. Parses every exported document again, from its output copy
    2. Looks up the entry each link target resolved to during the walk
    3. Maps that name through the rename table to its final name
    4. Substitutes only the path part, keeping alias and heading fragment

    Links that could not be resolved during the walk are left as written.
    """

    def __init__(
        self,
        rename_table: RenameTable,
        link_parser: Optional[LinkParser] = None,
        link_style: str = 'shortest',
        show_progress: bool = True,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the link rewriter.

        Args:
            rename_table: Rename table produced by the walk, frozen
            link_parser: Parser matching the one used during the walk
            link_style: 'shortest' for bare names, 'relative' for relative paths
            show_progress: Show a progress bar when attached to a terminal
            logger: Logger instance
        """
        if link_style not in LINK_STYLES:
            raise ValueError(f"Unknown link style '{link_style}'. Must be one of: {', '.join(LINK_STYLES)}")

        self.rename_table = rename_table
        self.link_parser = link_parser or LinkParser()
        self.link_style = link_style
        self.show_progress = show_progress
        self.logger = logger or logging.getLogger('vault_exporter.exporters.link_rewriter')

        self.stats = {
            'documents': 0,
            'documents_changed': 0,
            'documents_skipped': 0,
            'links_rewritten': 0,
            'links_unchanged': 0,
            'links_unresolved': 0,
            'links_unrecorded': 0
        }

    def rewrite_documents(self, documents: Iterable[ExportedDocument]) -> Dict[str, int]:
        """
        Rewrite links in every exported document.

        Args:
            documents: Documents produced by the walk

        Returns:
            Rewrite statistics

        Raises:
            RuntimeError: If the rename table is still open for writes
        """
        if not self.rename_table.frozen:
            raise RuntimeError("Link rewrite requires a frozen rename table; finish the walk first")

        documents = list(documents)
        disable = not self.show_progress or not sys.stdout.isatty()

        for document in tqdm(documents, desc="Rewriting links", unit="doc", disable=disable):
            self.rewrite_document(document)

        self.logger.info(
            f"Rewrote {self.stats['links_rewritten']} link(s) in "
            f"{self.stats['documents_changed']}/{len(documents)} document(s)"
        )
        return self.get_stats()

    def rewrite_document(self, document: ExportedDocument) -> int:
        """
        Rewrite links in one exported document in place.

        Returns:
            Number of links rewritten
        """
        if not self.rename_table.frozen:
            raise RuntimeError("Link rewrite requires a frozen rename table; finish the walk first")

        output_path = document.output_path
        try:
            # newline='' keeps the original line endings intact
            with open(output_path, 'r', encoding='utf-8', newline='') as f:
                text = f.read()
        except FileNotFoundError:
            self.stats['documents_skipped'] += 1
            self.logger.warning(f"Exported document not found, links left unchanged: {output_path}")
            return 0
        except UnicodeDecodeError:
            self.stats['documents_skipped'] += 1
            self.logger.warning(f"Document is not valid UTF-8, links left unchanged: {output_path}")
            return 0

        self.stats['documents'] += 1
        replacements: List[Tuple[int, int, str]] = []

        for link in self.link_parser.parse(text):
            new_target = self._rewrite_target(document, link)
            if new_target is None:
                continue
            start, end = link.span
            if text[start:end] == new_target:
                self.stats['links_unchanged'] += 1
                continue
            replacements.append((start, end, new_target))

        if not replacements:
            return 0

        # Apply from the end so earlier spans stay valid
        for start, end, new_target in reversed(replacements):
            text = text[:start] + new_target + text[end:]

        with open(output_path, 'w', encoding='utf-8', newline='') as f:
            f.write(text)

        self.stats['documents_changed'] += 1
        self.stats['links_rewritten'] += len(replacements)
        self.logger.debug(f"Rewrote {len(replacements)} link(s) in {output_path}")
        return len(replacements)

    def get_stats(self) -> Dict[str, int]:
        """Get rewrite statistics."""
        return self.stats.copy()

    def _rewrite_target(self, document: ExportedDocument, link: LinkReference) -> Optional[str]:
        """Replacement text for the target span of ``link``, or None to leave it."""
        if link.target in document.unresolved:
            self.stats['links_unresolved'] += 1
            return None

        resolved = document.link_map.get(link.target)
        if resolved is None:
            # No exported file backs this link
            self.stats['links_unrecorded'] += 1
            self.logger.debug(f"No walk record for '{link.target}' in {document.output_path}; leaving it")
            return None

        name = self.rename_table.resolve(resolved.name)
        directory = resolved.entry.output_path.parent

        if self.link_style == 'relative':
            path = Path(os.path.relpath(directory / name, document.output_path.parent)).as_posix()
        else:
            path = name

        if self._drop_extension(link) and path.endswith(self.link_parser.document_extension):
            path = path[:-len(self.link_parser.document_extension)]

        if link.encoded:
            path = quote(path, safe='/')

        return path + self._fragment_suffix(link)

    def _drop_extension(self, link: LinkReference) -> bool:
        """Note links written without an extension stay extension-less."""
        if link.kind != LinkKind.NOTE or link.explicit_extension:
            return False
        # Plain markdown renderers need the extension on relative paths
        if self.link_style == 'relative' and link.syntax == LinkSyntax.MARKDOWN:
            return False
        return True

    @staticmethod
    def _fragment_suffix(link: LinkReference) -> str:
        if '#' in link.raw_target:
            return '#' + link.raw_target.partition('#')[2]
        if link.fragment:
            return '#' + (quote(link.fragment) if link.encoded else link.fragment)
        return ''


__all__ = ['LinkRewriter']

"""Link parser for wikilinks and inline markdown links in vault documents."""

import logging
import posixpath
import re
from typing import List, Optional, Tuple
from urllib.parse import unquote

from models import LinkKind, LinkReference, LinkSyntax

MAX_CHARS_BETWEEN_BRACKETS = 1000  # Prevent catastrophic backtracking

URI_SCHEME = r'[A-Za-z][A-Za-z\d+\-.]*://'
OPAQUE_SCHEMES = ('mailto:', 'data:', 'tel:', 'javascript:')


class LinkParser:
    """
    Extracts link references from document text.

    Both ``[[target#heading|alias]]`` wikilinks (optionally embedded with ``!``)
    and ``[text](target)`` markdown links are recognised. Targets carrying a
    URI scheme are ignored, as is anything inside fenced or inline code.
    """

    def __init__(
        self,
        document_extension: str = '.md',
        diagram_extension: Optional[str] = '.excalidraw',
        diagram_raster_suffix: str = '.dark.png',
        logger: Optional[logging.Logger] = None
    ):
        self.logger = logger or logging.getLogger('vault_exporter.parsers.link_parser')
        self.document_extension = document_extension
        self.diagram_extension = diagram_extension
        self.diagram_raster_suffix = diagram_raster_suffix

        self.wikilink_pattern = re.compile(
            r'(!?)\[\[(?!' + URI_SCHEME + r')([^\[\]|\n]{1,' + str(MAX_CHARS_BETWEEN_BRACKETS) + r'})'
            r'(?:\|([^\[\]\n]*))?\]\]'
        )
        self.markdown_link_pattern = re.compile(
            r'(!?)\[([^\[\]\n]{0,' + str(MAX_CHARS_BETWEEN_BRACKETS) + r'})\]'
            r'\((?!' + URI_SCHEME + r')(<[^>\n]*>|[^)\n]*)\)'
        )
        self.fenced_code_pattern = re.compile(r'^([`~]{3,}).*?^\1', re.MULTILINE | re.DOTALL)
        self.inline_code_pattern = re.compile(r'`[^`\n]+`')

    @classmethod
    def from_config(cls, config: dict, logger: Optional[logging.Logger] = None) -> 'LinkParser':
        vault = config.get('vault', {})
        export = config.get('export', {})
        return cls(
            document_extension=vault.get('document_extension', '.md'),
            diagram_extension=export.get('diagram_extension', '.excalidraw'),
            diagram_raster_suffix=export.get('diagram_raster_suffix', '.dark.png'),
            logger=logger
        )

    def parse(self, text: str) -> List[LinkReference]:
        """
        Extract all local links from ``text`` in document order.

        Args:
            text: Document content

        Returns:
            List of classified LinkReference objects
        """
        code_ranges = self._code_ranges(text)
        links: List[LinkReference] = []

        for match in self.wikilink_pattern.finditer(text):
            if self._in_code(match.start(), code_ranges):
                continue
            link = self._from_wikilink(match)
            if link:
                links.append(link)

        for match in self.markdown_link_pattern.finditer(text):
            if self._in_code(match.start(), code_ranges):
                continue
            link = self._from_markdown_link(match)
            if link:
                links.append(link)

        links.sort(key=lambda link: link.span[0])
        self.logger.debug(f"Parsed {len(links)} local link(s)")
        return links

    def classify(self, raw_target: str) -> Optional[Tuple[str, LinkKind, Optional[str], bool]]:
        """
        Decode and classify a raw link target.

        Returns:
            Tuple of (normalized target, kind, fragment, explicit extension),
            or None when nothing local remains after stripping the fragment
        """
        decoded = unquote(raw_target).strip()
        if not decoded or decoded.lower().startswith(OPAQUE_SCHEMES):
            return None

        path, _, fragment = decoded.partition('#')
        path = path.strip()
        if not path:
            return None

        extension = posixpath.splitext(posixpath.basename(path))[1]

        if extension and extension.lower() != self.document_extension.lower():
            if self.diagram_extension and path.lower().endswith(self.diagram_extension.lower()):
                path = path + self.diagram_raster_suffix
            return path, LinkKind.ATTACHMENT, fragment or None, True

        if extension:
            return path, LinkKind.NOTE, fragment or None, True
        return path + self.document_extension, LinkKind.NOTE, fragment or None, False

    def _from_wikilink(self, match: re.Match) -> Optional[LinkReference]:
        raw_target = match.group(2)
        classified = self.classify(raw_target)
        if classified is None:
            return None

        target, kind, fragment, explicit_extension = classified
        return LinkReference(
            raw_target=raw_target,
            target=target,
            kind=kind,
            syntax=LinkSyntax.WIKILINK,
            alias=match.group(3),
            fragment=fragment,
            embed=bool(match.group(1)),
            span=match.span(2),
            explicit_extension=explicit_extension,
            encoded='%' in raw_target
        )

    def _from_markdown_link(self, match: re.Match) -> Optional[LinkReference]:
        destination = match.group(3)
        start = match.start(3)

        if destination.startswith('<') and destination.endswith('>'):
            raw_target = destination[1:-1]
            start += 1
        else:
            # [text](target "Title") keeps only the path part
            stripped = destination.lstrip()
            start += len(destination) - len(stripped)
            raw_target = re.split(r'\s+["\'(]', stripped, maxsplit=1)[0].rstrip()

        classified = self.classify(raw_target)
        if classified is None:
            return None

        target, kind, fragment, explicit_extension = classified
        return LinkReference(
            raw_target=raw_target,
            target=target,
            kind=kind,
            syntax=LinkSyntax.MARKDOWN,
            alias=match.group(2),
            fragment=fragment,
            embed=bool(match.group(1)),
            span=(start, start + len(raw_target)),
            explicit_extension=explicit_extension,
            encoded='%' in raw_target
        )

    def _code_ranges(self, text: str) -> List[Tuple[int, int]]:
        ranges = [m.span() for m in self.fenced_code_pattern.finditer(text)]
        for m in self.inline_code_pattern.finditer(text):
            if not self._in_code(m.start(), ranges):
                ranges.append(m.span())
        return ranges

    @staticmethod
    def _in_code(position: int, ranges: List[Tuple[int, int]]) -> bool:
        return any(start <= position < end for start, end in ranges)


__all__ = ['LinkParser']

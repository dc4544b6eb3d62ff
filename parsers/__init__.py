"""Parsers package for discovering and resolving links inside a vault.

Package Structure:
- link_parser: Extracts wikilinks and markdown links, classifies note vs attachment
- path_resolver: Maps a link target to a file in the vault using shortest-link rules
"""

from .link_parser import LinkParser
from .path_resolver import PathResolver

__all__ = [
    'LinkParser',
    'PathResolver'
]

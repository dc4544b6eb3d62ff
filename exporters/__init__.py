"""Export package for copying a document subgraph out of a vault.

This package walks the document graph reachable from a set of seed documents,
copies every reached note and attachment into a flat output layout, and then
rewrites the links inside the exported documents.

Package Structure:
- dedup_registry: Content-addressed store deciding skip, copy or copy-under-unique-name
- graph_walker: Breadth-first traversal exporting notes and attachments
- link_rewriter: Second pass substituting final output names into links

Key Features:
- At most one physical copy per distinct content
- Retroactive renaming on basename collisions, recorded in a rename table
- Termination on cyclic graphs through a visited set
- Link rewrite only after the walk, once every rename is final

Configuration Referenced:
- export.attachments_directory / export.references_directory: Flat output folders
- export.hash_length: Hex characters used in content-derived names
- export.link_style: 'shortest' or 'relative' rewritten links
"""

from .dedup_registry import DedupRegistry
from .graph_walker import GraphWalker
from .link_rewriter import LinkRewriter

__all__ = [
    'DedupRegistry',
    'GraphWalker',
    'LinkRewriter'
]

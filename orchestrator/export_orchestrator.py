"""
Export orchestrator for coordinating the complete export pipeline.

This module provides the central coordinator that sequences all export phases:
Seed → Walk → Barrier → Rewrite → Report. The walk copies every reachable note
and attachment; the rewrite only starts once the registries and the rename
table are frozen, so renames found late in the walk reach every link.
"""

import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from config_loader import get_nested
from exporters import DedupRegistry, GraphWalker, LinkRewriter
from logger import log_section
from models import ExportedDocument, ExportLayout, LinkKind, RenameTable
from orchestrator.export_report import ExportReport
from parsers import LinkParser, PathResolver


class ExportOrchestrator:
    """Central coordinator sequencing all export phases: Walk → Rewrite → Report."""

    def __init__(self, config: Dict[str, Any], logger: Optional[logging.Logger] = None):
        """
        Initialize export orchestrator.

        Args:
            config: Validated configuration dictionary
            logger: Optional logger instance
        """
        self.config = config
        self.logger = logger or logging.getLogger('vault_exporter.orchestrator.export_orchestrator')

        self.vault_root = Path(get_nested(config, 'vault.root', '.')).resolve()
        self.document_extension = get_nested(config, 'vault.document_extension', '.md')
        self.ignore_directories = set(get_nested(config, 'vault.ignore_directories') or [])

        # Populated by run()
        self.layout: Optional[ExportLayout] = None
        self.rename_table: Optional[RenameTable] = None
        self.notes: Optional[DedupRegistry] = None
        self.attachments: Optional[DedupRegistry] = None
        self.walker: Optional[GraphWalker] = None
        self.rewriter: Optional[LinkRewriter] = None
        self.documents: List[ExportedDocument] = []

    def run(self, input_path: str) -> Dict[str, Any]:
        """
        Export the subgraph reachable from ``input_path``.

        Args:
            input_path: Seed file or folder, absolute or relative to the vault root

        Returns:
            Report dictionary

        Raises:
            FileNotFoundError: If the input does not exist
            ValueError: If the input or output location is invalid
            OSError: On any fatal filesystem failure during the export
        """
        start_time = time.time()

        scope = self.resolve_input(input_path)
        output_root = self.resolve_output_root(scope)
        self._check_locations(scope, output_root)

        self.layout = ExportLayout(
            root=output_root,
            attachments_dir_name=get_nested(self.config, 'export.attachments_directory', 'attachments'),
            references_dir_name=get_nested(self.config, 'export.references_directory', 'references')
        )
        seeds = self.collect_seeds(scope, output_root)
        if not seeds:
            self.logger.warning(f"No '{self.document_extension}' documents found under {scope}")

        self.logger.info(f"Exporting {len(seeds)} seed document(s) from {scope} to {output_root}")
        if output_root.is_dir() and any(output_root.iterdir()):
            self.logger.warning(f"Output directory {output_root} is not empty; existing files may be overwritten")
        output_root.mkdir(parents=True, exist_ok=True)

        self._build_components(output_root)

        log_section("Walk")
        self.documents = self.walker.walk(seeds)

        # Barrier: nothing may be exported or renamed once rewriting starts
        self.notes.freeze()
        self.attachments.freeze()
        self.rename_table.freeze()
        self.logger.info(
            f"Walk finished: {len(self.notes.entries())} note(s), "
            f"{len(self.attachments.entries())} attachment(s), {len(self.rename_table)} rename(s)"
        )

        log_section("Rewrite")
        rewrite_stats = self.rewriter.rewrite_documents(self.documents)

        duration = time.time() - start_time
        stats = {
            'walk': self.walker.get_stats(),
            'notes': self.notes.get_stats(),
            'attachments': self.attachments.get_stats(),
            'resolver': dict(self.walker.path_resolver.stats),
            'rewrite': rewrite_stats,
            'renames': self.rename_table.to_dict(),
            'unresolved': list(self.walker.unresolved),
            'output_directory': str(output_root)
        }

        report_generator = ExportReport(logger=self.logger)
        report = report_generator.generate_report(stats, duration)

        report_path = get_nested(self.config, 'export.report_path')
        if report_path:
            report_generator.export_json_report(report, report_path)

        self.logger.info(f"Export complete in {duration:.2f}s")
        return report

    def resolve_input(self, input_path: str) -> Path:
        """Absolute path of the seed file or folder, which must lie inside the vault."""
        path = Path(os.path.expanduser(input_path))
        if not path.is_absolute():
            path = self.vault_root / path
        path = path.resolve()

        if not path.exists():
            raise FileNotFoundError(f"Input path does not exist: {path}")
        if path != self.vault_root and self.vault_root not in path.parents:
            raise ValueError(f"Input path {path} is outside the vault {self.vault_root}")
        if path.is_file() and path.suffix.lower() != self.document_extension.lower():
            raise ValueError(f"Input file {path} is not a '{self.document_extension}' document")
        return path

    def resolve_output_root(self, scope: Path) -> Path:
        """Configured output directory, or one named after the input under the current directory."""
        configured = get_nested(self.config, 'export.output_directory')
        if configured:
            return Path(os.path.expanduser(configured)).resolve()

        name = scope.name
        if scope.is_file() and name.lower().endswith(self.document_extension.lower()):
            name = name[:-len(self.document_extension)]
        return (Path.cwd() / name).resolve()

    def collect_seeds(self, scope: Path, output_root: Path) -> List[Tuple[Path, Path]]:
        """
        Seed documents and their output paths.

        A single file lands directly in the output root. A folder contributes
        every document in its subtree, keeping paths relative to the folder.
        """
        if scope.is_file():
            return [(scope, output_root / scope.name)]

        seeds = []
        for dirpath, dirnames, filenames in os.walk(scope):
            dirnames[:] = sorted(d for d in dirnames if d not in self.ignore_directories)
            for filename in sorted(filenames):
                if not filename.lower().endswith(self.document_extension.lower()):
                    continue
                source = Path(dirpath) / filename
                seeds.append((source, output_root / source.relative_to(scope)))

        seeds.sort(key=lambda seed: seed[0].relative_to(scope).as_posix())
        return seeds

    def _check_locations(self, scope: Path, output_root: Path) -> None:
        """Refuse outputs that would overwrite or be re-read as input."""
        scope_dir = scope if scope.is_dir() else scope.parent
        if scope.is_dir():
            overlaps = (
                output_root == scope_dir
                or scope_dir in output_root.parents
                or output_root in scope_dir.parents
            )
        else:
            overlaps = output_root == scope or output_root in scope.parents
        if overlaps:
            raise ValueError(
                f"Output directory {output_root} overlaps the input {scope}; choose another --output-dir"
            )

    def _build_components(self, output_root: Path) -> None:
        hash_length = int(get_nested(self.config, 'export.hash_length', 8))

        self.rename_table = RenameTable()
        self.notes = DedupRegistry(
            LinkKind.NOTE,
            self.layout.references_dir,
            self.rename_table,
            hash_length=hash_length
        )
        self.attachments = DedupRegistry(
            LinkKind.ATTACHMENT,
            self.layout.attachments_dir,
            self.rename_table,
            hash_length=hash_length
        )

        link_parser = LinkParser.from_config(self.config)
        path_resolver = PathResolver.from_config(self.config, excluded_paths=[output_root])

        self.walker = GraphWalker(
            link_parser, path_resolver, self.notes, self.attachments, output_root=output_root
        )
        self.rewriter = LinkRewriter(
            self.rename_table,
            link_parser=link_parser,
            link_style=get_nested(self.config, 'export.link_style', 'shortest'),
            show_progress=bool(get_nested(self.config, 'export.progress_bars', True))
        )


__all__ = ['ExportOrchestrator']

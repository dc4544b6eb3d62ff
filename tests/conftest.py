"""Shared fixtures for building small vaults on disk."""

import copy
import hashlib
from pathlib import Path

import pytest

from config_loader import DEFAULT_CONFIG
from exporters import DedupRegistry, GraphWalker, LinkRewriter
from models import ExportLayout, LinkKind, RenameTable
from parsers import LinkParser, PathResolver


def short_hash(data, length=8):
    """Hex prefix of the SHA-256 digest used in content-derived names."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()[:length]


class VaultBuilder:
    """Writes notes and attachments below a vault root."""

    def __init__(self, root: Path):
        self.root = root

    def note(self, relative_path: str, text: str = '') -> Path:
        path = self.root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding='utf-8')
        return path

    def binary(self, relative_path: str, data: bytes) -> Path:
        path = self.root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path


class Pipeline:
    """Walker and rewriter wired together the way the orchestrator does it."""

    def __init__(self, vault_root: Path, output_root: Path, link_style: str = 'shortest'):
        self.layout = ExportLayout(output_root)
        self.rename_table = RenameTable()
        self.notes = DedupRegistry(LinkKind.NOTE, self.layout.references_dir, self.rename_table)
        self.attachments = DedupRegistry(LinkKind.ATTACHMENT, self.layout.attachments_dir, self.rename_table)
        self.parser = LinkParser()
        self.resolver = PathResolver(
            vault_root,
            attachments_dir=vault_root / '_attachments',
            ignore_directories=['.obsidian'],
            excluded_paths=[output_root]
        )
        self.walker = GraphWalker(
            self.parser, self.resolver, self.notes, self.attachments, output_root=output_root
        )
        self.rewriter = LinkRewriter(
            self.rename_table,
            link_parser=self.parser,
            link_style=link_style,
            show_progress=False
        )
        self.documents = []

    def walk(self, *seeds: Path):
        pairs = [(seed, self.layout.root / seed.name) for seed in seeds]
        self.documents = self.walker.walk(pairs)
        return self.documents

    def freeze(self):
        self.notes.freeze()
        self.attachments.freeze()
        self.rename_table.freeze()

    def run(self, *seeds: Path):
        self.walk(*seeds)
        self.freeze()
        self.rewriter.rewrite_documents(self.documents)
        return self.documents

    def document(self, reference: str):
        return next(doc for doc in self.documents if doc.reference == reference)


@pytest.fixture
def vault(tmp_path):
    root = tmp_path / 'vault'
    root.mkdir()
    return VaultBuilder(root.resolve())


@pytest.fixture
def output_root(tmp_path):
    return (tmp_path / 'export').resolve()


@pytest.fixture
def pipeline(vault, output_root):
    return Pipeline(vault.root, output_root)


@pytest.fixture
def make_config(vault, output_root):
    """Build a full configuration pointing at the test vault."""
    def _make(**export_overrides):
        config = copy.deepcopy(DEFAULT_CONFIG)
        config['vault']['root'] = str(vault.root)
        config['export']['output_directory'] = str(output_root)
        config['export']['progress_bars'] = False
        config['export'].update(export_overrides)
        return config
    return _make


def list_files(root: Path):
    """Relative POSIX paths of all files below ``root``."""
    return sorted(p.relative_to(root).as_posix() for p in root.rglob('*') if p.is_file())

"""Tests for shortest-link path resolution."""

from parsers.path_resolver import PathResolver


class TestPathResolver:
    def make_resolver(self, vault, **kwargs):
        kwargs.setdefault('attachments_dir', vault.root / '_attachments')
        kwargs.setdefault('ignore_directories', ['.obsidian', '.git', '.trash'])
        return PathResolver(vault.root, **kwargs)

    def test_bare_name_prefers_attachments_directory(self, vault):
        preferred = vault.binary('_attachments/photo.png', b'a')
        vault.binary('a/photo.png', b'b')
        referrer = vault.note('Index.md')

        resolver = self.make_resolver(vault)

        assert resolver.resolve(referrer, 'photo.png') == preferred
        assert resolver.stats['resolved_attachments_dir'] == 1

    def test_bare_name_falls_back_to_vault_search(self, vault):
        expected = vault.note('a/Note.md', 'a')
        vault.note('b/Note.md', 'b')
        referrer = vault.note('Index.md')

        resolver = self.make_resolver(vault)

        assert resolver.resolve(referrer, 'Note.md') == expected
        assert resolver.stats['resolved_by_search'] == 1

    def test_search_is_depth_first_in_lexicographic_order(self, vault):
        # 'b' sorts before 'n.md', so the nested file is found first
        nested = vault.note('a/b/n.md', 'nested')
        vault.note('a/n.md', 'shallow')
        referrer = vault.note('Index.md')

        resolver = self.make_resolver(vault)

        assert resolver.resolve(referrer, 'n.md') == nested

    def test_search_is_independent_of_creation_order(self, vault):
        vault.note('z/Note.md', 'z')
        first = vault.note('m/Note.md', 'm')
        referrer = vault.note('Index.md')

        assert self.make_resolver(vault).resolve(referrer, 'Note.md') == first

    def test_ignored_directories_are_not_searched(self, vault):
        vault.note('.obsidian/Hidden.md', 'x')
        referrer = vault.note('Index.md')

        resolver = self.make_resolver(vault)

        assert resolver.resolve(referrer, 'Hidden.md') is None
        assert resolver.stats['not_found'] == 1

    def test_excluded_paths_are_not_searched(self, vault):
        vault.note('export/references/Copied.md', 'x')
        referrer = vault.note('Index.md')

        resolver = self.make_resolver(vault, excluded_paths=[vault.root / 'export'])

        assert resolver.resolve(referrer, 'Copied.md') is None

    def test_relative_targets_resolve_from_referrer(self, vault):
        image = vault.binary('img/photo.png', b'p')
        sibling = vault.note('notes/Sibling.md')
        referrer = vault.note('notes/Other.md')

        resolver = self.make_resolver(vault)

        assert resolver.resolve(referrer, '../img/photo.png') == image
        assert resolver.resolve(referrer, './Sibling.md') == sibling

    def test_path_targets_resolve_from_vault_root(self, vault):
        image = vault.binary('img/photo.png', b'p')
        referrer = vault.note('notes/deep/Other.md')

        resolver = self.make_resolver(vault)

        assert resolver.resolve(referrer, 'img/photo.png') == image
        assert resolver.resolve(referrer, '/img/photo.png') == image
        assert resolver.resolve(referrer, 'img/missing.png') is None

    def test_directories_never_match(self, vault):
        (vault.root / 'folder.png').mkdir()
        referrer = vault.note('Index.md')

        assert self.make_resolver(vault).resolve(referrer, 'folder.png') is None

    def test_targets_escaping_the_vault_are_not_found(self, vault):
        (vault.root.parent / 'secret.txt').write_text('outside', encoding='utf-8')
        referrer = vault.note('Index.md')
        nested = vault.note('x/Note.md')

        resolver = self.make_resolver(vault)

        assert resolver.resolve(referrer, '../secret.txt') is None
        assert resolver.resolve(nested, '../../secret.txt') is None
        assert resolver.resolve(referrer, 'x/../../secret.txt') is None
        assert resolver.resolve(referrer, '/../secret.txt') is None
        assert resolver.stats['outside_vault'] == 4
        assert resolver.stats['not_found'] == 4

    def test_vault_relative(self, vault, tmp_path):
        resolver = self.make_resolver(vault)

        assert resolver.vault_relative(vault.root / 'a' / 'b.md') == 'a/b.md'
        assert resolver.vault_relative(tmp_path / 'elsewhere.md') is None

    def test_from_config(self, vault, make_config):
        image = vault.binary('_attachments/photo.png', b'p')
        referrer = vault.note('Index.md')

        resolver = PathResolver.from_config(make_config())

        assert resolver.resolve(referrer, 'photo.png') == image

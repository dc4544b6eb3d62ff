"""Tests for the post-walk link rewrite pass."""

import pytest

from conftest import Pipeline, short_hash
from exporters import LinkRewriter


def read(path):
    return path.read_text(encoding='utf-8')


class TestLinkRewriter:
    def test_requires_frozen_rename_table(self, vault, pipeline):
        seed = vault.note('Index.md', '[[B]]')
        vault.note('B.md', 'leaf')
        documents = pipeline.walk(seed)

        with pytest.raises(RuntimeError):
            pipeline.rewriter.rewrite_documents(documents)

    def test_flattened_names_keep_alias_and_fragment(self, vault, pipeline, output_root):
        seed = vault.note(
            'Index.md',
            'See [[sub/Other Note|alias]], [[sub/Other Note#Heading|there]] and ![[Diagram.excalidraw]]'
        )
        vault.note('sub/Other Note.md', 'leaf')
        vault.binary('_attachments/Diagram.excalidraw.dark.png', b'png')

        pipeline.run(seed)

        assert read(output_root / 'Index.md') == (
            'See [[Other Note|alias]], [[Other Note#Heading|there]] and ![[Diagram.excalidraw.dark.png]]'
        )

    def test_late_rename_reaches_early_link(self, vault, pipeline, output_root):
        seed = vault.note('Index.md', '![[a/photo.png]] then [[B]]')
        vault.note('B.md', '![[b/photo.png]]')
        vault.binary('a/photo.png', b'first')
        vault.binary('b/photo.png', b'second')

        pipeline.run(seed)

        first_name = f"photo_{short_hash(b'first')}.png"
        second_name = f"photo_{short_hash(b'second')}.png"
        assert read(output_root / 'Index.md') == f'![[{first_name}]] then [[B]]'
        assert read(output_root / 'references' / 'B.md') == f'![[{second_name}]]'
        assert (output_root / 'attachments' / first_name).read_bytes() == b'first'

    def test_renamed_note_links_stay_extensionless(self, vault, pipeline, output_root):
        seed = vault.note('Index.md', '[[x/Topic]] and [[y/Topic|other]]')
        vault.note('x/Topic.md', 'one')
        vault.note('y/Topic.md', 'two')

        pipeline.run(seed)

        assert read(output_root / 'Index.md') == (
            f"[[Topic_{short_hash('one')}]] and [[Topic_{short_hash('two')}|other]]"
        )

    def test_percent_encoded_targets_are_reencoded(self, vault, pipeline, output_root):
        seed = vault.note('Index.md', '[read](notes/My%20Note.md#Part%20Two)')
        vault.note('notes/My Note.md', 'leaf')

        pipeline.run(seed)

        assert read(output_root / 'Index.md') == '[read](My%20Note.md#Part%20Two)'

    def test_unresolved_and_code_links_are_untouched(self, vault, pipeline, output_root):
        text = '[[Missing|m]] and `[[deep/B]]` and [[deep/B]]'
        seed = vault.note('Index.md', text)
        vault.note('deep/B.md', 'leaf')

        pipeline.run(seed)

        assert read(output_root / 'Index.md') == '[[Missing|m]] and `[[deep/B]]` and [[B]]'
        assert pipeline.rewriter.get_stats()['links_unresolved'] == 1

    def test_bare_links_already_match_and_are_left_alone(self, vault, pipeline, output_root):
        seed = vault.note('Index.md', '[[B]] ![[photo.png]]')
        vault.note('B.md', 'leaf')
        vault.binary('_attachments/photo.png', b'p')

        pipeline.run(seed)

        stats = pipeline.rewriter.get_stats()
        assert stats['links_rewritten'] == 0
        assert stats['links_unchanged'] == 2
        assert read(output_root / 'Index.md') == '[[B]] ![[photo.png]]'

    def test_relative_style(self, vault, output_root):
        pipeline = Pipeline(vault.root, output_root, link_style='relative')
        seed = vault.note('Index.md', '![](img/p.png) [[notes/B]]')
        vault.note('notes/B.md', '![[p.png]] [back](../Index.md) [[Index]]')
        vault.binary('img/p.png', b'p')

        pipeline.run(seed)

        assert read(output_root / 'Index.md') == '![](attachments/p.png) [[references/B]]'
        assert read(output_root / 'references' / 'B.md') == (
            '![[../attachments/p.png]] [back](../Index.md) [[../Index]]'
        )

    def test_crlf_line_endings_are_preserved(self, vault, pipeline, output_root):
        seed = vault.binary('Index.md', b'[[deep/B]]\r\nnext line\r\n')
        vault.note('deep/B.md', 'leaf')

        pipeline.run(seed)

        assert (output_root / 'Index.md').read_bytes() == b'[[B]]\r\nnext line\r\n'

    def test_invalid_utf8_document_is_skipped(self, vault, pipeline, output_root, caplog):
        seed = vault.binary('Index.md', b'[[deep/B]] \xff\xfe')
        vault.note('deep/B.md', 'leaf')

        pipeline.run(seed)

        assert (output_root / 'Index.md').read_bytes() == b'[[deep/B]] \xff\xfe'
        assert pipeline.rewriter.get_stats()['documents_skipped'] == 1
        assert 'not valid UTF-8' in caplog.text

    def test_document_lost_mid_walk_keeps_its_links(self, vault, pipeline, output_root, monkeypatch):
        seed = vault.note('Index.md', '[[deep/B]] ![[img/p.png]]')
        vault.note('deep/B.md', 'leaf')
        vault.binary('img/p.png', b'p')

        pin = pipeline.notes.pin

        def pin_then_lose_source(resolved, output_path, reference):
            outcome = pin(resolved, output_path, reference)
            resolved.path.unlink()
            return outcome

        monkeypatch.setattr(pipeline.notes, 'pin', pin_then_lose_source)

        pipeline.run(seed)

        assert read(output_root / 'Index.md') == '[[deep/B]] ![[img/p.png]]'
        assert not (output_root / 'references').exists()
        stats = pipeline.rewriter.get_stats()
        assert stats['links_unrecorded'] == 2
        assert stats['links_rewritten'] == 0

    def test_unknown_link_style_is_rejected(self, pipeline):
        with pytest.raises(ValueError):
            LinkRewriter(pipeline.rename_table, link_style='absolute')

"""Tests for graph traversal, visited-set handling and placement."""

import logging

from conftest import list_files, short_hash
from models import LinkKind


class TestGraphWalker:
    def test_cycle_terminates_with_each_note_once(self, vault, pipeline, output_root):
        seed = vault.note('A.md', 'Go to [[B]]')
        vault.note('notes/B.md', 'Back to [[A]]')

        documents = pipeline.walk(seed)

        assert [doc.reference for doc in documents] == ['A.md', 'notes/B.md']
        assert list_files(output_root) == ['A.md', 'references/B.md']

        back_link = pipeline.document('notes/B.md').link_map['A.md']
        assert back_link.entry.pinned
        assert back_link.entry.output_path == output_root / 'A.md'

    def test_self_link_does_not_requeue(self, vault, pipeline):
        seed = vault.note('A.md', 'I am [[A]]')

        documents = pipeline.walk(seed)

        assert len(documents) == 1
        assert documents[0].link_map['A.md'].entry is documents[0].entry

    def test_same_target_with_different_aliases_is_processed_once(self, vault, pipeline):
        seed = vault.note('Index.md', '[[B|one]] and [[B|two]] and [[B#Heading]]')
        vault.note('B.md', 'leaf')

        documents = pipeline.walk(seed)

        assert len(documents) == 2
        assert pipeline.walker.get_stats()['note_links'] == 1

    def test_differently_spelled_targets_share_one_export(self, vault, pipeline, output_root):
        seed = vault.note('Index.md', '[[B]] and [[sub/B]] and [[sub/B.md|B]]')
        vault.note('sub/B.md', 'leaf')

        documents = pipeline.walk(seed)

        assert len(documents) == 2
        assert list_files(output_root / 'references') == ['B.md']
        links = pipeline.document('Index.md').link_map
        assert links['B.md'].entry is links['sub/B.md'].entry

    def test_relative_targets_are_anchored_to_their_folder(self, vault, pipeline, output_root):
        seed = vault.note('Index.md', '[[x/A]] [[y/A]]')
        vault.note('x/A.md', '[[./N]] from x')
        vault.note('y/A.md', '[[./N]] from y')
        vault.note('x/N.md', 'north')
        vault.note('y/N.md', 'south')

        pipeline.walk(seed)

        references = list_files(output_root / 'references')
        assert f"N_{short_hash('north')}.md" in references
        assert f"N_{short_hash('south')}.md" in references
        assert len(references) == 4
        assert pipeline.walker.visited >= {'x/N.md', 'y/N.md'}

    def test_attachments_are_flattened_and_deduplicated(self, vault, pipeline, output_root):
        seed = vault.note('Index.md', '![[a/photo.png]] [[B]]')
        vault.note('notes/B.md', '![](../b/copy.png)')
        vault.binary('a/photo.png', b'pixels')
        vault.binary('b/copy.png', b'pixels')

        pipeline.walk(seed)

        assert list_files(output_root / 'attachments') == ['photo.png']
        copy_link = pipeline.document('notes/B.md').link_map['../b/copy.png']
        assert copy_link.kind == LinkKind.ATTACHMENT
        assert copy_link.name == 'photo.png'

    def test_duplicate_notes_are_not_walked_twice(self, vault, pipeline, output_root):
        seed = vault.note('Index.md', '[[one/Copy]] [[two/Copy]]')
        vault.note('one/Copy.md', '![[only-from-copy.png]]')
        vault.note('two/Copy.md', '![[only-from-copy.png]]')
        vault.binary('only-from-copy.png', b'x')

        documents = pipeline.walk(seed)

        assert len(documents) == 2
        assert list_files(output_root / 'references') == ['Copy.md']
        assert pipeline.notes.get_stats()['deduplicated'] == 1

    def test_unresolved_links_are_recorded_and_warned(self, vault, pipeline, caplog):
        seed = vault.note('Index.md', '[[Missing]] and ![[gone.png]] and [[Missing|again]]')

        with caplog.at_level(logging.WARNING):
            documents = pipeline.walk(seed)

        assert documents[0].unresolved == ['Missing.md', 'gone.png']
        assert pipeline.walker.unresolved == [('Index.md', 'Missing.md'), ('Index.md', 'gone.png')]
        assert "Note not found: 'Missing.md'" in caplog.text
        assert "Attachment not found: 'gone.png'" in caplog.text

    def test_unresolved_target_is_remembered_across_documents(self, vault, pipeline):
        seed = vault.note('Index.md', '[[Missing]] [[B]]')
        vault.note('B.md', '[[Missing]]')

        pipeline.walk(seed)

        assert pipeline.document('B.md').unresolved == ['Missing.md']
        assert pipeline.walker.get_stats()['unresolved_notes'] == 2

    def test_links_between_seeds_use_the_seed_copies(self, vault, pipeline, output_root):
        first = vault.note('A.md', '[[B]]')
        second = vault.note('B.md', '[[A]]')

        documents = pipeline.walk(first, second)

        assert [doc.is_seed for doc in documents] == [True, True]
        assert list_files(output_root) == ['A.md', 'B.md']
        assert pipeline.document('A.md').link_map['B.md'].entry.pinned

    def test_queue_is_breadth_first(self, vault, pipeline):
        seed = vault.note('Index.md', '[[A]] [[B]]')
        vault.note('A.md', '[[A1]]')
        vault.note('B.md', 'leaf b')
        vault.note('A1.md', 'leaf a1')

        documents = pipeline.walk(seed)

        assert [doc.reference for doc in documents] == ['Index.md', 'A.md', 'B.md', 'A1.md']

"""Tests for link and association inheritance."""
import pytest

from bulk_ingest.exceptions import ForestError
from bulk_ingest.models import Node, NodeKind, TempId
from bulk_ingest.tree import Forest, InheritanceResolver, TreeBuilder, batch_assign


@pytest.fixture
def tree(make_payload):
    """A(link) / B / b.png, plus root file r.png."""
    builder = TreeBuilder(Forest())
    a = builder.add_folder("A", link="https://drive.test/A")
    b = builder.add_folder("B", a.temp_id)
    image = builder.add_file("b", make_payload("b.png"), b.temp_id)
    root_file = builder.add_file("r", make_payload("r.png"))
    return builder.forest, a, b, image, root_file


class TestInheritanceResolver:
    def test_nearest_ancestor_wins(self, tree):
        forest, a, b, image, _ = tree
        resolver = InheritanceResolver(forest)
        assert resolver.resolve(image, "link") == "https://drive.test/A"
        assert resolver.inherited_from(image, "link") is a

        b.link = "https://drive.test/B"
        assert resolver.resolve(image, "link") == "https://drive.test/B"

        image.link = "https://drive.test/b.png"
        assert resolver.resolve(image, "link") == "https://drive.test/b.png"

    def test_empty_when_no_ancestor_has_value(self, tree):
        forest, _, _, image, root_file = tree
        resolver = InheritanceResolver(forest)
        assert resolver.resolve(root_file, "link") == ""
        assert resolver.resolve(image, "association") is None

    def test_blank_string_does_not_count(self, tree):
        forest, _, b, image, _ = tree
        b.link = "   "
        assert InheritanceResolver(forest).resolve(image, "link") == "https://drive.test/A"

    def test_resolve_does_not_mutate(self, tree):
        forest, _, b, image, _ = tree
        InheritanceResolver(forest).resolve(image, "link")
        assert image.link == ""
        assert b.link == ""

    def test_cycle_resolves_to_empty(self):
        forest = Forest(max_depth=10)
        a = forest.add(Node(TempId("a"), "A", NodeKind.FOLDER))
        b = forest.add(Node(TempId("b"), "B", NodeKind.FOLDER, parent_temp_id=a.temp_id))
        a.parent_temp_id = b.temp_id

        resolver = InheritanceResolver(forest)
        assert resolver.resolve(a, "link") == ""
        assert resolver.resolve(b, "association") is None

    def test_unknown_attribute(self, tree):
        forest, a, *_ = tree
        with pytest.raises(ValueError):
            InheritanceResolver(forest).resolve(a, "name")


class TestBatchAssign:
    def test_assigns_folder_and_descendants(self, tree):
        forest, a, b, image, root_file = tree
        updated = batch_assign(forest, a.temp_id, "item-7")

        assert {n.temp_id for n in updated} == {a.temp_id, b.temp_id, image.temp_id}
        assert a.association == b.association == image.association == "item-7"
        assert root_file.association is None

    def test_overwrites_and_clears(self, tree):
        forest, a, b, image, _ = tree
        image.association = "own"
        batch_assign(forest, b.temp_id, "item-1")
        assert image.association == "item-1"
        assert a.association is None

        batch_assign(forest, b.temp_id, None)
        assert image.association is None

    def test_rejects_file(self, tree):
        forest, _, _, image, _ = tree
        with pytest.raises(ForestError, match="not a folder"):
            batch_assign(forest, image.temp_id, "item-1")

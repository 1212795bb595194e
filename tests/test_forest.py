"""Tests for the forest container and tree builder."""
import re

import pytest

from bulk_ingest.exceptions import ForestError
from bulk_ingest.models import ErrorCode, Node, NodeKind, TempId
from bulk_ingest.tree import Forest, TreeBuilder, generate_temp_id


@pytest.fixture
def builder():
    return TreeBuilder(Forest(max_depth=10))


class TestTreeBuilder:
    def test_temp_id_format(self):
        temp_id = generate_temp_id(clock=lambda: 1700000000.123)
        assert re.fullmatch(r"temp-1700000000123-[0-9a-z]{9}", temp_id.value)

    def test_ids_are_unique(self, builder):
        root = builder.add_folder("A")
        ids = {root.temp_id}
        for i in range(50):
            ids.add(builder.add_folder(f"F{i}", root.temp_id).temp_id)
        assert len(ids) == 51

    def test_collision_is_regenerated(self):
        issued = iter([TempId("same"), TempId("same"), TempId("other")])
        builder = TreeBuilder(id_factory=lambda: next(issued))
        first = builder.add_folder("A")
        second = builder.add_folder("B")
        assert first.temp_id == TempId("same")
        assert second.temp_id == TempId("other")

    def test_folder_starts_with_link_error(self, builder):
        folder = builder.add_folder("A")
        assert folder.errors == {"link": ErrorCode.REQUIRED}
        assert folder.expanded is True

    def test_folder_with_link_has_no_error(self, builder):
        assert builder.add_folder("A", link="https://drive.test/a").errors == {}

    def test_file_under_folder(self, builder, make_payload):
        folder = builder.add_folder("A")
        file_node = builder.add_file("a", make_payload("a.png"), folder.temp_id)
        assert file_node.parent_temp_id == folder.temp_id
        assert file_node.kind is NodeKind.FILE
        assert builder.build().children_of(folder.temp_id) == [file_node]


class TestForest:
    def test_add_rejects_duplicate_and_bad_parent(self, builder, make_payload):
        forest = builder.forest
        folder = builder.add_folder("A")
        with pytest.raises(ForestError, match="Duplicate"):
            forest.add(Node(folder.temp_id, "again", NodeKind.FOLDER))
        with pytest.raises(ForestError, match="not found"):
            forest.add(Node(TempId("x"), "x", NodeKind.FOLDER, parent_temp_id=TempId("missing")))

        file_node = builder.add_file("a", make_payload("a.png"))
        with pytest.raises(ForestError, match="is a file"):
            builder.add_folder("B", file_node.temp_id)

    def test_depth_and_height(self, builder):
        a = builder.add_folder("A")
        b = builder.add_folder("B", a.temp_id)
        c = builder.add_folder("C", b.temp_id)
        forest = builder.forest
        assert forest.depth_of(a.temp_id) == 0
        assert forest.depth_of(c.temp_id) == 2
        assert forest.height() == 3
        assert Forest().height() == 0

    def test_descendants_parents_first(self, builder, make_payload):
        a = builder.add_folder("A")
        b = builder.add_folder("B", a.temp_id)
        f1 = builder.add_file("f1", make_payload("f1.png"), b.temp_id)
        f2 = builder.add_file("f2", make_payload("f2.png"), a.temp_id)
        names = [n.name for n in builder.forest.descendants(a.temp_id)]
        assert names == ["B", "f1", "f2"]
        assert f1.temp_id in builder.forest and f2.temp_id in builder.forest

    def test_remove_is_recursive_and_releases_payloads(self, builder, make_payload):
        a = builder.add_folder("A")
        b = builder.add_folder("B", a.temp_id)
        p1, p2 = make_payload("f1.png"), make_payload("f2.png")
        builder.add_file("f1", p1, b.temp_id)
        keep = builder.add_file("f2", p2)

        removed = builder.forest.remove(a.temp_id)

        assert len(removed) == 3
        assert list(builder.forest) == [keep]
        assert p1.released is True
        assert p2.released is False

    def test_move(self, builder, make_payload):
        a = builder.add_folder("A")
        b = builder.add_folder("B")
        f = builder.add_file("f", make_payload("f.png"))
        forest = builder.forest

        forest.move(b.temp_id, a.temp_id)
        assert b.parent_temp_id == a.temp_id

        with pytest.raises(ForestError, match="own parent"):
            forest.move(a.temp_id, a.temp_id)
        with pytest.raises(ForestError, match="descendants"):
            forest.move(a.temp_id, b.temp_id)
        with pytest.raises(ForestError, match="is a file"):
            forest.move(b.temp_id, f.temp_id)

        forest.move(b.temp_id, None)
        assert b.parent_temp_id is None

    def test_move_respects_depth_limit(self):
        builder = TreeBuilder(Forest(max_depth=3))
        a = builder.add_folder("A")
        b = builder.add_folder("B", a.temp_id)
        c = builder.add_folder("C", b.temp_id)
        d = builder.add_folder("D")
        builder.add_folder("E", d.temp_id)

        with pytest.raises(ForestError, match="depth"):
            builder.forest.move(d.temp_id, c.temp_id)
        with pytest.raises(ForestError, match="depth"):
            builder.forest.move(d.temp_id, b.temp_id)
        builder.forest.move(d.temp_id, a.temp_id)
        assert builder.forest.depth_of(d.temp_id) == 1

    def test_expand_collapse_and_stats(self, builder, make_payload):
        a = builder.add_folder("A")
        builder.add_file("f", make_payload("f.png"), a.temp_id)
        forest = builder.forest

        assert forest.toggle_expanded(a.temp_id) is False
        forest.expand_all()
        assert a.expanded is True
        forest.collapse_all()
        assert a.expanded is False
        assert forest.stats() == {"folders": 1, "files": 1, "errors": 1}

    def test_clear_releases_once(self, builder, make_payload):
        payload = make_payload("f.png")
        builder.add_file("f", payload)
        assert builder.forest.release_payloads() == 1
        assert builder.forest.release_payloads() == 0
        builder.forest.clear()
        assert len(builder.forest) == 0

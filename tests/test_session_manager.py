"""Tests for the server-side view session."""

import pytest

from schemagraph.config import DiagramSettings
from schemagraph.models import NodeKind, Position, Size
from schemagraph_server.session_manager import SessionManager


@pytest.fixture
def session() -> SessionManager:
    return SessionManager(settings=DiagramSettings())


@pytest.fixture
def loaded(session, person_schema) -> SessionManager:
    session.load_document(person_schema, {"root": "expanded"})
    return session


class TestLoadDocument:
    """Tests for load_document()."""

    def test_empty_state(self, session):
        assert not session.has_document
        assert session.get_state() == {"loaded": False, "diagram": None}

    def test_load(self, loaded):
        state = loaded.get_state()
        assert state["loaded"]
        assert state["visibility"] == {"root": "expanded"}
        assert not state["can_undo"]
        ids = {n["id"] for n in state["diagram"]["nodes"]}
        assert "schema-property:root.properties.name" in ids

    def test_document_is_copied(self, session, person_schema):
        session.load_document(person_schema, {"root": "expanded"})
        person_schema["properties"]["extra"] = {"type": "string"}
        assert session.get_graph().get_node("schema-property:root.properties.extra") is None

    def test_boolean_visibility_normalized(self, session, person_schema):
        session.load_document(person_schema, {"root": False, "root.properties": True})
        assert session.visibility == {"root": "expanded", "root.properties": "collapsed"}

    def test_load_clears_history(self, loaded, person_schema):
        loaded.toggle_collapse("root", True)
        loaded.load_document(person_schema)
        assert not loaded.can_undo


class TestToggleCollapse:
    """Tests for toggle_collapse() and undo/redo."""

    def test_requires_document(self, session):
        with pytest.raises(ValueError, match="No document loaded"):
            session.toggle_collapse("root", True)

    def test_requires_path(self, loaded):
        with pytest.raises(ValueError, match="Path is required"):
            loaded.toggle_collapse("", True)

    def test_collapse_hides_children(self, loaded):
        visibility = loaded.toggle_collapse("root", True)
        assert visibility["root"] == "collapsed"
        assert [n.id for n in loaded.get_graph().nodes] == ["root"]

    def test_undo_redo(self, loaded):
        loaded.toggle_collapse("root", True)

        assert loaded.undo()
        assert loaded.visibility["root"] == "expanded"
        assert loaded.can_redo

        assert loaded.redo()
        assert loaded.visibility["root"] == "collapsed"
        assert not loaded.redo()

    def test_new_action_clears_redo(self, loaded):
        loaded.toggle_collapse("root", True)
        loaded.undo()
        loaded.toggle_collapse("root.properties.name", False)
        assert not loaded.can_redo

    def test_history_is_bounded(self, person_schema):
        session = SessionManager(settings=DiagramSettings(), max_history=2)
        session.load_document(person_schema)
        for i in range(5):
            session.toggle_collapse("root", i % 2 == 0)
        assert session.undo() and session.undo()
        assert not session.undo()


class TestExpandGroupedEntry:
    """Tests for pulling an entry out of an overflow box."""

    def test_entry_promoted(self, session, wide_schema):
        session.load_document(wide_schema, {"root": "expanded"})

        path = session.expand_grouped_entry("grouped-overflow:root.properties", "p6")

        assert path == "root.properties.p6"
        labels = [n.label for n in session.get_graph().nodes_of_kind(NodeKind.SCHEMA_PROPERTY)]
        assert "p6" in labels

    def test_unknown_group(self, session, wide_schema):
        session.load_document(wide_schema, {"root": "expanded"})
        with pytest.raises(ValueError, match="Grouped node not found"):
            session.expand_grouped_entry("grouped-overflow:nope", "p6")

    def test_unknown_entry(self, session, wide_schema):
        session.load_document(wide_schema, {"root": "expanded"})
        with pytest.raises(ValueError, match="not found in"):
            session.expand_grouped_entry("grouped-overflow:root.properties", "p0")


class TestAnnotations:
    def test_add(self, loaded):
        note = loaded.add_annotation("schema-property:root.properties.name", "ana", "  needs a pattern ")
        assert note["text"] == "needs a pattern"
        assert note["source_path"] == "root.properties.name"
        assert loaded.annotations == [note]

        loaded.undo()
        assert loaded.annotations == []

    def test_anonymous_author(self, loaded):
        assert loaded.add_annotation("root", "", "hello")["author"] == "anonymous"

    def test_rejects_empty_text_and_unknown_node(self, loaded):
        with pytest.raises(ValueError):
            loaded.add_annotation("root", "ana", "   ")
        with pytest.raises(ValueError, match="Node not found"):
            loaded.add_annotation("missing", "ana", "text")


class TestPositions:
    """Tests for dragged positions and measured sizes."""

    def test_move_pins_node(self, loaded):
        node = loaded.move_node("schema-property:root.properties.age", 500, 600)
        assert node.anchored
        assert node.position == Position(x=500, y=600)
        assert loaded.get_state()["pinned"] == ["schema-property:root.properties.age"]

    def test_move_unknown_node(self, loaded):
        with pytest.raises(ValueError, match="Node not found"):
            loaded.move_node("missing", 0, 0)

    def test_reset(self, loaded):
        loaded.move_node("root", 10, 10)
        assert loaded.reset_positions() == 1
        assert not loaded.get_graph().get_node("root").anchored
        assert loaded.reset_positions() == 0

    def test_measured_not_in_history(self, loaded):
        loaded.set_measured({"root": Size(width=333, height=80)})
        assert loaded.get_graph().get_node("root").measured == Size(width=333, height=80)
        assert not loaded.can_undo


class TestSettingsAndCallbacks:
    def test_update_settings(self, loaded):
        settings = loaded.update_settings({"compile": {"max_depth": 1}})
        assert settings.compile.max_depth == 1
        assert loaded.settings.compile.max_depth == 1

    def test_invalid_settings(self, loaded):
        with pytest.raises(ValueError):
            loaded.update_settings({"collision": {"damping": 2}})

    def test_on_change_called_once_per_mutation(self, loaded):
        calls = []
        callback = lambda: calls.append(1)
        loaded.on_change(callback)
        loaded.on_change(callback)

        loaded.toggle_collapse("root", True)
        loaded.undo()
        assert len(calls) == 2

    def test_failed_mutation_does_not_notify(self, loaded):
        calls = []
        loaded.on_change(lambda: calls.append(1))
        with pytest.raises(ValueError):
            loaded.move_node("missing", 0, 0)
        assert calls == []


class TestAnimationFrame:
    """Tests for host-driven transitions between layouts."""

    AGE = "schema-property:root.properties.age"

    def test_first_frame_is_the_layout(self, loaded):
        frame = loaded.animation_frame(0)
        assert frame[self.AGE] == loaded.get_graph().get_node(self.AGE).position

    def test_transition_after_move(self, loaded):
        before = loaded.animation_frame(0)[self.AGE]
        loaded.move_node(self.AGE, before.x + 300, before.y)

        assert loaded.animation_frame(1000)[self.AGE] == before
        assert before.x < loaded.animation_frame(1150)[self.AGE].x < before.x + 300
        assert loaded.animation_frame(1300)[self.AGE] == Position(x=before.x + 300, y=before.y)

    def test_duration_comes_from_settings(self, loaded):
        loaded.update_settings({"collision": {"animation_duration": 0}})
        before = loaded.animation_frame(0)[self.AGE]
        loaded.move_node(self.AGE, before.x + 300, before.y)

        assert loaded.animation_frame(1)[self.AGE] == Position(x=before.x + 300, y=before.y)

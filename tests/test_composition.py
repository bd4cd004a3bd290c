"""Tests for the composition manager."""

import pytest

from block_canvas import ingest_document
from block_canvas.errors import DragSessionError, UnknownSystemError
from block_canvas.models import NodeKind, Position


def _wide_document(columns):
    return {"HighBlocks": [
        {"HighBlockName": f"H{i}", "IntermediateBlocks": [{"GranularBlocks": [{"ID": i}]}]}
        for i in range(columns)
    ]}


def _tall_document(rows):
    return {"HighBlocks": [
        {"HighBlockName": "Tall", "IntermediateBlocks": [
            {"GranularBlocks": [{"ID": i} for i in range(rows)]}
        ]}
    ]}


@pytest.fixture
def three_systems(manager, compute_document, pipeline_document):
    loaded = [
        ingest_document(manager, compute_document).system,
        ingest_document(manager, pipeline_document).system,
        ingest_document(manager, compute_document).system,
    ]
    return loaded


class TestPlacement:
    """Tests for default placement of new systems."""

    def test_first_system_at_start(self, manager):
        assert manager.next_origin() == Position(x=50, y=50)

    def test_stacks_below_lowest(self, manager, compute_document):
        first = ingest_document(manager, compute_document).system
        assert manager.next_origin() == Position(x=50, y=first.bottom + 200)

    def test_sequential_loads_never_overlap_vertically(self, three_systems):
        for upper, lower in zip(three_systems, three_systems[1:]):
            assert lower.origin.y >= upper.origin.y + upper.size.height
            assert lower.origin.x == 50

    def test_stacks_below_moved_system(self, manager, compute_document):
        first = ingest_document(manager, compute_document).system
        manager.reposition(first.id, Position(x=900, y=3000))
        assert manager.next_origin() == Position(x=50, y=3000 + first.size.height + 200)


class TestCanvasSize:
    """Tests for derived canvas bounds."""

    def test_empty_canvas_minimum(self, manager):
        size = manager.canvas_size()
        assert (size.width, size.height) == (2000, 2000)

    def test_small_system_keeps_minimum(self, manager, compute_document):
        ingest_document(manager, compute_document)
        size = manager.canvas_size()
        assert (size.width, size.height) == (2000, 2000)

    def test_grows_with_wide_system(self, manager):
        system = ingest_document(manager, _wide_document(5)).system
        # 50 + 5*430 + 4*150 + 50 = 2850
        assert system.size.width == 2850
        assert manager.canvas_size().width == 50 + 2850 + 200

    def test_grows_with_tall_system(self, manager):
        system = ingest_document(manager, _tall_document(20)).system
        assert manager.canvas_size().height == system.bottom + 200

    def test_shrinks_after_removing_largest(self, manager, compute_document):
        ingest_document(manager, compute_document)
        wide = ingest_document(manager, _wide_document(5)).system
        assert manager.canvas_size().width > 2000
        manager.remove(wide.id)
        assert manager.canvas_size().width == 2000

    def test_follows_reposition(self, manager, compute_document):
        system = ingest_document(manager, compute_document).system
        manager.reposition(system.id, Position(x=4000, y=50))
        assert manager.canvas_size().width == 4000 + system.size.width + 200


class TestRemoval:
    """Tests for removing systems."""

    def test_removes_all_namespaced_elements(self, manager, three_systems):
        middle = three_systems[1]
        manager.remove(middle.id)
        view = manager.view()
        assert all(n.payload.get("systemId") != middle.id for n in view.nodes)
        assert not any(n.id.startswith(f"{middle.id}-") for n in view.nodes)
        assert not any(e.id.startswith(f"{middle.id}-") for e in view.edges)

    def test_remaining_origins_unchanged(self, manager, three_systems):
        before = {s.id: s.origin for s in three_systems}
        manager.remove(three_systems[1].id)
        for system in manager.systems:
            assert system.origin == before[system.id]

    def test_unknown_id(self, manager):
        with pytest.raises(UnknownSystemError):
            manager.remove("nope")

    def test_removal_handle_removes_own_system(self, manager, three_systems):
        target = three_systems[2]
        target.removal()
        assert target.id not in manager
        assert len(manager) == 2

    def test_trigger_removal_from_control_node(self, manager, three_systems):
        target = three_systems[0]
        control = next(n for n in target.nodes if n.kind == NodeKind.REMOVAL_CONTROL)
        manager.trigger_removal(control.id)
        assert target.id not in manager

    def test_trigger_removal_rejects_other_nodes(self, manager, three_systems):
        with pytest.raises(ValueError):
            manager.trigger_removal(three_systems[0].envelope_id)


class TestMergedView:
    """Tests for the merged node/edge output."""

    def test_concatenation_in_registry_order(self, manager, three_systems):
        view = manager.view()
        expected_nodes = [n.id for s in three_systems for n in s.nodes]
        expected_edges = [e.id for s in three_systems for e in s.edges]
        assert [n.id for n in view.nodes] == expected_nodes
        assert [e.id for e in view.edges] == expected_edges

    def test_ids_unique_across_systems(self, manager, three_systems):
        view = manager.view()
        ids = [n.id for n in view.nodes] + [e.id for e in view.edges]
        assert len(ids) == len(set(ids))

    def test_reposition_moves_only_envelope(self, manager, three_systems):
        system = three_systems[0]
        before = {n.id: n for n in manager.view().nodes}
        manager.reposition(system.id, Position(x=3000, y=75))
        after = {n.id: n for n in manager.view().nodes}

        envelope = after[system.envelope_id]
        assert (envelope.position.x, envelope.position.y) == (3000, 75)
        for node_id, node in after.items():
            if node_id != system.envelope_id:
                assert node == before[node_id]

    def test_view_envelope_is_detached_from_registry(self, manager, compute_document):
        system = ingest_document(manager, compute_document).system
        envelope = manager.view().get_node(system.envelope_id)
        envelope.payload["label"] = "mutated"
        stored = next(n for n in system.nodes if n.id == system.envelope_id)
        assert stored.payload["label"] == "Compute Stack"
        assert manager.view().get_node(system.envelope_id).payload["label"] == "Compute Stack"

    def test_absolute_position(self, manager, compute_document):
        system = ingest_document(manager, compute_document).system
        gran = manager.absolute_position(f"{system.id}-gran-2")
        # envelope (50,50) + high (50,50) + intermediate (90,50) + granular (70,180)
        assert gran == Position(x=260, y=330)

    def test_connections_of(self, manager, pipeline_document, compute_document):
        ingest_document(manager, compute_document)
        system = ingest_document(manager, pipeline_document).system
        edges, connected = manager.connections_of(f"{system.id}-gran-rank")
        assert {e.id for e in edges} == {
            f"{system.id}-edge-index-rank",
            f"{system.id}-edge-facet-rank",
        }
        assert connected == {
            f"{system.id}-gran-rank",
            f"{system.id}-gran-index",
            f"{system.id}-gran-facet",
        }


class TestDrag:
    """Tests for drag sessions driven through the manager."""

    def test_commit_updates_origin(self, manager, three_systems):
        target = three_systems[0]
        session = manager.begin_drag(target.id)
        outcome = session.end(Position(x=3000, y=50))
        assert outcome.snapped_back is False
        assert manager.get(target.id).origin == Position(x=3000, y=50)
        assert manager.active_drag is None

    def test_collision_snaps_back(self, manager, three_systems):
        first, second = three_systems[0], three_systems[1]
        session = manager.begin_drag(second.id)
        session.move(Position(x=3000, y=second.origin.y))
        outcome = session.end(Position(x=first.origin.x + 10, y=first.origin.y + 10))
        assert outcome.snapped_back is True
        assert manager.get(second.id).origin == Position(x=3000, y=second.origin.y)

    def test_edge_touching_neighbour_is_allowed(self, manager, three_systems):
        first, second = three_systems[0], three_systems[1]
        session = manager.begin_drag(second.id)
        outcome = session.end(Position(x=first.right, y=first.origin.y))
        assert outcome.snapped_back is False

    def test_visual_override_during_drag(self, manager, three_systems):
        target = three_systems[0]
        session = manager.begin_drag(target.id)
        session.move(Position(x=5000, y=5000))
        envelope = manager.view().get_node(target.envelope_id)
        assert (envelope.position.x, envelope.position.y) == (5000, 5000)
        # The registry is untouched until the session ends
        assert manager.get(target.id).origin == Position(x=50, y=50)

    def test_single_active_session(self, manager, three_systems):
        manager.begin_drag(three_systems[0].id)
        with pytest.raises(DragSessionError):
            manager.begin_drag(three_systems[1].id)

    def test_listeners_see_committed_position(self, manager, three_systems):
        target = three_systems[0]
        seen = []
        manager.subscribe(lambda view: seen.append(view.get_node(target.envelope_id).position))
        session = manager.begin_drag(target.id)
        session.move(Position(x=4000, y=10))
        session.end(Position(x=4000, y=10))
        assert len(seen) == 1
        assert seen[0] == Position(x=4000, y=10)


class TestListeners:
    """Tests for change notifications."""

    def test_notified_on_every_change(self, manager, compute_document):
        views = []
        manager.subscribe(views.append)
        system = ingest_document(manager, compute_document).system
        manager.reposition(system.id, Position(x=100, y=100))
        manager.remove(system.id)
        assert len(views) == 3
        assert views[-1].nodes == []

    def test_unsubscribe(self, manager, compute_document):
        views = []
        unsubscribe = manager.subscribe(views.append)
        unsubscribe()
        ingest_document(manager, compute_document)
        assert views == []


class TestDragLifecycle:
    """Tests for drags that outlive registry changes or are abandoned."""

    def test_system_added_mid_drag_is_an_obstacle(self, manager, compute_document):
        first = ingest_document(manager, compute_document).system
        session = manager.begin_drag(first.id)
        session.move(Position(x=50, y=3000))
        late = ingest_document(manager, compute_document).system
        outcome = session.end(Position(x=late.origin.x + 20, y=late.origin.y + 20))
        assert outcome.snapped_back is True
        assert manager.get(first.id).origin == Position(x=50, y=3000)

    def test_cancel_keeps_origin_and_releases_session(self, manager, three_systems):
        target = three_systems[0]
        session = manager.begin_drag(target.id)
        session.move(Position(x=4000, y=4000))
        manager.cancel_drag()
        assert session.closed is True
        assert manager.active_drag is None
        assert manager.get(target.id).origin == Position(x=50, y=50)
        envelope = manager.view().get_node(target.envelope_id)
        assert (envelope.position.x, envelope.position.y) == (50, 50)
        manager.remove(target.id)
        assert target.id not in manager

    def test_cancel_without_session(self, manager):
        manager.cancel_drag()
        assert manager.active_drag is None

"""Tests for durable writes, debouncing and reloads."""

import asyncio

from structlog.testing import capture_logs

from familytree.config import LimitSettings, Settings
from familytree.graph.tree import FamilyTree
from familytree.models import AddMemberData, Position


def position_writes(store, member_id):
    return [w for w in store.writes_for(member_id, "update") if "position_x" in w[2]]


class TestDurableWrites:
    """Mutations are applied now and stored later."""

    def test_mutations_schedule_writes(self, recording_store):
        async def scenario():
            tree = FamilyTree("owner-1", store=recording_store)
            husband_id, wife_id = tree.add_initial_couple()
            child_id = tree.add_child(husband_id, AddMemberData(name="Aziz"))
            tree.update_member(child_id, name="Aziz Karimov")
            assert recording_store.writes == []  # nothing awaited yet
            await tree.flush()
            return husband_id, wife_id, child_id

        husband_id, wife_id, child_id = asyncio.run(scenario())
        assert set(recording_store.rows) == {husband_id, wife_id, child_id}
        assert recording_store.rows[child_id].member_name == "Aziz Karimov"
        assert recording_store.rows[child_id].relation_type.startswith(f"child_of_{husband_id}_1|")

    def test_failed_write_is_logged_not_rolled_back(self, recording_store):
        recording_store.fail_on.add("insert")

        async def scenario():
            tree = FamilyTree("owner-1", store=recording_store)
            with capture_logs() as logs:
                husband_id, wife_id = tree.add_initial_couple()
                await tree.flush()
            return tree, husband_id, logs

        tree, husband_id, logs = asyncio.run(scenario())
        assert husband_id in tree
        assert recording_store.rows == {}
        failures = [entry for entry in logs if entry["event"] == "durable_write_failed"]
        assert len(failures) == 2
        assert failures[0]["action"] == "insert"

    def test_delete_is_written(self, recording_store):
        async def scenario():
            tree = FamilyTree("owner-1", store=recording_store)
            _, wife_id = tree.add_initial_couple()
            await tree.flush()
            tree.remove_member(wife_id)
            await tree.flush()
            return wife_id

        wife_id = asyncio.run(scenario())
        assert wife_id not in recording_store.rows
        assert recording_store.writes_for(wife_id, "delete")


class TestWriteOrdering:
    """Writes for one member reach the store in the order they were issued."""

    def test_later_write_waits_for_earlier(self, recording_store):
        async def scenario():
            tree = FamilyTree("owner-1", store=recording_store)
            husband_id, _ = tree.add_initial_couple()
            await tree.flush()

            recording_store.gate = asyncio.Event()
            child_id = tree.add_child(husband_id)
            tree.update_member(child_id, name="Aziz")
            for _ in range(5):
                await asyncio.sleep(0)
            started = [w[0] for w in recording_store.writes_for(child_id)]
            recording_store.gate.set()
            await tree.flush()
            return child_id, started

        child_id, started = asyncio.run(scenario())
        assert started == ["insert"]
        assert [w[0] for w in recording_store.writes_for(child_id)] == ["insert", "update"]
        assert recording_store.rows[child_id].member_name == "Aziz"

    def test_add_then_remove_or_edit_on_sqlite(self, member_store):
        """Back-to-back writes against the threaded store never reorder."""
        config = Settings(limits=LimitSettings(max_children=50))

        async def scenario():
            tree = FamilyTree("owner-1", store=member_store, config=config)
            await tree.load()
            await tree.flush()

            removed, renamed = [], {}
            for i in range(20):
                doomed = tree.add_child(tree.root_id)
                tree.remove_member(doomed)
                removed.append(doomed)

                kept = tree.add_child(tree.root_id)
                tree.update_member(kept, name=f"Child {i}")
                renamed[kept] = f"Child {i}"
            await tree.flush()
            return removed, renamed

        removed, renamed = asyncio.run(scenario())
        assert [m for m in removed if member_store.get_sync(m) is not None] == []
        assert {m: member_store.get_sync(m).member_name for m in renamed} == renamed


class TestPositionDebounce:
    """Rapid moves collapse into one write per member."""

    def test_three_moves_one_write(self, recording_store):
        async def scenario():
            tree = FamilyTree("owner-1", store=recording_store)
            husband_id, _ = tree.add_initial_couple()
            await tree.flush()

            for x in (10.0, 20.0, 30.0):
                tree.update_position(husband_id, Position(x=x, y=5.0))
                await asyncio.sleep(0.03)
            await asyncio.sleep(0.6)
            await tree.flush()
            return husband_id

        husband_id = asyncio.run(scenario())
        writes = position_writes(recording_store, husband_id)
        assert len(writes) == 1
        assert writes[0][2]["position_x"] == 30.0
        assert recording_store.rows[husband_id].relation_type == "self|x:30.0|y:5.0"

    def test_distinct_members_not_lost(self, recording_store, fast_settings):
        async def scenario():
            tree = FamilyTree("owner-1", store=recording_store, config=fast_settings)
            husband_id, wife_id = tree.add_initial_couple()
            await tree.flush()
            tree.update_position(husband_id, Position(x=1, y=1))
            tree.update_position(wife_id, Position(x=2, y=2))
            await asyncio.sleep(0.2)
            await tree.flush()
            return husband_id, wife_id

        husband_id, wife_id = asyncio.run(scenario())
        assert len(position_writes(recording_store, husband_id)) == 1
        assert len(position_writes(recording_store, wife_id)) == 1

    def test_flush_fires_pending_move(self, recording_store):
        async def scenario():
            tree = FamilyTree("owner-1", store=recording_store)
            husband_id, _ = tree.add_initial_couple()
            tree.update_position(husband_id, Position(x=7, y=8))
            await tree.flush()
            return husband_id

        husband_id = asyncio.run(scenario())
        assert recording_store.rows[husband_id].position_x == 7

    def test_move_of_removed_member_dropped(self, recording_store, fast_settings):
        async def scenario():
            tree = FamilyTree("owner-1", store=recording_store, config=fast_settings)
            _, wife_id = tree.add_initial_couple()
            await tree.flush()
            tree.update_position(wife_id, Position(x=1, y=1))
            tree.remove_member(wife_id)
            await asyncio.sleep(0.15)
            await tree.flush()
            return wife_id

        wife_id = asyncio.run(scenario())
        assert position_writes(recording_store, wife_id) == []


class TestLoadAndReload:
    """Loading from the store and reconciling with it."""

    def test_empty_store_bootstraps_couple(self, member_store):
        async def scenario():
            tree = FamilyTree("owner-1", store=member_store)
            await tree.load()
            await tree.flush()
            again = FamilyTree("owner-1", store=member_store)
            await again.load()
            return tree, again

        tree, again = asyncio.run(scenario())
        assert len(tree) == 2
        assert set(again.members) == set(tree.members)
        assert again.root_id == tree.root_id
        assert again.get(tree.root_id).spouse_id is not None

    def test_reload_keeps_pending_local_edits(self, recording_store, check_invariants):
        async def scenario():
            tree = FamilyTree("owner-1", store=recording_store)
            husband_id, wife_id = tree.add_initial_couple()
            await tree.flush()

            # Someone else renamed the wife; we are mid-drag on the husband
            recording_store.rows[wife_id].member_name = "Malika"
            recording_store.rows[husband_id].member_name = "Stale"
            tree.update_member(husband_id, name="Fresh")
            tree.update_position(husband_id, Position(x=99, y=99))
            await tree.reload()
            state = (tree.get(wife_id).name, tree.get(husband_id).name, tree.get(husband_id).position)
            await tree.flush()
            return tree, state

        tree, (wife_name, husband_name, husband_position) = asyncio.run(scenario())
        assert wife_name == "Malika"
        assert husband_name == "Fresh"
        assert husband_position == Position(x=99, y=99)
        check_invariants(tree)

    def test_reload_keeps_inflight_delete(self, recording_store, check_invariants):
        async def scenario():
            tree = FamilyTree("owner-1", store=recording_store)
            husband_id, wife_id = tree.add_initial_couple()
            await tree.flush()

            recording_store.gate = asyncio.Event()
            tree.remove_member(wife_id)
            await asyncio.sleep(0)
            await tree.reload()
            still_gone = wife_id not in tree
            spouse = tree.get(husband_id).spouse_id
            recording_store.gate.set()
            await tree.flush()
            return tree, still_gone, spouse

        tree, still_gone, spouse = asyncio.run(scenario())
        assert still_gone
        assert spouse is None
        check_invariants(tree)

    def test_change_feed_triggers_reload(self, member_store, feed):
        """A second session of the same owner sees the first one's additions."""
        async def scenario():
            first = FamilyTree("owner-1", store=member_store, feed=feed)
            await first.load()
            await first.flush()

            second = FamilyTree("owner-1", store=member_store, feed=feed)
            await second.load()
            second.subscribe()

            child_id = first.add_child(first.root_id, AddMemberData(name="Aziz"))
            await first.flush()
            await second.flush()
            second.unsubscribe()
            return second, child_id

        second, child_id = asyncio.run(scenario())
        assert child_id in second
        assert second.get(child_id).name == "Aziz"
        assert len(second.get(child_id).parent_ids) == 2
        assert feed.subscriber_count("owner-1") == 0

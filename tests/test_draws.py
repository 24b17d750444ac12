import random
import unittest

from santa_draw.errors import StoreUnavailable, TargetTaken
from santa_draw.models import RosterEntry
from santa_draw.services.draws import DrawSession, DrawState, eligible_pool, fisher_yates


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingStore:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def commit_draw(self, actor_id, target_id, target_name):
        self.calls.append((actor_id, target_id, target_name))
        if self.error:
            raise self.error


ALICE = RosterEntry(1, "Alice")
BOB = RosterEntry(2, "Bob")
CAROL = RosterEntry(3, "Carol")
DAVE = RosterEntry(4, "Dave", is_picked=True)


def new_session(clock=None, steps=8, interval=0.35):
    return DrawSession(steps=steps, interval=interval, rng=random.Random(7), clock=clock or FakeClock())


def ready_session(actor=ALICE, roster=(ALICE, BOB, CAROL)):
    clock = FakeClock()
    draw = new_session(clock)
    draw.enter(actor, list(roster))
    draw.shuffle()
    clock.advance(draw.shuffle_duration)
    return draw, clock


class EligiblePoolTests(unittest.TestCase):
    def test_excludes_self_and_already_picked(self):
        pool = eligible_pool(ALICE, [ALICE, BOB, CAROL, DAVE])
        self.assertEqual({p.id for p in pool}, {BOB.id, CAROL.id})

    def test_drawn_participants_stay_eligible_as_targets(self):
        bob_drawn = RosterEntry(2, "Bob", has_drawn=True, picked_who="Carol")
        pool = eligible_pool(ALICE, [ALICE, bob_drawn, CAROL])
        self.assertEqual({p.name for p in pool}, {"Bob", "Carol"})


class FisherYatesTests(unittest.TestCase):
    def test_keeps_every_element_once(self):
        items = list(range(20))
        shuffled = fisher_yates(items, random.Random(3))
        self.assertEqual(sorted(shuffled), items)
        self.assertEqual(items, list(range(20)))


class EnterTests(unittest.TestCase):
    def test_enter_builds_pool(self):
        draw = new_session()
        state = draw.enter(ALICE, [ALICE, BOB, CAROL, DAVE])
        self.assertIs(state, DrawState.POOL_READY)
        self.assertEqual({p.id for p in draw.pool}, {BOB.id, CAROL.id})
        self.assertIsNone(draw.candidate)

    def test_actor_who_already_drew_cannot_enter(self):
        draw = new_session()
        drawn = RosterEntry(1, "Alice", has_drawn=True, picked_who="Bob")
        self.assertIs(draw.enter(drawn, [drawn, BOB]), DrawState.IDLE)
        self.assertEqual(draw.pool, [])

    def test_enter_twice_is_ignored(self):
        draw = new_session()
        draw.enter(ALICE, [ALICE, BOB])
        draw.enter(BOB, [ALICE, BOB, CAROL])
        self.assertEqual(draw.actor, ALICE)

    def test_empty_pool_is_exhausted(self):
        a = RosterEntry(1, "A", is_picked=True)
        b = RosterEntry(2, "B", has_drawn=True, is_picked=False, picked_who="A")
        draw = new_session()
        # While B is unpicked A still has a card to draw.
        self.assertIs(draw.enter(a, [a, b]), DrawState.POOL_READY)

        b_picked = RosterEntry(2, "B", has_drawn=True, is_picked=True, picked_who="A")
        draw = new_session()
        self.assertIs(draw.enter(a, [a, b_picked]), DrawState.EXHAUSTED)

    def test_two_person_roster_where_other_already_drew(self):
        a = RosterEntry(1, "A", is_picked=True)
        b = RosterEntry(2, "B", has_drawn=True, is_picked=True, picked_who="A")
        draw = new_session()
        draw.enter(a, [a, b])
        self.assertIs(draw.state, DrawState.EXHAUSTED)
        self.assertIsNone(draw.shuffle())
        self.assertFalse(draw.select(b.id))
        draw.cancel()
        self.assertIs(draw.state, DrawState.IDLE)


class ShuffleTests(unittest.TestCase):
    def test_shuffle_keeps_pool_membership(self):
        roster = [RosterEntry(i, f"P{i}") for i in range(1, 9)]
        draw = new_session()
        draw.enter(roster[0], roster)
        before = {p.id for p in draw.pool}

        steps = draw.shuffle()

        self.assertEqual(len(steps), 8)
        for order in steps:
            self.assertEqual(len(order), len(before))
            self.assertEqual(set(order), before)
        self.assertEqual([p.id for p in draw.pool], steps[-1])

    def test_shuffling_until_schedule_has_run(self):
        clock = FakeClock()
        draw = new_session(clock, interval=0.25)
        draw.enter(ALICE, [ALICE, BOB, CAROL])
        draw.shuffle()
        self.assertTrue(draw.is_shuffling)

        clock.advance(draw.shuffle_duration - 0.25)
        self.assertIs(draw.state, DrawState.SHUFFLING)

        clock.advance(0.25)
        self.assertIs(draw.state, DrawState.READY)

    def test_shuffle_while_shuffling_is_ignored(self):
        draw = new_session()
        draw.enter(ALICE, [ALICE, BOB, CAROL])
        draw.shuffle()
        order = [p.id for p in draw.pool]
        self.assertIsNone(draw.shuffle())
        self.assertEqual([p.id for p in draw.pool], order)

    def test_reshuffle_from_ready_drops_nothing(self):
        draw, clock = ready_session()
        self.assertIsNotNone(draw.shuffle())
        clock.advance(draw.shuffle_duration)
        self.assertEqual({p.id for p in draw.pool}, {BOB.id, CAROL.id})


class SelectTests(unittest.TestCase):
    def test_select_before_first_shuffle_is_rejected(self):
        draw = new_session()
        draw.enter(ALICE, [ALICE, BOB, CAROL])
        self.assertFalse(draw.select(BOB.id))
        self.assertIs(draw.state, DrawState.POOL_READY)
        self.assertIsNone(draw.candidate)

    def test_select_during_shuffle_is_rejected(self):
        clock = FakeClock()
        draw = new_session(clock)
        draw.enter(ALICE, [ALICE, BOB, CAROL])
        draw.shuffle()
        clock.advance(0.1)
        self.assertFalse(draw.select(BOB.id))
        self.assertIs(draw.state, DrawState.SHUFFLING)

    def test_select_after_shuffle(self):
        draw, _ = ready_session()
        self.assertTrue(draw.select(BOB.id))
        self.assertIs(draw.state, DrawState.CONFIRMING)
        self.assertEqual(draw.candidate, BOB)

    def test_select_outside_pool_is_rejected(self):
        draw, _ = ready_session()
        self.assertFalse(draw.select(ALICE.id))
        self.assertFalse(draw.select(99))
        self.assertIs(draw.state, DrawState.READY)

    def test_cancel_returns_to_ready(self):
        draw, _ = ready_session()
        draw.select(CAROL.id)
        draw.cancel()
        self.assertIs(draw.state, DrawState.READY)
        self.assertIsNone(draw.candidate)


class ConfirmTests(unittest.TestCase):
    def test_confirm_without_candidate_is_a_no_op(self):
        draw, _ = ready_session()
        store = RecordingStore()
        self.assertIsNone(draw.confirm(store))
        self.assertEqual(store.calls, [])
        self.assertIs(draw.state, DrawState.READY)

    def test_confirm_commits_pair(self):
        draw, _ = ready_session()
        draw.select(BOB.id)
        store = RecordingStore()

        target = draw.confirm(store)

        self.assertEqual(target, BOB)
        self.assertEqual(store.calls, [(ALICE.id, BOB.id, "Bob")])
        self.assertIs(draw.state, DrawState.COMMITTED)
        self.assertEqual(draw.committed_target, BOB)
        self.assertIsNone(draw.candidate)

    def test_committed_session_ignores_further_actions(self):
        draw, _ = ready_session()
        draw.select(BOB.id)
        draw.confirm(RecordingStore())
        self.assertIsNone(draw.shuffle())
        self.assertFalse(draw.select(CAROL.id))
        self.assertIsNone(draw.confirm(RecordingStore()))
        self.assertIs(draw.state, DrawState.COMMITTED)

    def test_store_failure_keeps_candidate(self):
        draw, _ = ready_session()
        draw.select(BOB.id)
        with self.assertRaises(StoreUnavailable):
            draw.confirm(RecordingStore(error=StoreUnavailable("down")))
        self.assertIs(draw.state, DrawState.CONFIRMING)
        self.assertEqual(draw.candidate, BOB)

    def test_lost_race_drops_card(self):
        draw, _ = ready_session()
        draw.select(BOB.id)
        with self.assertRaises(TargetTaken):
            draw.confirm(RecordingStore(error=TargetTaken("gone")))
        self.assertIs(draw.state, DrawState.READY)
        self.assertEqual([p.id for p in draw.pool], [CAROL.id])

    def test_lost_race_on_last_card_exhausts(self):
        draw, _ = ready_session(roster=(ALICE, BOB))
        draw.select(BOB.id)
        with self.assertRaises(TargetTaken):
            draw.confirm(RecordingStore(error=TargetTaken("gone")))
        self.assertIs(draw.state, DrawState.EXHAUSTED)


class PersistenceTests(unittest.TestCase):
    def test_restored_session_continues_shuffle_schedule(self):
        clock = FakeClock()
        draw = new_session(clock)
        draw.enter(ALICE, [ALICE, BOB, CAROL])
        draw.shuffle()

        restored = DrawSession.from_dict(draw.to_dict(), steps=8, interval=0.35, clock=clock)
        self.assertIs(restored.state, DrawState.SHUFFLING)
        self.assertEqual(restored.pool, draw.pool)
        self.assertEqual(restored.actor, ALICE)

        clock.advance(restored.shuffle_duration)
        self.assertTrue(restored.select(BOB.id))

    def test_missing_data_gives_idle_session(self):
        self.assertIs(DrawSession.from_dict(None).state, DrawState.IDLE)
        self.assertIs(DrawSession.from_dict({"state": "bogus"}).state, DrawState.IDLE)


if __name__ == "__main__":
    unittest.main()

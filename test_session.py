import unittest

from compliance.evaluator import DiagramComplianceEvaluator
from compliance.session import SessionState, ValidationSession, diagram_fingerprint
from core.components import Diagram, DiagramComponent
from core.config import EngineConfig
from core.models import LoadContext
from core.rules import ValidationRule
from core.timing import ManualScheduler


class CountingRule(ValidationRule):
    """Records every snapshot it is asked to evaluate."""
    id = "counting"
    section = "90.1"

    def __init__(self):
        self.seen = []

    @property
    def calls(self):
        return len(self.seen)

    def evaluate(self, diagram, loads=None):
        self.seen.append(diagram.name)
        return []


class LateCancelScheduler(ManualScheduler):
    """Like a threading timer whose callback has already started: cancel() has no effect."""

    def __init__(self):
        super().__init__()
        self.handles = []

    def call_later(self, delay, callback):
        handle = super().call_later(delay, callback)
        handle.cancel = lambda: None
        self.handles.append(handle)
        return handle


def snapshot(name="rev", diagram_id="d1", rating=200):
    return Diagram(id=diagram_id, name=name, components=(
        DiagramComponent(id="mp", type="main_panel", specifications={"busRating": rating}),
    ))


class TestValidationSession(unittest.TestCase):
    def setUp(self):
        self.clock = ManualScheduler()
        self.rule = CountingRule()
        self.evaluator = DiagramComplianceEvaluator(rules=[self.rule], clock=self.clock)
        self.session = ValidationSession(self.evaluator, scheduler=self.clock, clock=self.clock,
                                         config=EngineConfig(debounce_seconds=0.5, cache_ttl_seconds=5.0))
        self.received = []
        self.session.subscribe(self.received.append)

    def test_debounce_coalesces_edits(self):
        self.session.on_diagram_changed(snapshot("r1", rating=100))
        self.clock.advance(0.2)
        self.session.on_diagram_changed(snapshot("r2", rating=150))
        self.clock.advance(0.2)
        self.session.on_diagram_changed(snapshot("r3", rating=200))
        self.assertEqual(self.session.state, SessionState.DEBOUNCING)

        # Quiet period restarts on each edit: last one at t=0.4, fires at t=0.9
        self.clock.advance(0.49)
        self.assertEqual(self.rule.calls, 0)
        self.assertEqual(self.received, [])

        self.clock.advance(0.02)
        self.assertEqual(self.rule.seen, ["r3"])
        self.assertEqual(len(self.received), 1)
        self.assertEqual(self.session.state, SessionState.IDLE)
        self.assertIs(self.session.last_result, self.received[0])
        self.assertEqual(self.clock.pending, 0)

    def test_cache_hit_within_ttl(self):
        diagram = snapshot()
        first = self.session.validate(diagram)
        self.clock.advance(4.9)
        second = self.session.validate(snapshot())   # same content, new object
        self.assertIs(first, second)
        self.assertEqual(self.rule.calls, 1)

    def test_cache_expires(self):
        self.session.validate(snapshot())
        self.clock.advance(5.0)
        self.session.validate(snapshot())
        self.assertEqual(self.rule.calls, 2)

    def test_content_change_misses_cache(self):
        self.session.validate(snapshot(rating=200))
        self.session.validate(snapshot(rating=225))
        self.assertEqual(self.rule.calls, 2)
        self.assertEqual(self.session.cache_size, 2)

        # Both entries are older than the TTL by the next edit
        self.clock.advance(5.0)
        self.session.validate(snapshot(rating=250))
        self.assertEqual(self.session.cache_size, 1)

    def test_cache_does_not_grow_with_edits(self):
        for rating in range(100, 300, 10):
            self.session.validate(snapshot(rating=rating))
            self.clock.advance(10.0)
        self.assertEqual(self.rule.calls, 20)
        self.assertEqual(self.session.cache_size, 1)

        # One edit a second keeps only the last five seconds
        for rating in range(300, 400, 10):
            self.session.validate(snapshot(rating=rating))
            self.clock.advance(1.0)
        self.assertEqual(self.session.cache_size, 5)

    def test_new_diagram_clears_cache(self):
        self.session.validate(snapshot(diagram_id="d1"))
        self.session.validate(snapshot(diagram_id="d2"))
        self.assertEqual(self.session.cache_size, 1)
        self.session.validate(snapshot(diagram_id="d1"))
        self.assertEqual(self.rule.calls, 3)

    def test_subscriber_failure_is_isolated(self):
        def explode(result):
            raise RuntimeError("subscriber down")

        session = ValidationSession(self.evaluator, scheduler=self.clock, clock=self.clock)
        got = []
        session.subscribe(explode)
        session.subscribe(got.append)
        session.on_diagram_changed(snapshot())
        with self.assertLogs("compliance.session", level="ERROR"):
            self.clock.advance(1.0)
        self.assertEqual(len(got), 1)

    def test_unsubscribe(self):
        other = []
        unsubscribe = self.session.subscribe(other.append)
        unsubscribe()
        unsubscribe()
        self.session.on_diagram_changed(snapshot())
        self.clock.advance(1.0)
        self.assertEqual(other, [])
        self.assertEqual(len(self.received), 1)

    def test_superseded_timer_does_not_run_early(self):
        late = LateCancelScheduler()
        evaluator = DiagramComplianceEvaluator(rules=[self.rule], clock=late)
        session = ValidationSession(evaluator, scheduler=late, clock=late,
                                    config=EngineConfig(debounce_seconds=0.5))
        session.on_diagram_changed(snapshot("A"))
        late.advance(0.3)
        session.on_diagram_changed(snapshot("B"))

        # First timer fires while the second is armed
        late.handles[0].callback()
        self.assertEqual(self.rule.seen, [])
        self.assertEqual(session.state, SessionState.DEBOUNCING)

        late.advance(0.3)
        self.assertEqual(self.rule.seen, [])
        late.advance(0.25)
        self.assertEqual(self.rule.seen, ["B"])
        self.assertEqual(session.state, SessionState.IDLE)

    def test_flush(self):
        self.assertIsNone(self.session.flush())
        self.session.on_diagram_changed(snapshot("pending"))
        result = self.session.flush()
        self.assertIsNotNone(result)
        self.assertEqual(self.rule.seen, ["pending"])
        self.assertEqual(self.received, [result])
        self.assertEqual(self.session.state, SessionState.IDLE)

        # The cancelled timer must not fire again
        self.clock.advance(1.0)
        self.assertEqual(self.rule.calls, 1)

    def test_close(self):
        self.session.validate(snapshot())
        self.session.on_diagram_changed(snapshot("never"))
        self.session.close()
        self.clock.advance(1.0)
        self.assertNotIn("never", self.rule.seen)
        self.assertEqual(self.received, [])
        self.assertEqual(self.session.cache_size, 0)
        self.assertEqual(self.session.state, SessionState.IDLE)


class TestFingerprint(unittest.TestCase):
    def test_stable_and_sensitive(self):
        self.assertEqual(diagram_fingerprint(snapshot()), diagram_fingerprint(snapshot()))
        self.assertNotEqual(diagram_fingerprint(snapshot(rating=200)), diagram_fingerprint(snapshot(rating=100)))
        self.assertNotEqual(diagram_fingerprint(snapshot(diagram_id="a")), diagram_fingerprint(snapshot(diagram_id="b")))
        self.assertNotEqual(diagram_fingerprint(snapshot()),
                            diagram_fingerprint(snapshot(), LoadContext(total_load_amps=150)))


if __name__ == '__main__':
    unittest.main()

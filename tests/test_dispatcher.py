import threading
import time
import unittest

from playersync.constants import DISPATCH_GRACE_MS, FALLBACK_SELECTORS
from playersync.dispatcher import CommandDispatcher, _PendingResult, evaluate_with_deadline
from playersync.models import CommandSpec
from playersync.page_scripts import RESOLVER_SCRIPT


class _ScriptedChannel:
    def __init__(self, responder=None, *, worker_thread: bool = False):
        self.responder = responder
        self.worker_thread = worker_thread
        self.submissions = []

    def submit(self, script, arg=None, on_result=None):
        self.submissions.append((script, arg, on_result))
        if self.responder is not None and on_result is not None:
            on_result(self.responder(script, arg))

    def in_worker_thread(self) -> bool:
        return self.worker_thread

    def add_load_listener(self, listener) -> None:
        return


class _DelayedChannel(_ScriptedChannel):
    def __init__(self, value, delay_seconds: float):
        super().__init__()
        self.value = value
        self.delay_seconds = delay_seconds

    def submit(self, script, arg=None, on_result=None):
        self.submissions.append((script, arg, on_result))
        timer = threading.Timer(self.delay_seconds, on_result, args=(self.value,))
        timer.daemon = True
        timer.start()


class CommandDispatcherTests(unittest.TestCase):
    def test_activation_reported_by_resolver_returns_true(self) -> None:
        channel = _ScriptedChannel(lambda _s, _a: {"activated": True, "selector": ".a", "index": 0})
        spec = CommandSpec(name="next", primary_selectors=(".a", ".b"))
        self.assertTrue(CommandDispatcher(channel).dispatch(spec))

        script, arg, _cb = channel.submissions[0]
        self.assertEqual(script, RESOLVER_SCRIPT)
        self.assertEqual(arg, {"candidates": [".a", ".b", *FALLBACK_SELECTORS]})

    def test_not_found_returns_false(self) -> None:
        channel = _ScriptedChannel(lambda _s, _a: {"activated": False, "selector": "", "index": -1})
        self.assertFalse(CommandDispatcher(channel).dispatch(CommandSpec(name="next", primary_selectors=(".a",))))

    def test_missing_value_returns_false(self) -> None:
        channel = _ScriptedChannel(lambda _s, _a: None)
        self.assertFalse(CommandDispatcher(channel).dispatch(CommandSpec(name="next", primary_selectors=(".a",))))

    def test_plain_boolean_result_is_accepted(self) -> None:
        channel = _ScriptedChannel(lambda _s, _a: True)
        self.assertTrue(CommandDispatcher(channel).dispatch(CommandSpec(name="next", primary_selectors=(".a",))))

    def test_never_responding_channel_returns_false_within_deadline(self) -> None:
        channel = _ScriptedChannel()
        spec = CommandSpec(name="play_pause", primary_selectors=(".a",), timeout_ms=150)
        started = time.monotonic()
        ok = CommandDispatcher(channel).dispatch(spec)
        elapsed = time.monotonic() - started
        self.assertFalse(ok)
        self.assertLess(elapsed, (spec.timeout_ms + DISPATCH_GRACE_MS) / 1000.0)
        self.assertEqual(len(channel.submissions), 1)

    def test_late_result_is_discarded(self) -> None:
        pending = _PendingResult()
        self.assertFalse(pending.wait(0.01))
        pending.deliver({"activated": True})
        self.assertIsNone(pending.value)
        self.assertFalse(pending.wait(0.0))

    def test_result_delivered_from_another_thread(self) -> None:
        channel = _DelayedChannel({"activated": True, "selector": ".a", "index": 0}, 0.05)
        spec = CommandSpec(name="next", primary_selectors=(".a",), timeout_ms=2000)
        self.assertTrue(CommandDispatcher(channel).dispatch(spec))

    def test_dispatch_on_worker_thread_does_not_wait(self) -> None:
        channel = _ScriptedChannel(worker_thread=True)
        spec = CommandSpec(name="next", primary_selectors=(".a",), timeout_ms=5000)
        started = time.monotonic()
        self.assertFalse(CommandDispatcher(channel).dispatch(spec))
        self.assertLess(time.monotonic() - started, 1.0)
        self.assertEqual(channel.submissions, [])

    def test_dispatch_selectors_appends_builtin_fallback(self) -> None:
        channel = _ScriptedChannel(lambda _s, _a: {"activated": True, "selector": ".x", "index": 0})
        self.assertTrue(CommandDispatcher(channel).dispatch_selectors([".x"], timeout_ms=500))
        self.assertEqual(channel.submissions[0][1]["candidates"], [".x", *FALLBACK_SELECTORS])


class EvaluateWithDeadlineTests(unittest.TestCase):
    def test_returns_value_when_completed(self) -> None:
        channel = _ScriptedChannel(lambda _s, arg: arg["n"] * 2)
        self.assertEqual(evaluate_with_deadline(channel, "x", {"n": 4}, 1.0), (True, 8))

    def test_times_out_and_ignores_late_delivery(self) -> None:
        channel = _DelayedChannel("late", 0.3)
        completed, value = evaluate_with_deadline(channel, "x", None, 0.05)
        self.assertFalse(completed)
        self.assertIsNone(value)
        time.sleep(0.4)


if __name__ == "__main__":
    unittest.main()

"""Unit tests for the result router."""

import threading
from unittest.mock import MagicMock

from paperboy.core.lifecycle import LifecycleGuard
from paperboy.core.task_executor import TaskHandle, TaskOutcome


def _outcome(value="value"):
    return TaskOutcome(task_id="t1", task_name="test", value=value)


def test_deliver_runs_callback_on_ui_thread(router, dispatcher):
    """A live session receives the outcome when the dispatcher drains."""
    guard = LifecycleGuard("session")
    received = []

    worker = threading.Thread(
        target=router.deliver,
        args=(_outcome(), lambda outcome: received.append((outcome.value, threading.get_ident()))),
        kwargs={"guard": guard},
    )
    worker.start()
    worker.join()

    assert received == []
    dispatcher.run_pending()
    assert received == [("value", threading.get_ident())]
    assert router.stats() == {"posted": 1, "delivered": 1, "dropped": 0}


def test_teardown_between_post_and_delivery_drops_result(router, dispatcher):
    """The liveness check happens when the closure runs, not when it was posted."""
    guard = LifecycleGuard("session")
    callback = MagicMock()

    router.deliver(_outcome(), callback, guard=guard)
    assert dispatcher.pending() == 1

    guard.invalidate()
    dispatcher.run_pending()

    callback.assert_not_called()
    assert router.stats()["dropped"] == 1


def test_dead_guard_is_not_even_posted(router, dispatcher):
    """A result for a closed session is dropped on the worker."""
    guard = LifecycleGuard("session")
    guard.invalidate()

    router.deliver(_outcome(), MagicMock(), guard=guard)

    assert dispatcher.pending() == 0
    assert router.stats() == {"posted": 0, "delivered": 0, "dropped": 1}


def test_discarded_handle_drops_result(router, dispatcher):
    """A superseded task never reaches its callback."""
    handle = TaskHandle("t1", "lookup")
    callback = MagicMock()

    router.deliver(_outcome(), callback, handle=handle)
    handle.discard()
    dispatcher.run_pending()

    callback.assert_not_called()


def test_post_guards_arbitrary_closures(router, dispatcher):
    """UI mutations other than task results go through the same check."""
    guard = LifecycleGuard("session")
    calls = []

    router.post(guard, calls.append, "first")
    dispatcher.run_pending()
    guard.invalidate()
    router.post(guard, calls.append, "second")
    dispatcher.run_pending()

    assert calls == ["first"]


def test_guarded_wrapper_preserves_name(router):
    """The wrapper keeps the wrapped function's metadata."""

    def on_icon(data):
        return data

    wrapped = router.guarded(on_icon, LifecycleGuard())
    assert wrapped.__name__ == "on_icon"


def test_no_guard_always_delivers(router, dispatcher):
    """Fire-and-forget posts without a guard are delivered."""
    callback = MagicMock()
    router.deliver(_outcome(42), callback)
    dispatcher.run_pending()
    assert callback.call_args[0][0].value == 42

import threading

from showdown.progress import CancellationToken, ProgressChannel, ProgressEvent, report


def test_report_clamps_and_rounds():
    events = []
    report(events.append, "start", -5)
    report(events.append, "half", 49.6)
    report(events.append, "done", 140)
    report(None, "ignored", 10)

    assert [e.percentage for e in events] == [0, 50, 100]
    assert events[1] == ProgressEvent(message="half", percentage=50)


def test_channel_is_consumed_across_threads():
    channel = ProgressChannel()

    def produce():
        for pct in (10, 60, 100):
            report(channel, f"step {pct}", pct)
        channel.close()

    worker = threading.Thread(target=produce)
    worker.start()
    received = [event.percentage for event in channel]
    worker.join()

    assert received == [10, 60, 100]


def test_drain_returns_pending_events():
    channel = ProgressChannel()
    channel(ProgressEvent("a", 1))
    channel(ProgressEvent("b", 2))
    channel.close()

    assert [e.message for e in channel.drain()] == ["a", "b"]
    assert channel.drain() == []


def test_cancellation_token():
    token = CancellationToken()
    assert not token.cancelled
    token.cancel()
    assert token.cancelled

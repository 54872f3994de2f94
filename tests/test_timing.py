from DualChat.core.models import Message, MessagePurpose, Sender
from DualChat.utils.timing import ProcessingTimer, print_timing_summary, summarize_call_timings


def timed(sender, duration_ms):
    purpose = MessagePurpose.COGNITO_TO_MUSE if sender == Sender.COGNITO else MessagePurpose.MUSE_TO_COGNITO
    return Message(text="x", sender=sender, purpose=purpose, duration_ms=duration_ms)


def test_call_timings_are_grouped_by_agent():
    messages = [
        Message(text="q", sender=Sender.USER, purpose=MessagePurpose.USER_INPUT),
        timed(Sender.COGNITO, 1000.0),
        timed(Sender.MUSE, 400.0),
        timed(Sender.COGNITO, 3000.0),
    ]

    stats = summarize_call_timings(messages)

    assert [s.agent for s in stats] == ["Cognito", "Muse"]
    cognito = stats[0]
    assert cognito.count == 2
    assert cognito.avg_ms == 2000.0
    assert cognito.max_ms == 3000.0


def test_timing_summary_output(capsys):
    print_timing_summary([timed(Sender.MUSE, 250.0)], session_seconds=1.5)
    out = capsys.readouterr().out

    assert "Calls: 1" in out
    assert "Muse: 1 calls, 250ms avg, 250ms max" in out
    assert "Last session wall clock: 1.50s" in out

    print_timing_summary([])
    assert "No timed model calls" in capsys.readouterr().out


def test_processing_timer():
    timer = ProcessingTimer()
    assert timer.elapsed_seconds == 0.0

    timer.start()
    assert timer.running
    timer.stop()
    elapsed = timer.elapsed_seconds

    assert not timer.running
    assert elapsed >= 0.0
    assert timer.elapsed_seconds == elapsed

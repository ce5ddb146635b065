import pytest

from models.battery import BatteryReading
from models.errors import InvalidTarget, NoBatterySource, SessionAlreadyRunning, TargetLocked
from models.events import MonitorEvent, MonitorEventType
from models.monitor_state import MonitorState
from monitor_session import MonitorListener, MonitorSession
from services.monitor_config import MonitorConfig

READING = BatteryReading(level=40, charging=True)


def make_config(**overrides) -> MonitorConfig:
    defaults = dict(
        target_percent=90,
        poll_interval_sec=2,
        window_capacity=50,
        rate_sample_count=10,
        min_history_samples=5,
        alert_retry_attempts=2,
        alert_retry_delay_sec=0,
        autostart=False,
        webapp_enabled=False,
        webapp_host="127.0.0.1",
        webapp_port=8080,
    )
    defaults.update(overrides)
    return MonitorConfig(**defaults)


class RecordingListener(MonitorListener):
    def __init__(self):
        self.calls = []

    def on_estimate_updated(self, minutes):
        self.calls.append(("estimate", minutes))

    def on_alert_fired(self, target):
        self.calls.append(("fired", target))

    def on_alert_reset(self):
        self.calls.append(("reset",))


def started_session(target=90, **overrides) -> MonitorSession:
    session = MonitorSession(make_config(**overrides))
    session.start(target, READING)
    return session


def feed(session, levels, charging=True, start_at=0.0, step=120.0):
    events = []
    for idx, level in enumerate(levels):
        events.extend(session.ingest(level, charging, start_at + idx * step))
    return events


def fired(events):
    return [e for e in events if e.type == MonitorEventType.ALERT_FIRED]


def test_start_enters_waiting_for_rate():
    session = started_session(target=80)

    assert session.running is True
    assert session.state == MonitorState.WAITING_FOR_RATE
    assert session.target == 80
    assert session.alert_armed is True
    assert session.last_estimate_minutes is None


@pytest.mark.parametrize("target", [49, 101, 75.5, "abc", None, True])
def test_start_rejects_invalid_target(target):
    session = MonitorSession(make_config())
    with pytest.raises(InvalidTarget):
        session.start(target, READING)

    assert session.running is False
    assert session.state == MonitorState.IDLE


@pytest.mark.parametrize("target", [50, 100])
def test_start_accepts_range_bounds(target):
    session = MonitorSession(make_config())
    session.start(target, READING)
    assert session.target == target


def test_start_without_battery_reading_fails():
    session = MonitorSession(make_config())
    with pytest.raises(NoBatterySource):
        session.start(90, None)

    assert session.running is False
    assert session.state == MonitorState.IDLE


def test_start_while_running_fails():
    session = started_session()
    with pytest.raises(SessionAlreadyRunning):
        session.start(80, READING)
    assert session.target == 90


def test_target_locked_while_running():
    session = started_session()
    with pytest.raises(TargetLocked):
        session.set_target(70)

    session.stop()
    session.set_target(70)
    assert session.target == 70


def test_stop_is_idempotent():
    session = started_session()
    feed(session, [60, 61, 62])
    session.stop()
    before = session.snapshot()

    session.stop()

    assert session.snapshot() == before
    assert session.state == MonitorState.IDLE
    assert session.window.size() == 0
    assert session.last_estimate_minutes is None


def test_idle_session_ignores_readings():
    session = MonitorSession(make_config())
    assert session.ingest(95, True, 0.0) == []
    assert session.window.size() == 0


def test_waits_for_history_before_estimating():
    session = started_session()
    events = feed(session, [60, 61, 62, 63, 64])

    assert events == []
    assert session.state == MonitorState.WAITING_FOR_RATE
    assert session.last_estimate_minutes is None


def test_estimate_rounds_up_minutes():
    session = started_session(target=90)
    # Six samples two minutes apart, 0.5 units per minute overall.
    events = feed(session, [65, 66, 67, 68, 69, 70])

    assert events == [MonitorEvent.estimate_updated(40)]
    assert session.state == MonitorState.ESTIMATING
    assert session.last_estimate_minutes == 40


def test_flat_level_stalls_without_estimate():
    session = started_session(target=90)
    events = feed(session, [55] * 6)

    assert events == []
    assert session.state == MonitorState.STALLED
    assert session.last_estimate_minutes is None


def test_stall_keeps_previous_estimate():
    session = started_session(target=90)
    feed(session, [60, 61, 62, 63, 64, 65])
    assert session.last_estimate_minutes == 50

    events = session.ingest(59, True, 720.0)

    assert events == []
    assert session.state == MonitorState.STALLED
    assert session.last_estimate_minutes == 50


def test_alert_fires_once_per_charging_episode():
    session = started_session(target=80)
    listener = RecordingListener()
    session.add_listener(listener)

    events = feed(session, [76, 77, 78, 79, 80, 81, 82, 79, 80, 85])

    assert fired(events) == [MonitorEvent.alert_fired(80)]
    assert listener.calls.count(("fired", 80)) == 1
    assert session.alert_armed is False


def test_reaching_target_skips_window_update():
    session = started_session(target=80)
    feed(session, [78, 79])
    session.ingest(80, True, 240.0)

    assert session.window.size() == 2
    assert session.state == MonitorState.ALERTED


def test_unplug_resets_and_rearms_alert():
    session = started_session(target=80)
    listener = RecordingListener()
    session.add_listener(listener)

    feed(session, [79, 80])
    reset_events = session.ingest(80, False, 300.0)
    assert reset_events == [MonitorEvent.alert_reset()]
    assert session.alert_armed is True
    assert session.state == MonitorState.WAITING_FOR_RATE

    refire = session.ingest(81, True, 400.0)

    assert fired(refire) == [MonitorEvent.alert_fired(80)]
    assert listener.calls == [("fired", 80), ("reset",), ("fired", 80)]


def test_unplug_without_alert_emits_nothing():
    session = started_session(target=80)
    feed(session, [60, 61])

    assert session.ingest(61, False, 300.0) == []
    assert session.window.size() == 0


def test_window_never_holds_unplugged_samples():
    session = started_session(target=90)
    feed(session, [60, 61, 62], charging=False)
    assert session.window.size() == 0

    feed(session, [62, 63], charging=True, start_at=1000.0)
    session.ingest(63, False, 1300.0)
    session.ingest(63, True, 1400.0)

    assert session.window.size() == 1


def test_replug_starts_new_history():
    session = started_session(target=90)
    feed(session, [60, 61, 62, 63, 64, 65])
    assert session.state == MonitorState.ESTIMATING

    session.ingest(65, False, 800.0)
    events = session.ingest(65, True, 900.0)

    assert events == []
    assert session.window.size() == 1


def test_restart_rearms_alert():
    session = started_session(target=80)
    feed(session, [80])
    assert session.alert_armed is False

    session.stop()
    session.start(80, READING)
    events = session.ingest(82, True, 10.0)

    assert fired(events) == [MonitorEvent.alert_fired(80)]


def test_out_of_range_levels_do_not_raise():
    session = started_session(target=90)
    assert session.ingest(-5, True, 0.0) == []
    assert fired(session.ingest(150, True, 2.0)) == [MonitorEvent.alert_fired(90)]


def test_failing_listener_does_not_block_others():
    class BrokenListener(MonitorListener):
        def on_alert_fired(self, target):
            raise RuntimeError("speaker unplugged")

    session = started_session(target=80)
    recorder = RecordingListener()
    session.add_listener(BrokenListener())
    session.add_listener(recorder)

    events = session.ingest(80, True, 0.0)

    assert fired(events) == [MonitorEvent.alert_fired(80)]
    assert recorder.calls == [("fired", 80)]


def test_snapshot_reports_last_transition():
    session = started_session(target=80)
    snapshot = session.snapshot()

    assert snapshot["current_state"] == "WAITING_FOR_RATE"
    assert snapshot["last_transition"]["from"] == "IDLE"
    assert snapshot["last_transition"]["to"] == "WAITING_FOR_RATE"
    assert snapshot["target"] == 80


def test_returning_to_target_after_dip_stays_alerted():
    session = started_session(target=80)
    events = feed(session, [74, 75, 76, 77, 78, 79, 80, 79, 81])

    assert session.state == MonitorState.ALERTED
    assert session.alert_armed is False
    assert len(fired(events)) == 1


def test_stop_after_alert_rearms():
    session = started_session(target=80)
    feed(session, [80])
    session.stop()

    assert session.alert_armed is True
    assert session.snapshot()["alert_armed"] is True

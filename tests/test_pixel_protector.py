import threading

import pytest

from command_utils import build_set_pixel
from pixel_protector import PixelProtector, Violation, ACTIVE, PAUSED, STOPPED
from protocol_errors import NoActiveRegion, EncodeRangeError


@pytest.fixture
def protector(transport, timers):
    return PixelProtector(transport.send, timer_factory=timers)


def live_timers(timers):
    return [t for t in timers.created if not t.cancelled]


def test_violation_schedules_fix_after_delay(protector, transport, timers):
    protector.protect(0, 0, 1, 1, 5)
    violation = protector.on_pixel_update(0, 0, 9)

    assert violation == Violation(x=0, y=0, actual_color=9, expected=5)
    assert transport.sent == []
    assert len(timers.created) == 1
    assert timers.created[0].interval == 2.0
    assert timers.created[0].daemon

    timers.created[0].fire()
    assert transport.sent == [build_set_pixel(0, 0, 5)]
    assert protector.pending_points() == []


def test_matching_color_is_not_a_violation(protector, transport, timers):
    protector.protect(0, 0, 3, 3, 5)
    assert protector.on_pixel_update(2, 2, 5) is None
    assert list(protector.violations) == []
    assert timers.created == []


def test_updates_outside_region_are_ignored(protector, timers):
    protector.protect(10, 10, 20, 20, 5)
    assert protector.on_pixel_update(9, 10, 1) is None
    assert protector.on_pixel_update(21, 20, 1) is None
    assert timers.created == []


def test_repeat_violations_coalesce_into_one_write(protector, transport, timers):
    protector.protect(0, 0, 3, 3, 5)
    protector.on_pixel_update(1, 1, 9)
    protector.set_pixel(1, 1, 6)
    protector.on_pixel_update(1, 1, 2)

    assert len(timers.created) == 2
    assert timers.created[0].cancelled
    assert protector.pending_points() == [(1, 1)]

    for timer in timers.created:
        timer.fire()
    assert transport.sent == [build_set_pixel(1, 1, 6)]


def test_superseded_callback_already_running_does_not_write(protector, transport, timers):
    protector.protect(0, 0, 3, 3, 5)
    protector.on_pixel_update(1, 1, 9)
    protector.on_pixel_update(1, 1, 8)
    first = timers.created[0]
    # a timer that had already started running when it was replaced
    first.function(*first.args)
    assert transport.sent == []


def test_distinct_points_get_their_own_fix(protector, transport, timers):
    protector.protect(0, 0, 3, 3, 5)
    protector.on_pixel_update(0, 0, 1)
    protector.on_pixel_update(3, 3, 1)
    assert protector.pending_points() == [(0, 0), (3, 3)]
    for timer in timers.created:
        timer.fire()
    assert sorted(transport.sent) == sorted([build_set_pixel(0, 0, 5), build_set_pixel(3, 3, 5)])


def test_stop_cancels_pending_fix(protector, transport, timers):
    protector.protect(0, 0, 1, 1, 5)
    protector.on_pixel_update(0, 0, 9)
    protector.stop()

    timer = timers.created[0]
    assert timer.cancelled
    timer.function(*timer.args)
    assert transport.sent == []
    assert protector.state == STOPPED
    assert protector.export_state() == {}


def test_pause_cancels_pending_and_ignores_events(protector, transport, timers):
    protector.protect(0, 0, 1, 1, 5)
    protector.on_pixel_update(0, 0, 9)
    protector.pause()

    assert protector.state == PAUSED
    assert timers.created[0].cancelled
    assert protector.on_pixel_update(1, 1, 9) is None
    assert len(timers.created) == 1

    protector.resume()
    assert protector.state == ACTIVE
    assert protector.on_pixel_update(1, 1, 9) == Violation(1, 1, 9, 5)


def test_resume_without_region_fails(protector):
    with pytest.raises(NoActiveRegion):
        protector.resume()
    assert protector.state == STOPPED


def test_auto_fix_off_reports_without_writing(transport, timers):
    protector = PixelProtector(transport.send, auto_fix=False, timer_factory=timers)
    protector.protect(0, 0, 1, 1, 5)
    assert protector.on_pixel_update(0, 0, 9) is not None
    assert timers.created == []


def test_disabling_auto_fix_cancels_pending(protector, transport, timers):
    protector.protect(0, 0, 1, 1, 5)
    protector.on_pixel_update(0, 0, 9)
    protector.set_auto_fix(False)
    assert timers.created[0].cancelled
    assert protector.pending_points() == []


def test_fix_delay_is_configurable(protector, timers):
    protector.set_fix_delay(500)
    protector.protect(0, 0, 1, 1, 5)
    protector.on_pixel_update(0, 0, 9)
    assert timers.created[0].interval == 0.5
    with pytest.raises(ValueError):
        protector.set_fix_delay(-1)


def test_on_violation_callback(transport, timers):
    seen = []
    protector = PixelProtector(transport.send, timer_factory=timers, on_violation=seen.append)
    protector.protect(0, 0, 1, 1, 5)
    protector.on_pixel_update(1, 0, 2)
    assert seen == [Violation(1, 0, 2, 5)]


def test_protect_materializes_every_point(protector):
    protector.protect(2, 3, 4, 4, 7)
    state = protector.export_state()
    assert len(state) == 6
    assert set(state.values()) == {7}
    assert (2, 3) in state and (4, 4) in state


def test_protect_normalizes_reversed_corners(protector):
    region = protector.protect(4, 4, 2, 3, 7)
    assert (region.x1, region.y1, region.x2, region.y2) == (2, 3, 4, 4)


def test_new_protect_replaces_region_and_cancels_fixes(protector, transport, timers):
    protector.protect(0, 0, 1, 1, 5)
    protector.on_pixel_update(0, 0, 9)
    protector.protect(10, 10, 11, 11, 3)

    assert timers.created[0].cancelled
    assert protector.pending_points() == []
    assert protector.on_pixel_update(0, 0, 9) is None
    assert protector.on_pixel_update(10, 10, 9) == Violation(10, 10, 9, 3)


def test_protect_rejects_bad_values_and_keeps_state(protector):
    protector.protect(0, 0, 1, 1, 5)
    with pytest.raises(EncodeRangeError):
        protector.protect(0, 0, 70000, 1, 5)
    with pytest.raises(EncodeRangeError):
        protector.protect(0, 0, 1, 1, 256)
    assert protector.status()['area'] == (0, 0, 1, 1)


def test_mutators_need_a_region(protector):
    with pytest.raises(NoActiveRegion):
        protector.set_pixel(0, 0, 1)
    with pytest.raises(NoActiveRegion):
        protector.set_area(0, 0, 1, 1, 1)
    with pytest.raises(NoActiveRegion):
        protector.load_template(0, 0, [[1]])
    with pytest.raises(NoActiveRegion):
        protector.import_state({(0, 0): 1})
    assert protector.export_state() == {}


def test_mutators_work_while_paused(protector):
    protector.protect(0, 0, 3, 3, 5)
    protector.pause()
    protector.set_pixel(0, 0, 1)
    assert protector.set_area(1, 1, 2, 2, 2) == 4
    state = protector.export_state()
    assert state[(0, 0)] == 1
    assert state[(2, 2)] == 2
    assert state[(3, 3)] == 5


def test_load_template_skips_transparent_cells(protector):
    protector.protect(0, 0, 9, 9, 0)
    heart = [
        [None, 3, None, 3, None],
        [3, 3, 3, 3, 3],
        [None, None, 3, None, None],
    ]
    assert protector.load_template(2, 4, heart) == 8
    state = protector.export_state()
    assert state[(3, 4)] == 3
    assert state[(2, 4)] == 0
    assert state[(4, 6)] == 3
    assert protector.on_pixel_update(3, 4, 0) == Violation(3, 4, 0, 3)


def test_export_import_round_trip(transport, timers):
    first = PixelProtector(transport.send, timer_factory=timers)
    first.protect(0, 0, 2, 2, 4)
    first.set_pixel(1, 1, 9)
    exported = first.export_state()

    second = PixelProtector(transport.send, timer_factory=timers)
    second.protect(0, 0, 2, 2, 0)
    assert second.import_state(exported) == 9
    assert second.export_state() == exported
    assert second.expected_color(1, 1) == 9


def test_import_checks_key_and_value_types(protector):
    protector.protect(0, 0, 1, 1, 5)
    with pytest.raises(TypeError):
        protector.import_state({"0,0": 1})
    with pytest.raises(TypeError):
        protector.import_state({(0, 0): "red"})
    assert protector.export_state()[(0, 0)] == 5


def test_import_rejects_unencodable_colors(protector):
    protector.protect(0, 0, 1, 1, 5)
    with pytest.raises(EncodeRangeError):
        protector.import_state({(0, 0): 1, (1, 1): 300})
    assert protector.export_state()[(0, 0)] == 5
    assert protector.export_state()[(1, 1)] == 5


def test_status(protector):
    assert protector.status()['state'] == STOPPED
    protector.protect(0, 0, 3, 1, 5)
    protector.set_pixel(0, 0, 2)
    status = protector.status()
    assert status['state'] == ACTIVE
    assert status['size'] == (4, 2)
    assert status['pixels'] == 8
    assert status['unique_colors'] == 2


def test_real_timer_writes_fix(transport):
    done = threading.Event()

    def send(packet):
        transport.send(packet)
        done.set()

    protector = PixelProtector(send, fix_delay_ms=20)
    protector.protect(0, 0, 1, 1, 5)
    protector.on_pixel_update(1, 1, 0)
    assert done.wait(2.0)
    assert transport.sent == [build_set_pixel(1, 1, 5)]

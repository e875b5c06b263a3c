import inspect
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from decrust.backtrace import BacktraceStatus, DecrustBacktrace
from decrust.implicit import (
    Location,
    ThreadId,
    Timestamp,
    implicit_data,
    location,
)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Recorder:
    """Implicit-data kind that records how it was generated."""

    def __init__(self, how, payload=None):
        self.how = how
        self.payload = payload

    @classmethod
    def generate(cls):
        return cls("plain")

    @classmethod
    def generate_with_context(cls, context):
        return cls("context", dict(context))

    @classmethod
    def generate_with_source(cls, source):
        return cls("source", source)


class PlainOnly:
    def __init__(self, how):
        self.how = how

    @classmethod
    def generate(cls):
        return cls("plain")


def test_timestamp_format_pinned():
    ts = Timestamp.from_system_time(EPOCH + timedelta(seconds=5, milliseconds=250))
    assert str(ts) == "5.250 (epoch: 5)"
    assert ts.formatted == str(ts)


def test_timestamp_before_epoch_is_invalid():
    ts = Timestamp.from_system_time(EPOCH - timedelta(seconds=1))
    assert str(ts) == "<invalid timestamp>"


def test_timestamp_naive_is_utc():
    naive = datetime(2020, 1, 1)
    aware = datetime(2020, 1, 1, tzinfo=timezone.utc)
    assert Timestamp.from_system_time(naive) == Timestamp.from_system_time(aware)


def test_timestamp_now_within_bounds():
    before = datetime.now(timezone.utc)
    ts = Timestamp.now()
    after = datetime.now(timezone.utc)
    assert before <= ts.instant <= after


def test_timestamp_generate_with_context_uses_seconds():
    ts = Timestamp.generate_with_context({"timestamp": "1700000000"})
    assert ts.instant == EPOCH + timedelta(seconds=1700000000)
    assert ts.formatted.startswith("1700000000.000")


@pytest.mark.parametrize("value", ["abc", "-5", "1.5", ""])
def test_timestamp_generate_with_context_falls_back_to_now(value):
    before = datetime.now(timezone.utc)
    ts = Timestamp.generate_with_context({"timestamp": value})
    assert ts.instant >= before


def test_timestamp_generate_is_current():
    before = datetime.now(timezone.utc)
    assert Timestamp.generate().instant >= before


def test_thread_id_current():
    tid = ThreadId.current()
    assert tid.ident == threading.get_ident()
    assert tid.name == threading.current_thread().name


def test_thread_id_formatted_with_name():
    tid = ThreadId.from_components(7, "worker")
    assert str(tid) == "worker(7)"


def test_thread_id_formatted_without_name():
    tid = ThreadId.from_components(7, None)
    assert str(tid) == str(7)
    assert tid.name is None


def test_thread_id_in_other_thread():
    local = ThreadId.generate()
    assert local.ident == threading.get_ident()

    def make_thread_id():
        return ThreadId.generate()

    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="helper") as pool:
        tid = pool.submit(make_thread_id).result()
        helper_ident = pool.submit(threading.get_ident).result()
    assert tid.name == "helper_0"
    assert tid.ident == helper_ident
    assert str(tid) == f"helper_0({helper_ident})"


def test_thread_id_generate_with_context_ignores_context():
    tid = ThreadId.generate_with_context({"anything": "x"})
    assert tid == ThreadId.current()


def test_location_plain_formatted_defaults_to_position():
    loc = Location("a.py", 1, 2)
    assert loc.formatted() == str(loc)


def test_location_with_context_and_function_pinned():
    loc = Location.with_context_and_function("a.py", 1, 2, "ctx", "f")
    assert loc.formatted() == "a.py:1:2 in f (ctx)"


def test_location_variants_keep_position_in_str():
    base = str(Location("a.py", 1, 2))
    ctx = Location.with_context("a.py", 1, 2, "ctx")
    fn = Location.with_function("a.py", 1, 2, "f")
    assert str(ctx) == base and str(fn) == base
    assert ctx.formatted() == base + " (ctx)"
    assert fn.formatted() == base + " in f"


def test_location_reports_caller():
    loc = location()
    line = inspect.currentframe().f_lineno - 1
    assert loc.file == __file__
    assert loc.line == line
    assert loc.column >= 1
    assert loc.formatted() == str(loc)


def test_location_with_descriptions():
    assert location(context="c").formatted().endswith(" (c)")
    assert location(function="fn").formatted().endswith(" in fn")
    assert location(context="c", function="fn").formatted().endswith(" in fn (c)")


def test_implicit_data_plain():
    assert implicit_data(Recorder).how == "plain"
    assert implicit_data(ThreadId) == ThreadId.current()


def test_implicit_data_context_passed_through():
    result = implicit_data(Recorder, context={"k": "v"})
    assert result.how == "context"
    assert result.payload == {"k": "v"}


def test_implicit_data_force_and_timestamp():
    result = implicit_data(Recorder, force=True, timestamp=42)
    assert result.payload == {"force_backtrace": "true", "timestamp": "42"}


def test_implicit_data_timestamp_kind():
    ts = implicit_data(Timestamp, timestamp=42)
    assert ts.instant == EPOCH + timedelta(seconds=42)


def test_implicit_data_with_location():
    result = implicit_data(Recorder, with_location=True)
    line = inspect.currentframe().f_lineno - 1
    assert result.payload["file"] == __file__
    assert result.payload["line"] == str(line)
    assert int(result.payload["column"]) >= 1


def test_implicit_data_source():
    error = ValueError("boom")
    result = implicit_data(Recorder, source=error)
    assert result.how == "source"
    assert result.payload is error


def test_implicit_data_source_falls_back_to_generate():
    assert implicit_data(PlainOnly, source=ValueError()).how == "plain"


def test_implicit_data_source_with_context_rejected():
    with pytest.raises(TypeError):
        implicit_data(Recorder, source=ValueError(), force=True)


def test_implicit_data_forced_backtrace():
    bt = implicit_data(DecrustBacktrace, force=True)
    assert bt.status() is BacktraceStatus.CAPTURED
    assert bt.extract_frames()
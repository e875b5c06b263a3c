# decrust

Backtrace capture and implicit context data for error reports. It has no
dependencies outside the standard library.

## `decrust.backtrace`

- `DecrustBacktrace` holds a stack backtrace and records when and on which
  thread it was created. It has the attributes `capture_enabled`,
  `capture_timestamp` (an aware UTC `datetime`), `thread_id` and `thread_name`.
  - `DecrustBacktrace.capture()` records the current call stack only when the
    environment asks for it. `DECRUST_LIB_BACKTRACE` is checked first and
    `DECRUST_BACKTRACE` second. Capture is on when the variable is `1` or
    `full`, in any letter case. The decision is read from `os.environ` once
    per process.
  - `force_capture()` always records, and `disabled()` never does.
    `from_text(text)` wraps a backtrace that has already been rendered.
  - `generate()` and `generate_with_source(source)` behave like `capture()`.
    `generate_with_context(context)` forces capture when
    `context["force_backtrace"] == "true"`.
  - `status()` returns `BacktraceStatus.CAPTURED` or `BacktraceStatus.DISABLED`.
    The enum also has the member `UNSUPPORTED`.
  - `extract_frames()` returns `BacktraceFrame` records, innermost frame first.
    Frames inside the library's own module are left out. `as_text()` returns
    the rendered text, or `None` if the backtrace is disabled.
  - `copy()` takes a new backtrace with the same capture setting.
  - `str()` gives a header with the capture time and thread, followed by the
    frames. A disabled backtrace gives `<backtrace disabled>` instead.
- `BacktraceFrame(symbol, file, line, column)` is a frozen dataclass. Its
  `str()` form is `symbol at file:line:column`, with unknown parts left off.
- `parse_frame_line(line)` reads one line of backtrace text such as
  `   0: handler at /srv/app.py:12:5`. It returns `None` if the line is not a
  frame. `parse_location(location)` splits `file:line:column`, and a number
  that does not parse becomes `None`. `parse_backtrace_text(text)` parses every
  frame line of a block of text.
- `should_capture_from_env(environ=None)` applies the environment rule above
  to any mapping. With no argument it uses `os.environ`.

## `decrust.implicit`

- `Timestamp` holds the fields `instant` and `formatted`. The formatted text
  has the form `1000.000 (epoch: 1000)`. Build one with `Timestamp.now()` or
  `Timestamp.from_system_time(dt)`; a naive `datetime` is taken as UTC.
  `generate_with_context(context)` uses `context["timestamp"]` as seconds since
  the epoch. If that value is missing or does not parse, it uses the current
  time.
- `ThreadId` holds `ident`, `name` and `formatted`, where the text has the
  form `name(ident)`. Build one with `ThreadId.current()` or
  `ThreadId.from_components(ident, name)`.
- `Location(file, line, column)` describes a position in code. The
  constructors `with_context`, `with_function` and `with_context_and_function`
  add a description. `formatted()` returns the full description, while
  `str()` is always `file:line:column`.
- `location(context=None, function=None)` returns the position of its own
  call. The column is exact on Python 3.11 and later; on 3.10 it is `1`.
- `implicit_data(kind, context=None, source=None, force=False, timestamp=None, with_location=False)`
  calls `kind.generate()`, `kind.generate_with_source(source)` or
  `kind.generate_with_context(...)`. The options `force`, `timestamp` and
  `with_location` add the keys `force_backtrace`, `timestamp` and
  `file`/`line`/`column` to the context. Passing `source` together with any of
  the context options raises `TypeError`.

## Example

```python
from decrust.backtrace import BacktraceStatus, DecrustBacktrace
from decrust.implicit import Timestamp, implicit_data, location

bt = DecrustBacktrace.force_capture()
assert bt.status() is BacktraceStatus.CAPTURED
for frame in bt.extract_frames():
    print(frame)

print(location(function="handler").formatted())  # e.g. app.py:7:7 in handler
print(implicit_data(Timestamp, timestamp=1000))  # 1000.000 (epoch: 1000)
print(implicit_data(DecrustBacktrace, force=True).status())  # BacktraceStatus.CAPTURED
```

## What it does not do

The package supplies data to attach to errors. It defines no error types of
its own, does not analyse errors or suggest fixes, and has no command-line
tool.

## Installing and testing

```
pip install .
pip install ".[test]"
pytest
```
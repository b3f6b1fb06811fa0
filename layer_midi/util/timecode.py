from __future__ import annotations


def format_seconds(value: float) -> str:
    """Format a time in seconds as a signed clock string.

    ``+m:ss.sss`` below an hour, ``+h:mm:ss.sss`` below a day and
    ``+d:hh:mm:ss.sss`` beyond that.
    """

    v = float(value)
    sign = "-" if v < 0 else "+"
    v = abs(v)

    d, v = divmod(v, 86400.0)
    h, v = divmod(v, 3600.0)
    m, s = divmod(v, 60.0)
    d, h, m = int(d), int(h), int(m)

    if d == 0 and h == 0:
        return f"{sign}{m}:{s:06.3f}"
    if d == 0:
        return f"{sign}{h}:{m:02d}:{s:06.3f}"
    return f"{sign}{d}:{h:02d}:{m:02d}:{s:06.3f}"

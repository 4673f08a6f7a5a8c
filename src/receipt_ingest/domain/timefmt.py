from time import perf_counter


def elapsed_ms(started_at: float) -> int:
    """Milliseconds since a ``perf_counter()`` reading."""
    return max(0, int(round((perf_counter() - started_at) * 1000)))


def format_duration(milliseconds: float) -> str:
    if milliseconds <= 0:
        return "0 ms"
    if milliseconds < 1000:
        return f"{milliseconds:.0f} ms"
    seconds = milliseconds / 1000
    if seconds < 60:
        return f"{seconds:.2f} s"
    return f"{seconds / 60:.2f} min"

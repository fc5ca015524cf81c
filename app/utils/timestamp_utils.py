"""
Timestamp utility functions for talking to the clip worker.

The worker takes trim boundaries as wall-clock style "HH:MM:SS" strings,
while clips are stored with second offsets.
"""


def seconds_to_hhmmss(seconds: float) -> str:
    """
    Convert a second offset to an "HH:MM:SS" string, truncating fractions.

    Example:
        >>> seconds_to_hhmmss(3725.9)
        '01:02:05'
    """
    if seconds < 0:
        raise ValueError(f"Timestamp must be non-negative, got {seconds}")

    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"

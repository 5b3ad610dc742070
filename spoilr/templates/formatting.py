"""Human-readable formatting of probe values for template output."""

from typing import Optional

_CHANNEL_NAMES = {
    1: "1 channel (mono)",
    2: "2 channels (stereo)",
    6: "6 channels (5.1)",
    8: "8 channels (7.1)",
}


def format_file_size(size_bytes: int) -> str:
    unit = 1024
    if size_bytes < unit:
        return f"{size_bytes} B"
    div, exp = unit, 0
    n = size_bytes // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size_bytes / div:.1f} {'KMGTPE'[exp]}B"


def format_duration(seconds: Optional[float]) -> str:
    if seconds is None or seconds < 0:
        return ""
    total = int(seconds)
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"


def format_bit_rate(bits_per_second: Optional[int]) -> str:
    if not bits_per_second:
        return ""
    kbps = bits_per_second / 1000
    if kbps >= 1000:
        return f"{kbps / 1000:.1f} Mbps"
    return f"{kbps:.0f} kbps"


def format_sample_rate(hz: Optional[int]) -> str:
    if not hz:
        return ""
    if hz >= 1000:
        return f"{hz / 1000:.1f} kHz"
    return f"{hz} Hz"


def format_channels(channels: Optional[int]) -> str:
    if not channels:
        return ""
    return _CHANNEL_NAMES.get(channels, f"{channels} channels")


def format_fps(fps: Optional[float]) -> str:
    if not fps:
        return ""
    return f"{fps:.3f}"

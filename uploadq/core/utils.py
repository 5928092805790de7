"""Display helpers for sizes, speeds and durations."""
import math
from typing import Optional

_SIZE_UNITS = ('Bytes', 'KB', 'MB', 'GB', 'TB')


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_file_size(num_bytes: Optional[float]) -> str:
    """Formats a byte count, e.g. 1536 -> '1.5 KB'."""
    if not num_bytes or num_bytes <= 0:
        return '0 Bytes'
    index = 0
    scaled = float(num_bytes)
    while scaled >= 1024 and index < len(_SIZE_UNITS) - 1:
        scaled /= 1024
        index += 1
    value = ('%.2f' % scaled).rstrip('0').rstrip('.')
    return f"{value} {_SIZE_UNITS[index]}"


def format_speed(bytes_per_second: Optional[float]) -> str:
    """Formats a transfer rate, e.g. 2048 -> '2 KB/s'."""
    return format_file_size(bytes_per_second) + '/s'


def format_time_remaining(seconds: Optional[float]) -> str:
    """Formats an ETA as '45s', '3m' or '2h'; empty when unknown."""
    if not seconds or seconds <= 0:
        return ''
    if seconds < 60:
        return f"{_round_half_up(seconds)}s"
    if seconds < 3600:
        return f"{_round_half_up(seconds / 60)}m"
    return f"{_round_half_up(seconds / 3600)}h"

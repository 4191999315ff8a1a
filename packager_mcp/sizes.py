from __future__ import annotations

_UNITS = ("KB", "MB", "GB", "TB")


def format_file_size(size: int) -> str:
    """Human-readable size: ``512 B``, ``1.50 KB``, ``2.00 MB``."""
    if size < 1024:
        return f"{size} B"
    value = float(size)
    unit = _UNITS[0]
    for unit in _UNITS:
        value /= 1024.0
        if value < 1024.0:
            break
    return f"{value:.2f} {unit}"


def reduction_ratio(source_size: int, output_size: int) -> str:
    """Percentage decrease from source to output, two decimals.

    An empty source reports ``0.00``.
    """
    if source_size == 0:
        return "0.00"
    return f"{(source_size - output_size) / source_size * 100:.2f}"

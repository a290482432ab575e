"""Human-readable disk size parsing ("100M", "1G", "2T" -> megabytes)."""

from __future__ import annotations

import re

from .errors import InvalidSizeFormat

_SIZE_RE = re.compile(r"^(?P<number>\d+(?:\.\d+)?)(?P<unit>[MGT]?)$")

# SizeMb is an xs:long on the wire
MAX_SIZE_MB = 2**63 - 1

_MULTIPLIERS = {
    "": 1,
    "M": 1,
    "G": 1024,
    "T": 1024 * 1024,
}


def parse_size_mb(value: str | int) -> int:
    """Convert a size string to an integer number of megabytes.

    A bare number means megabytes. Fractions are only honoured for G and T,
    where the product is truncated to a whole megabyte.
    """
    if isinstance(value, int):
        return _bounded(value, str(value))
    text = str(value).strip()
    match = _SIZE_RE.match(text)
    if not match:
        raise InvalidSizeFormat(text)
    number, unit = match.group("number"), match.group("unit")
    if len(number.split(".")[0].lstrip("0")) > len(str(MAX_SIZE_MB)):
        raise InvalidSizeFormat(text)
    if unit in ("", "M"):
        if "." in number:
            raise InvalidSizeFormat(text)
        return _bounded(int(number), text)
    product = float(number) * _MULTIPLIERS[unit]
    if product > MAX_SIZE_MB:
        raise InvalidSizeFormat(text)
    return _bounded(int(product), text)


def _bounded(size_mb: int, text: str) -> int:
    if size_mb > MAX_SIZE_MB:
        raise InvalidSizeFormat(text)
    return size_mb

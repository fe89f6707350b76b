"""HTTP Range header parsing for single byte ranges.

Only `bytes=<start>-` and `bytes=<start>-<end>` are understood. Suffix
ranges (`bytes=-500`) and multi-range headers (`bytes=0-10,20-30`) are not
supported and fail the same way as any malformed header, so a seeking
player never silently receives the whole file.
"""

import re
from dataclasses import dataclass
from typing import Optional

from ..core.errors import RangeNotSatisfiableError

_RANGE_RE = re.compile(r"bytes=([0-9]+)-([0-9]*)")


@dataclass(frozen=True)
class RangeSpec:
    """Validated inclusive byte interval within a blob."""

    start: int
    end: int
    is_partial: bool

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, total_size: int) -> str:
        return f"bytes {self.start}-{self.end}/{total_size}"


def unsatisfied_content_range(total_size: int) -> str:
    """Content-Range value for a 416 response."""
    return f"bytes */{total_size}"


def parse_range(header: Optional[str], total_size: int) -> RangeSpec:
    """Parse a Range header against a known blob size.

    Args:
        header: Raw Range header value, or None when absent
        total_size: Byte length of the blob

    Returns:
        RangeSpec with 0 <= start <= end <= total_size - 1

    Raises:
        RangeNotSatisfiableError: If the header is malformed or the range
            falls outside the blob
    """
    if header is None or not header.strip():
        if total_size <= 0:
            raise RangeNotSatisfiableError("track has no audio data", total_size)
        return RangeSpec(start=0, end=total_size - 1, is_partial=False)

    match = _RANGE_RE.fullmatch(header.strip())
    if not match:
        raise RangeNotSatisfiableError(
            f"unsupported range header: {header!r}", total_size
        )

    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else total_size - 1

    if end >= total_size:
        end = total_size - 1

    if start >= total_size or end < start:
        raise RangeNotSatisfiableError(
            f"range {header.strip()!r} not satisfiable for {total_size} bytes",
            total_size,
        )

    return RangeSpec(start=start, end=end, is_partial=True)

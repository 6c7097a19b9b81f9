"""Output dimension resolution under the aspect-ratio policy."""

from __future__ import annotations

import math


def _round_dimension(value: float) -> int:
    return max(1, math.floor(value + 0.5))


def resolve_dimensions(
    original_width: int,
    original_height: int,
    requested_width: int,
    requested_height: int,
    maintain_aspect_ratio: bool,
) -> tuple[int, int]:
    """Return the final ``(width, height)`` for a resize request.

    With the aspect lock on, the result fits inside the requested box: the
    bound that would be exceeded is kept and the other side is derived from
    the original ratio. Without it, the requested box is returned verbatim.

    Raises:
        ValueError: If any dimension is not positive.
    """
    if min(original_width, original_height, requested_width, requested_height) <= 0:
        raise ValueError(
            f"Dimensions must be positive: original {original_width}x{original_height}, "
            f"requested {requested_width}x{requested_height}"
        )

    if not maintain_aspect_ratio:
        return requested_width, requested_height

    original_ratio = original_width / original_height
    width: float = requested_width
    height: float = requested_height
    if requested_width / requested_height > original_ratio:
        width = requested_height * original_ratio
    else:
        height = requested_width / original_ratio
    return _round_dimension(width), _round_dimension(height)

# billify/domain/geometry.py
import math

DEFAULT_GRID_SIZE = 10


def snap(value: float, grid_size: float = DEFAULT_GRID_SIZE, enabled: bool = True) -> float:
    """Quantize ``value`` to the nearest multiple of ``grid_size``.

    Identity when snapping is disabled. ``snap(snap(v)) == snap(v)``.
    """
    if not enabled:
        return value
    if grid_size <= 0:
        raise ValueError("grid_size must be positive")
    # Halves round up
    return math.floor(value / grid_size + 0.5) * grid_size


def screen_to_layout(value: float, zoom: float) -> float:
    # zoom is a percentage, 100 == 1:1
    return value / (zoom / 100)

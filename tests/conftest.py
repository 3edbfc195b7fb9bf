import pytest

from cloth.models import GridParams


def pin_origin(col: int, row: int) -> bool:
    return col == 0 and row == 0


@pytest.fixture
def unit_params() -> GridParams:
    """3x3 particles, unit spacing, only the top-left corner pinned."""
    return GridParams(width=2.0, height=2.0, segments_x=2, segments_y=2, is_pinned=pin_origin)


@pytest.fixture
def cape_params() -> GridParams:
    return GridParams()

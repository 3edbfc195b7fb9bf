from collections.abc import Callable

import numpy as np
import numpy.typing as npt

FACE = npt.NDArray[np.int32]
INDEX = npt.NDArray[np.int32]
KINDS = npt.NDArray[np.int8]
MASK = npt.NDArray[np.bool_]
VEC3S = npt.NDArray[np.float64]
SCALARS = npt.NDArray[np.float64]
UV = npt.NDArray[np.float32]
VIEW = npt.NDArray[np.float32]
PROJ = npt.NDArray[np.float32]
PIN_PREDICATE = Callable[[int, int], bool]

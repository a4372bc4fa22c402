import sys
from pathlib import Path

import numpy as np
import pytest


TESTS_DIR = Path(__file__).resolve().parent
REPO_ROOT = TESTS_DIR.parent

for path in (str(REPO_ROOT), str(TESTS_DIR)):
    if path not in sys.path:
        sys.path.insert(0, path)


from hands import make_hand  # noqa: E402


@pytest.fixture
def open_hand():
    return make_hand([2.0, 2.1, 2.3, 2.2, 1.9])


@pytest.fixture
def closed_hand():
    # Same hand with the pinky curled (ratio 1.5)
    return make_hand([2.0, 2.1, 2.3, 2.2, 1.5])


@pytest.fixture
def gray_frame():
    return np.full((48, 64, 3), 128, dtype=np.uint8)

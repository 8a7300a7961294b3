"""Shared test configuration.

The repository root is put on ``sys.path`` so the tests import the working
tree, and the fixtures below hand out fresh store doubles.
"""

import os
import sys

import pytest

ROOT_DIR = os.path.abspath(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from studio_match.adapters.memory import MemoryClient  # noqa: E402
from studio_match.notices import RecordingNotifier  # noqa: E402


@pytest.fixture
def client() -> MemoryClient:
    return MemoryClient()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()

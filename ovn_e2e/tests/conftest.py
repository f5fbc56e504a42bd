import os
import sys

import pytest

# Put the repository root on sys.path so `ovn_e2e` and `fakes` import
base_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
sys.path.append(base_dir)
sys.path.append(os.path.dirname(__file__))

from ovn_e2e.config import HarnessConfig
from fakes import FakeClock, FakeCluster, FakeHostRuntime


@pytest.fixture
def config():
    return HarnessConfig()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cluster():
    return FakeCluster()


@pytest.fixture
def runtime():
    return FakeHostRuntime()

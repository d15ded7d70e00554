import random

import pytest

from cluster_engine.utils.engine_config import load_engine_config


@pytest.fixture(scope="session")
def engine_config():
    return load_engine_config()


@pytest.fixture
def rng():
    return random.Random(20240601)

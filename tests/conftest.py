"""
Shared pytest fixtures for tournament draw tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os
import yaml

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tourney.models import Participant


def make_participants(count, seeds=0, prefix='P'):
    """Participants P1..Pcount; the first `seeds` of them get seeds 1..seeds."""
    return [
        Participant(id=f'{prefix}{i}', name=f'{prefix}{i}', seed=i if i <= seeds else None)
        for i in range(1, count + 1)
    ]


def identity_shuffle(items):
    return list(items)


@pytest.fixture
def no_shuffle():
    """Deterministic shuffle that keeps the input order."""
    return identity_shuffle


@pytest.fixture
def eight_participants():
    return make_participants(8, seeds=4)


@pytest.fixture
def client():
    """Create a test client."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the app at an empty data directory with a fixed random seed."""
    import app as app_module

    (tmp_path / 'settings.yaml').write_text(yaml.dump({'random_seed': 42}, default_flow_style=False))
    monkeypatch.setattr(app_module, 'DATA_DIR', str(tmp_path))
    return tmp_path

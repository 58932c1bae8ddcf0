"""
Tournament settings stored as YAML and merged over defaults.
"""
import logging
import os

import yaml

from tourney.advancement import WINNER_CHANGE_POLICIES
from tourney.elimination import PLACEMENT_SEQUENTIAL, PLACEMENT_STANDARD
from tourney.errors import InvalidSettings

logger = logging.getLogger(__name__)

PLAYOFF_PLACEMENTS = (PLACEMENT_SEQUENTIAL, PLACEMENT_STANDARD)


def get_default_settings():
    """Return default settings."""
    return {
        'bracket_has_bronze_match': True,
        'group_count': 1,
        'qualifiers_per_group': 2,
        'playoff_placement': 'sequential',
        'extended_tiebreaks': False,
        'winner_change_policy': 'overwrite',
        'random_seed': None,
    }


def validate_settings(settings: dict) -> dict:
    """Check the types of known keys. Unknown keys pass through untouched."""
    for key in ('bracket_has_bronze_match', 'extended_tiebreaks'):
        if not isinstance(settings.get(key), bool):
            raise InvalidSettings(f"{key} must be true or false, got {settings.get(key)!r}")

    for key in ('group_count', 'qualifiers_per_group'):
        value = settings.get(key)
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise InvalidSettings(f"{key} must be a positive integer, got {value!r}")

    seed = settings.get('random_seed')
    if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
        raise InvalidSettings(f"random_seed must be an integer or null, got {seed!r}")

    if settings.get('playoff_placement') not in PLAYOFF_PLACEMENTS:
        raise InvalidSettings(f"playoff_placement must be one of {', '.join(PLAYOFF_PLACEMENTS)}")
    if settings.get('winner_change_policy') not in WINNER_CHANGE_POLICIES:
        raise InvalidSettings(f"winner_change_policy must be one of {', '.join(WINNER_CHANGE_POLICIES)}")
    return settings


def merge_settings(data) -> dict:
    """Merge a partial settings mapping over the defaults and validate it."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidSettings(f"Settings must be a mapping, got {type(data).__name__}")
    return validate_settings({**get_default_settings(), **data})


def load_settings(path: str) -> dict:
    """Load settings from a YAML file, merging with defaults."""
    if not os.path.exists(path):
        return get_default_settings()
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise InvalidSettings(f"Could not parse {path}: {e}") from e
    logger.debug(f"Loaded settings from {path}")
    return merge_settings(data)


def save_settings(path: str, settings: dict):
    """Save settings to a YAML file."""
    with open(path, 'w', encoding='utf-8') as f:
        yaml.dump(settings, f, default_flow_style=False)

"""ClientConfig: defaults, limit clamping, dict and environment loading."""

import logging

import pytest

from mongoadmin import ClientConfig, InvalidArgumentError


def test_defaults():
    config = ClientConfig()
    assert config.admin_database == "admin"
    assert config.temp_collection == "temp"
    assert config.default_query_limit == 50
    assert config.limit_threshold == 51
    assert config.stats_scale == 1


@pytest.mark.parametrize("requested,effective", [
    (0, 50), (1, 1), (10, 10), (50, 50), (51, 51), (52, 50), (200, 50), (-5, -5),
])
def test_effective_limit(requested, effective):
    assert ClientConfig().effective_limit(requested) == effective


def test_round_trip_through_dict():
    config = ClientConfig(default_query_limit=20, limit_threshold=25)
    assert ClientConfig.from_dict(config.to_dict()) == config


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(InvalidArgumentError):
        ClientConfig.from_dict({"no_such_setting": 1})


def test_from_env():
    config = ClientConfig.from_env({
        "MONGOADMIN_ADMIN_DATABASE": "root",
        "MONGOADMIN_DEFAULT_QUERY_LIMIT": "10",
        "MONGOADMIN_LIMIT_THRESHOLD": "11",
        "UNRELATED": "x",
    })
    assert config.admin_database == "root"
    assert config.default_query_limit == 10
    assert config.limit_threshold == 11


def test_from_env_rejects_non_integer():
    with pytest.raises(InvalidArgumentError):
        ClientConfig.from_env({"MONGOADMIN_STATS_SCALE": "big"})


@pytest.mark.parametrize("kwargs", [
    {"default_query_limit": 0},
    {"default_query_limit": 60},
    {"stats_scale": 0},
    {"admin_database": ""},
    {"log_level": "LOUD"},
])
def test_invalid_values(kwargs):
    with pytest.raises(InvalidArgumentError):
        ClientConfig(**kwargs)


def test_log_level_applied():
    logger = logging.getLogger("mongoadmin")
    previous = logger.level
    try:
        ClientConfig(log_level="debug").apply_logging()
        assert logger.level == logging.DEBUG
    finally:
        logger.setLevel(previous)

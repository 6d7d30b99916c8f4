import logging

import pytest

from restic_operator import config as config_module
from restic_operator.config import DEFAULT_RESTICPROFILE_IMAGE, OperatorConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ('OPERATOR_NAMESPACE', 'LOG_LEVEL', 'REQUEUE_INTERVAL', 'ERROR_REQUEUE_INTERVAL',
                 'MAX_WORKERS', 'RESTICPROFILE_IMAGE'):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, '_config', None)


def test_defaults():
    config = OperatorConfig.from_env()

    assert config.namespace is None
    assert config.requeue_interval == 10.0
    assert config.error_requeue_interval == 5.0
    assert config.max_workers == 10
    assert config.default_image == DEFAULT_RESTICPROFILE_IMAGE
    assert config.log_level == 'INFO'
    assert config.log_level_number == logging.INFO
    config.validate()


def test_from_env(monkeypatch):
    monkeypatch.setenv('OPERATOR_NAMESPACE', 'backups')
    monkeypatch.setenv('LOG_LEVEL', 'debug')
    monkeypatch.setenv('REQUEUE_INTERVAL', '60')
    monkeypatch.setenv('ERROR_REQUEUE_INTERVAL', '2.5')
    monkeypatch.setenv('MAX_WORKERS', '3')
    monkeypatch.setenv('RESTICPROFILE_IMAGE', 'registry.local/resticprofile')

    config = OperatorConfig.from_env()

    assert config.namespace == 'backups'
    assert config.requeue_interval == 60.0
    assert config.error_requeue_interval == 2.5
    assert config.max_workers == 3
    assert config.default_image == 'registry.local/resticprofile'
    assert config.log_level_number == logging.DEBUG


@pytest.mark.parametrize('name, value', [
    ('REQUEUE_INTERVAL', 'soon'),
    ('MAX_WORKERS', '2.5'),
])
def test_from_env_rejects_garbage(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError, match=name):
        OperatorConfig.from_env()


@pytest.mark.parametrize('overrides', [
    {'requeue_interval': 0},
    {'error_requeue_interval': -1},
    {'requeue_interval': 3.0, 'error_requeue_interval': 5.0},
    {'max_workers': 0},
    {'log_level': 'CHATTY'},
    {'default_image': ''},
])
def test_validate_rejects(overrides):
    with pytest.raises(ValueError):
        OperatorConfig(**overrides).validate()


def test_get_config_is_cached():
    assert config_module.get_config() is config_module.get_config()


def test_set_config_validates():
    with pytest.raises(ValueError):
        config_module.set_config(OperatorConfig(max_workers=0))

    replacement = OperatorConfig(namespace='backups')
    config_module.set_config(replacement)

    assert config_module.get_config() is replacement

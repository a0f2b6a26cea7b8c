from config import DevelopmentConfig, TestingConfig, get_config, validate_config
from zero_proxy.modules import get_module_info


def settings(**overrides):
    values = {
        'CODE_ROTATION_SECONDS': 10,
        'SCHEDULE_OVERLAP_POLICY': 'first',
        'CODE_PREFIX': 'ZP',
    }
    values.update(overrides)
    return values


def test_get_config_by_name(monkeypatch):
    assert get_config('testing') is TestingConfig
    assert get_config('unknown') is DevelopmentConfig

    monkeypatch.setenv('FLASK_ENV', 'testing')
    assert get_config() is TestingConfig


def test_validate_config_accepts_defaults():
    assert validate_config(settings()) == []


def test_validate_config_reports_each_problem():
    errors = validate_config(settings(CODE_ROTATION_SECONDS=0, SCHEDULE_OVERLAP_POLICY='random', CODE_PREFIX=''))

    assert len(errors) == 3
    assert any('CODE_ROTATION_SECONDS' in error for error in errors)
    assert any("'random'" in error for error in errors)


def test_module_info_lists_session_manager():
    info = get_module_info()

    assert 'session_manager' in info
    assert 'code_rotator' in info

import pytest

from config.base import _coerce_bool, _parse_adapter_list, _parse_int_list
from config.validation import validate_and_exit, validate_environment

PRODUCTION_ENV = {
    "SECRET_KEY": "a" * 64,
    "DATABASE_URL": "postgresql://museum@localhost/museum",
}


@pytest.fixture
def production_env(monkeypatch):
    for key in (
        "IMPORTER_ENABLED",
        "IMPORTER_ADAPTERS",
        "IMPORTER_WORKER_ENABLED",
        "OPENSEA_API_KEY",
        "IMPORTER_API_TOKEN",
        "CELERY_BROKER_URL",
    ):
        monkeypatch.delenv(key, raising=False)
    for key, value in PRODUCTION_ENV.items():
        monkeypatch.setenv(key, value)
    return monkeypatch


def test_validation_skipped_outside_production(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)

    assert validate_environment("development") == (True, [])
    assert validate_environment("testing") == (True, [])


def test_production_requires_secret_and_database(production_env):
    production_env.setenv("SECRET_KEY", "your-secret-key")
    production_env.delenv("DATABASE_URL")

    is_valid, errors = validate_environment("production")

    assert is_valid is False
    assert any("SECRET_KEY" in error for error in errors)
    assert any("DATABASE_URL" in error for error in errors)


def test_production_minimal_environment_is_valid(production_env):
    assert validate_environment("production") == (True, [])


def test_enabled_importer_requires_adapters_and_credentials(production_env):
    production_env.setenv("IMPORTER_ENABLED", "true")
    production_env.setenv("IMPORTER_ADAPTERS", "opensea,rarible")

    is_valid, errors = validate_environment("production")

    assert is_valid is False
    assert any("unknown adapters: rarible" in error for error in errors)
    assert any("OPENSEA_API_KEY" in error for error in errors)
    assert any("IMPORTER_API_TOKEN" in error for error in errors)


def test_enabled_importer_with_full_configuration(production_env):
    production_env.setenv("IMPORTER_ENABLED", "true")
    production_env.setenv("IMPORTER_ADAPTERS", "opensea,tezos")
    production_env.setenv("OPENSEA_API_KEY", "key")
    production_env.setenv("IMPORTER_API_TOKEN", "token")
    production_env.setenv("IMPORTER_WORKER_ENABLED", "true")

    is_valid, errors = validate_environment("production")

    assert is_valid is False
    assert errors == ["CELERY_BROKER_URL is required when IMPORTER_WORKER_ENABLED=true"]

    production_env.setenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    assert validate_environment("production") == (True, [])


def test_validate_and_exit_exits_on_errors(production_env, capsys):
    production_env.delenv("DATABASE_URL")

    with pytest.raises(SystemExit) as excinfo:
        validate_and_exit("production")

    assert excinfo.value.code == 1
    assert "DATABASE_URL" in capsys.readouterr().err


@pytest.mark.parametrize(
    "value, expected",
    [("true", True), ("ON", True), ("0", False), ("no", False), (None, False), ("maybe", False)],
)
def test_coerce_bool(value, expected):
    assert _coerce_bool(value) is expected


def test_parse_helpers():
    assert _parse_adapter_list(" OpenSea, tezos,opensea,, ") == ("opensea", "tezos")
    assert _parse_int_list("14, 2, 25, x, 14", minimum=0, maximum=23) == [14, 2]


def test_testing_config_is_loaded(app):
    assert app.config["TESTING"] is True
    assert app.config["SQLALCHEMY_DATABASE_URI"] == "sqlite:///:memory:"
    assert app.config["IMPORTER_SCHEDULE_HOURS"] == (2, 14)
    assert app.config["IMPORTER_QUEUE_BATCH_LIMIT"] == 50

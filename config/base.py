# config/base.py
import os


def _coerce_bool(value, default=False):
    """Convert environment-style truthy/falsey values to bool."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    value_str = str(value).strip().lower()
    if value_str in {"1", "true", "yes", "on"}:
        return True
    if value_str in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_adapter_list(value):
    """
    Parse a comma-separated adapter list while keeping order and removing duplicates.

    Returns:
        tuple[str, ...]: Normalized adapter identifiers.
    """
    if not value:
        return ()

    seen = set()
    adapters = []
    for raw_item in value.split(","):
        item = raw_item.strip().lower()
        if not item or item in seen:
            continue
        seen.add(item)
        adapters.append(item)
    return tuple(adapters)


def _parse_int_list(value, *, minimum=1, maximum=100):
    """
    Parse a comma-separated list of integers with optional bounds.
    """

    if not value:
        return []

    parsed: list[int] = []
    for raw_item in value.split(","):
        item = raw_item.strip()
        if not item:
            continue
        try:
            number = int(item)
        except ValueError:
            continue
        if number < minimum or number > maximum:
            continue
        if number not in parsed:
            parsed.append(number)
    return parsed


def _parse_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _parse_float(value, default):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class Config:
    _flask_env = os.environ.get("FLASK_ENV", "development")
    _is_testing = _flask_env == "testing"
    _is_production = _flask_env == "production"

    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Only require SECRET_KEY in production mode
    if not SECRET_KEY and _is_production:
        raise ValueError(
            "SECRET_KEY environment variable is required in production. "
            'Generate with: python -c "import secrets; print(secrets.token_hex(32))"'
        )

    if not SECRET_KEY and not _is_testing:
        import warnings

        warnings.warn(
            "SECRET_KEY not set. Using default for development only. "
            "Set SECRET_KEY before deploying.",
            UserWarning,
        )
        SECRET_KEY = "dev-secret-key-change-in-production"

    # Set a default for testing (will be overridden by TestingConfig)
    if not SECRET_KEY:
        SECRET_KEY = "test-secret-key-placeholder"

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {}

    # Importer configuration
    _raw_importer_enabled = os.environ.get("IMPORTER_ENABLED")
    IMPORTER_ENABLED = _coerce_bool(_raw_importer_enabled, default=False)
    IMPORTER_ADAPTERS = _parse_adapter_list(os.environ.get("IMPORTER_ADAPTERS", ""))

    if IMPORTER_ENABLED and not IMPORTER_ADAPTERS:
        raise ValueError(
            "IMPORTER_ENABLED is true but IMPORTER_ADAPTERS is empty. " "Provide at least one adapter name."
        )

    _raw_worker_enabled = os.environ.get("IMPORTER_WORKER_ENABLED")
    IMPORTER_WORKER_ENABLED = _coerce_bool(_raw_worker_enabled, default=False)
    CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL")
    CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND")
    CELERY_SQLITE_PATH = os.environ.get("CELERY_SQLITE_PATH")
    CELERY_CONFIG = os.environ.get("CELERY_CONFIG")

    # Scheduled queue processing (hours are UTC)
    IMPORTER_SCHEDULE_ENABLED = _coerce_bool(os.environ.get("IMPORTER_SCHEDULE_ENABLED"), default=False)
    IMPORTER_SCHEDULE_HOURS = tuple(
        _parse_int_list(os.environ.get("IMPORTER_SCHEDULE_HOURS", "2,14"), minimum=0, maximum=23)
    ) or (2, 14)
    IMPORTER_QUEUE_BATCH_LIMIT = max(1, min(500, _parse_int(os.environ.get("IMPORTER_QUEUE_BATCH_LIMIT"), 50)))
    # A processing claim older than this is treated as abandoned by a crashed worker
    IMPORTER_STALE_CLAIM_SECONDS = max(60, _parse_int(os.environ.get("IMPORTER_STALE_CLAIM_SECONDS"), 900))

    # Outbound HTTP
    IMPORTER_HTTP_TIMEOUT = _parse_float(os.environ.get("IMPORTER_HTTP_TIMEOUT"), 10.0)
    IMPORTER_RATE_LIMIT_BASE_DELAY = _parse_float(os.environ.get("IMPORTER_RATE_LIMIT_BASE_DELAY"), 1.0)
    IMPORTER_RATE_LIMIT_MAX_DELAY = _parse_float(os.environ.get("IMPORTER_RATE_LIMIT_MAX_DELAY"), 10.0)
    IMPORTER_RATE_LIMIT_MAX_RETRIES = _parse_int(os.environ.get("IMPORTER_RATE_LIMIT_MAX_RETRIES"), 5)

    # Enrichment and entity resolution
    IMPORTER_ENRICHMENT_ENABLED = _coerce_bool(os.environ.get("IMPORTER_ENRICHMENT_ENABLED"), default=True)
    IMPORTER_ARTIST_NAME_MAX_ATTEMPTS = max(1, _parse_int(os.environ.get("IMPORTER_ARTIST_NAME_MAX_ATTEMPTS"), 5))

    # Provider credentials
    OPENSEA_API_KEY = os.environ.get("OPENSEA_API_KEY")
    OPENSEA_CHAIN = os.environ.get("OPENSEA_CHAIN", "ethereum")
    OBJKT_GRAPHQL_URL = os.environ.get("OBJKT_GRAPHQL_URL", "https://data.objkt.com/v3/graphql")
    PINATA_JWT = os.environ.get("PINATA_JWT")

    # Optional bearer token guarding the importer HTTP trigger
    IMPORTER_API_TOKEN = os.environ.get("IMPORTER_API_TOKEN")


class DevelopmentConfig(Config):
    DEBUG = True
    # Use instance folder for database to avoid conflicts
    _config_dir = os.path.dirname(os.path.abspath(__file__))
    _project_root = os.path.dirname(_config_dir)
    instance_path = os.path.join(_project_root, "instance")

    if not os.path.exists(instance_path):
        os.makedirs(instance_path, exist_ok=True)

    # Use absolute path for SQLite - Windows needs forward slashes in URI
    db_path = os.path.join(instance_path, "museum_dev.db")
    db_path_normalized = db_path.replace("\\", "/")
    db_uri = f"sqlite:///{db_path_normalized}"

    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", db_uri)
    SQLALCHEMY_ECHO = _coerce_bool(os.environ.get("SQLALCHEMY_ECHO"), default=False)
    if SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": 5,
            }
        }
    else:
        SQLALCHEMY_ENGINE_OPTIONS = {}


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get("SECRET_KEY", "test-secret-key-for-testing-only")
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"  # In-memory database for testing
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {
            "check_same_thread": False,
            "timeout": 5,
        }
    }
    IMPORTER_ENRICHMENT_ENABLED = False
    IMPORTER_SCHEDULE_ENABLED = False
    IMPORTER_RATE_LIMIT_BASE_DELAY = 0.0
    PINATA_JWT = None
    IMPORTER_API_TOKEN = None


class ProductionConfig(Config):
    DEBUG = False
    uri = os.environ.get("DATABASE_URL")
    if uri and uri.startswith("postgres://"):
        uri = uri.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = uri
    SQLALCHEMY_ECHO = False

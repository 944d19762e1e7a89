import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class BaseConfig:
    """Base application configuration shared across environments."""

    APP_NAME: str = "pastebin"

    # Database. Connection strings come from the environment only.
    SQLALCHEMY_DATABASE_URI: str | None = os.getenv("DATABASE_URL")
    SQLALCHEMY_ECHO: bool = False
    AUTO_CREATE_TABLES: bool = False

    # Honour the x-test-now-ms header as the current time on reads.
    TEST_MODE: bool = os.getenv("TEST_MODE") == "1"

    TESTING: bool = False
    DEBUG: bool = False


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SQLALCHEMY_ECHO = False
    AUTO_CREATE_TABLES = True

    SQLALCHEMY_DATABASE_URI: str | None = os.getenv(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'pastebin.db'}",
    )


class ProductionConfig(BaseConfig):
    DEBUG = False


class TestingConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_ECHO = False
    AUTO_CREATE_TABLES = True

    SQLALCHEMY_DATABASE_URI: str | None = os.getenv(
        "TEST_DATABASE_URL",
        "sqlite+pysqlite:///:memory:",
    )


CONFIG_BY_NAME = {
    "development": DevelopmentConfig,
    "dev": DevelopmentConfig,
    "production": ProductionConfig,
    "prod": ProductionConfig,
    "testing": TestingConfig,
    "test": TestingConfig,
}


def get_config(env_name: str | None) -> type[BaseConfig]:
    """Return a config class for the given environment name."""
    if not env_name:
        return DevelopmentConfig
    return CONFIG_BY_NAME.get(env_name, DevelopmentConfig)

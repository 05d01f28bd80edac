"""Test command-line args and settings."""
import argparse
import pathlib

import pytest

from uniattend import config


DATA_PATH = pathlib.Path(__file__).parent / "data"


def test_read_config(settings: config.Settings) -> None:
    """Read the configuration from a TOML file."""
    # Arrange
    args = argparse.Namespace(config_path=DATA_PATH / "uniattend.toml", db_path=None)
    # Act
    settings.update_from_args(args)
    # Assert
    assert settings.config_path == DATA_PATH / "uniattend.toml"
    assert settings.institution_name == "Test University"
    assert settings.smtp_port == 587
    assert settings.smtp_timeout == 2.5
    assert settings.faculty_email == "faculty@example.edu"
    assert settings.smtp_password is None
    assert not settings.mail_configured
    assert not hasattr(settings, "unknown_setting")


def test_db_path_defaults_to_working_directory(settings: config.Settings) -> None:
    """A "none" db_path in the config file falls back to the current directory."""
    # Arrange
    args = argparse.Namespace(config_path=DATA_PATH / "uniattend.toml", db_path=None)
    # Act
    settings.update_from_args(args)
    # Assert
    assert settings.db_path == pathlib.Path.cwd() / config.DB_FILE_NAME


def test_command_line_db_path(settings: config.Settings) -> None:
    """A relative database path is resolved against the working directory."""
    # Arrange
    args = argparse.Namespace(
        config_path=DATA_PATH / "uniattend.toml", db_path=pathlib.Path("other.db")
    )
    # Act
    settings.update_from_args(args)
    # Assert
    assert settings.db_path == pathlib.Path.cwd() / "other.db"


def test_password_from_environment(
    settings: config.Settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    """The SMTP password can come from an environment variable."""
    # Arrange
    monkeypatch.setenv(config.SMTP_PASSWORD_ENV_VAR, "secret")
    args = argparse.Namespace(config_path=DATA_PATH / "uniattend.toml", db_path=None)
    # Act
    settings.update_from_args(args)
    # Assert
    assert settings.smtp_password == "secret"
    assert settings.mail_configured


def test_missing_config_file(settings: config.Settings) -> None:
    """Defaults are kept when the config file does not exist."""
    # Arrange
    args = argparse.Namespace(config_path=DATA_PATH / "missing.toml", db_path=None)
    # Act
    settings.update_from_args(args)
    # Assert
    assert settings.config_path is None
    assert settings.institution_name == "University Attendance System"
    assert settings.smtp_port == 465


def test_config_path_is_folder(settings: config.Settings) -> None:
    """Raise ConfigError if the config path is a directory."""
    # Arrange
    args = argparse.Namespace(config_path=DATA_PATH, db_path=None)
    # Act, Assert
    with pytest.raises(config.ConfigError) as excinfo:
        settings.update_from_args(args)
    assert excinfo.value.error_type == config.ConfigError.ErrorType.NOT_A_FILE


def test_create_new_config_file(
    settings: config.Settings, empty_output_folder: pathlib.Path
) -> None:
    """Write the example config file and read it back."""
    # Arrange
    config_path = empty_output_folder / "new-config.toml"
    # Act
    settings.create_new_config_file(config_path)
    settings.update_from_args(argparse.Namespace(config_path=config_path, db_path=None))
    # Assert
    assert config_path.exists()
    assert settings.smtp_server is None
    assert settings.db_path == pathlib.Path.cwd() / config.DB_FILE_NAME

"""Manage configuration settings for the UniAttend application."""

import argparse
import dataclasses
import enum
import os
import pathlib
import shutil
import tomllib
from typing import Optional


DB_FILE_NAME = "uniattend.db"
CONFIG_FILE_NAME = "uniattend.toml"
SMTP_PASSWORD_ENV_VAR = "UNIATTEND_SMTP_PASSWORD"


class ConfigError(Exception):
    """Errors when setting or accessing settings."""

    class ErrorType(enum.Enum):
        NOT_A_FILE = 1
        FILE_EXISTS = 2

    error_type: ErrorType

    def __init__(self, message: str, error_type: ErrorType) -> None:
        """Set error type."""
        super().__init__(message)
        self.error_type = error_type


@dataclasses.dataclass
class Settings:
    """Configuration data for the uniattend application.

    The mailer is considered configured only when smtp_server, smtp_username
    and smtp_password are all set. If smtp_password is missing from the
    config file, it is read from the UNIATTEND_SMTP_PASSWORD environment
    variable.
    """

    db_path: Optional[pathlib.Path] = None
    config_path: Optional[pathlib.Path] = None
    institution_name: str = "University Attendance System"
    smtp_server: Optional[str] = None
    smtp_port: int = 465
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_timeout: float = 10.0
    email_sender_name: Optional[str] = "Attendance Management System"
    sender_email: Optional[str] = None
    faculty_email: Optional[str] = None

    @property
    def mail_configured(self) -> bool:
        """True if there is enough information to log into the SMTP server."""
        return all([self.smtp_server, self.smtp_username, self.smtp_password])

    def update_from_args(self, args: argparse.Namespace) -> None:
        """Read settings.

        A database path given on the command line wins over the db_path
        setting in the config file.
        """
        self.config_path = self._get_full_path(
            getattr(args, "config_path", None), CONFIG_FILE_NAME
        )
        if self.config_path is not None:
            self._read_config_file()
        db_path = getattr(args, "db_path", None)
        if db_path is not None or self.db_path is None:
            self.db_path = self._get_full_path(db_path, DB_FILE_NAME, must_exist=False)
        self._read_environment()

    @staticmethod
    def _convert_path_to_absolute(path: pathlib.Path | str) -> pathlib.Path:
        """Convert relative paths to absolute paths."""
        if isinstance(path, str):
            path = pathlib.Path(path)
        return path if path.is_absolute() else pathlib.Path.cwd() / path

    @staticmethod
    def _get_full_path(
        path: Optional[pathlib.Path],
        default_file_name: str,
        must_exist: bool = True,
    ) -> Optional[pathlib.Path]:
        """Convert path arg to full filesystem path.

        If path is None, looks for file in current working directory. Otherwise
        converts relative paths to absolute paths. Returns None if must_exist
        is True and the path does not point to an existing file.
        """
        cwd = pathlib.Path.cwd()
        full_path: Optional[pathlib.Path] = None
        if path is None:
            full_path = cwd / default_file_name
        elif path.is_absolute():
            full_path = path
        else:
            full_path = cwd / path
        if full_path.exists() and not full_path.is_file():
            raise ConfigError(
                f"{full_path} is not a file.", ConfigError.ErrorType.NOT_A_FILE
            )
        if must_exist and not full_path.exists():
            full_path = None
        return full_path

    def _read_config_file(self) -> None:
        """Read TOML configuration file."""
        if self.config_path is None:
            return
        app_settings = dataclasses.asdict(self)
        with open(self.config_path, "rb") as toml_file:
            file_settings = tomllib.load(toml_file)
        for setting_name, value in file_settings.items():
            if setting_name not in app_settings:
                continue
            if isinstance(value, str) and value.lower() in ["", "none", "null"]:
                value = None
            if setting_name == "db_path" and value is not None:
                value = self._convert_path_to_absolute(value)
            setattr(self, setting_name, value)

    def _read_environment(self) -> None:
        """Fill in secrets that are kept out of the config file."""
        if self.smtp_password is None:
            self.smtp_password = os.environ.get(SMTP_PASSWORD_ENV_VAR) or None

    def create_new_config_file(self, config_path: pathlib.Path) -> None:
        """Create a new configuration file with default settings."""
        if not config_path.exists():
            shutil.copy(
                pathlib.Path(__file__).parent / "example-config.toml", config_path
            )


# Store settings in a module-level variable, which will be available from any
# other module that imports uniattend.config. Only the command line entry point
# reads it; the model and feature classes receive settings as arguments.
settings = Settings()

"""Backend configuration loaded from the environment."""
import os
from appdirs import user_data_dir
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_NAME = 'inspect360'
APP_AUTHOR = 'inspect360'


def default_database_url():
    data_dir = user_data_dir(APP_NAME, APP_AUTHOR)
    return f"sqlite:///{os.path.join(data_dir, 'inspect360.db')}"


def default_templates_dir():
    return os.path.join(os.path.dirname(__file__), 'data', 'templates')


class Settings(BaseSettings):
    """Backend settings using Pydantic BaseSettings (env prefix INSPECT360_)."""

    # Storage
    database_url: str = ''

    # Logging
    log_level: str = 'INFO'
    log_dir: str = ''
    log_to_file: bool = True

    # Assignments
    default_assignment_location: str = 'To be determined'

    # Users
    managers_can_manage_users: bool = True
    # Comma separated, empty allows any domain
    allowed_email_domains: str = ''

    # Prebuilt templates
    templates_data_dir: str = ''
    seed_prebuilt_on_startup: bool = True

    model_config = SettingsConfigDict(env_prefix='INSPECT360_', case_sensitive=False)

    @field_validator('log_level')
    @classmethod
    def normalize_level(cls, v):
        return (v or 'INFO').upper()

    def email_domains(self):
        return [d.strip().lower().lstrip('@') for d in self.allowed_email_domains.split(',') if d.strip()]

    def resolved_database_url(self):
        return self.database_url or default_database_url()

    def resolved_templates_dir(self):
        return self.templates_data_dir or default_templates_dir()

    def to_flask_config(self):
        """Flask config keys derived from these settings."""
        return {
            'SQLALCHEMY_DATABASE_URI': self.resolved_database_url(),
            'LOG_LEVEL': self.log_level,
            'LOG_DIR': self.log_dir,
            'LOG_TO_FILE': self.log_to_file,
            'DEFAULT_ASSIGNMENT_LOCATION': self.default_assignment_location,
            'MANAGERS_CAN_MANAGE_USERS': self.managers_can_manage_users,
            'ALLOWED_EMAIL_DOMAINS': self.email_domains(),
            'TEMPLATES_DATA_DIR': self.resolved_templates_dir(),
            'SEED_PREBUILT_ON_STARTUP': self.seed_prebuilt_on_startup,
        }

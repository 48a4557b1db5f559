"""
Configuration management for the Teams Admin bot.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class _EnvSettings(BaseSettings):
    """Settings read from the environment or a local .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class GraphConfig(_EnvSettings):
    """Microsoft Graph API settings."""

    root_uri: str = Field("https://graph.microsoft.com/v1.0/", validation_alias="GRAPH_ROOT_URI")
    request_timeout_seconds: float = Field(60.0, validation_alias="GRAPH_REQUEST_TIMEOUT")
    invite_redirect_url: str = Field("https://teams.microsoft.com", validation_alias="GUEST_INVITE_REDIRECT_URL")
    invite_message: str = Field("Welcome to Teams", validation_alias="GUEST_INVITE_MESSAGE")


class BotConfig(_EnvSettings):
    """Bot Framework configuration settings."""

    app_id: str = Field("", validation_alias="BOT_APP_ID")
    app_password: str = Field("", validation_alias="BOT_APP_PASSWORD")
    # OAuth connection configured on the bot registration
    connection_name: str = Field("", validation_alias="CONNECTION_NAME")
    port: int = Field(3978, validation_alias="PORT")


class ProvisioningConfig(_EnvSettings):
    """Team creation retry settings."""

    team_create_attempts: int = Field(4, validation_alias="TEAM_CREATE_ATTEMPTS")
    team_create_retry_delay_seconds: float = Field(9.0, validation_alias="TEAM_CREATE_RETRY_DELAY")


class MonitoringConfig(_EnvSettings):
    """Logging configuration."""

    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")


class Config(_EnvSettings):
    """Main configuration class that combines all settings."""

    graph: GraphConfig = Field(default_factory=GraphConfig)
    bot: BotConfig = Field(default_factory=BotConfig)
    provisioning: ProvisioningConfig = Field(default_factory=ProvisioningConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)


# Global configuration instance
config = Config()

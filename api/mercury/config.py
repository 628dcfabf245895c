from dataclasses import dataclass
from typing import Optional

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    # Required: authorizes inbound requests and outbound Slack API calls
    slack_token: SecretStr

    # Optional: Heroku webhook shared secret (unset = webhook route disabled)
    heroku_secret: Optional[SecretStr] = None

    slack_api_base: str = "https://slack.com/api"

    # Dispatch
    dispatch_timeout: float = 10.0
    dispatch_retries: int = 2
    dispatch_backoff: float = 0.5

    max_body_size: int = 1024 * 1024

    host: str = "0.0.0.0"
    port: int = 80
    log_level: str = "INFO"


@dataclass(frozen=True)
class SecretStore:
    """Credentials loaded once at startup and only ever read afterwards."""

    bearer_token: bytes
    webhook_secret: Optional[bytes] = None

    @property
    def webhooks_enabled(self) -> bool:
        return self.webhook_secret is not None

    @classmethod
    def from_settings(cls, settings: Settings) -> "SecretStore":
        token = settings.slack_token.get_secret_value()
        if not token:
            raise ValueError("SLACK_TOKEN must not be empty")

        secret = None
        if settings.heroku_secret is not None:
            raw = settings.heroku_secret.get_secret_value()
            # An empty value counts as unset rather than as an empty HMAC key
            if raw:
                secret = raw.encode("utf-8")

        return cls(bearer_token=token.encode("utf-8"), webhook_secret=secret)

"""Mercury: relay direct messages and Heroku webhooks to Slack."""

__version__ = "0.1.0"

"""Receive dyno crash, rollback and config var webhooks from Heroku."""

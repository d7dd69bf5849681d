"""Inbound webhook engine: GitHub, Slack, Notion, Google Calendar and Zapier deliveries into tasks and events."""

__version__ = "0.1.0"

"""Persistence and data models shared by the bot and its services."""

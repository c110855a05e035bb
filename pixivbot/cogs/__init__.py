"""Discord cogs, loaded as extensions by the bot."""

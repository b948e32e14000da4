"""tgrelay - HTTP relay for driving Telegram accounts with keyword auto-replies."""

__version__ = "0.3.0"

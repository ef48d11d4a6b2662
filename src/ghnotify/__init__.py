"""ghnotify: background notifier for GitHub pull requests that need you."""

__version__ = "1.0.0"

"""Core domain package for ghnotify.

Core contains polling, deduplication, and suppression logic without any GitHub
HTTP, storage, or desktop-specific code, keeping the business logic portable.
"""

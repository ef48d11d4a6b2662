"""Integration adapters: GitHub, persistence, desktop notifications."""

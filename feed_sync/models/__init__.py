"""Data models for feed_sync."""

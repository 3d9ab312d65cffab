"""Core domain package for mxtg-bridge.

Core contains the bridge registry, relays, retry and media transfer logic
without any Matrix, Telegram or storage-specific code, keeping the business
logic portable.
"""

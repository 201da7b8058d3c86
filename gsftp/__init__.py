"""Minimal SFTP client: list, fetch, put, stat and remove remote files."""

__version__ = "0.1.0"

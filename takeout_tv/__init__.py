"""Headless TakeoutFM video client: sessions, catalog and watch progress."""

__version__ = "0.4.2"

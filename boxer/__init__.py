"""Versioned Vagrant box packaging with a durable release ledger."""

__version__ = "0.1.0"

"""Concrete API backends."""

from .http_client import HttpVmApi

__all__ = ["HttpVmApi"]

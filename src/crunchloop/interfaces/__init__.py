"""Interfaces for crunchloop API backends."""

from .vm_api import VmApi

__all__ = ["VmApi"]

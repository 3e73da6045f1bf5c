"""Utility functions and classes for sqlroute."""

from sqlroute.utils import logging, type_guards

__all__ = ("logging", "type_guards")

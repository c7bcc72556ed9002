"""CLI package for Shelf Companion"""
from .main import cli

__all__ = ['cli']

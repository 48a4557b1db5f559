"""
Teams Admin Bot

This package provides a Microsoft Teams bot that creates teams, channels and
memberships in bulk from an uploaded Excel sheet.
"""

__version__ = "1.0.0"
__author__ = "Teams Admin Bot Team"

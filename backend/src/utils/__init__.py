"""
Utility modules for the clinic scheduling application.

This package contains shared helpers used across the application, currently
the clinic timezone and calendar-date utilities.
"""

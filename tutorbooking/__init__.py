"""
tutorbooking - lesson booking, payments and tutor availability.
"""

__version__ = "0.1.0"

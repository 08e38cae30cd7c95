"""
slotpicker - find and sample available meeting slots from calendar busy times.
"""

__version__ = "0.1.0"

"""
Cloud Console - private cloud management dashboard API.
"""

__version__ = "1.0.0"

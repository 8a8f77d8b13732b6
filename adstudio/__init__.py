"""
Product Ad Studio — catalog CSV → AI marketing ad → composited export.
"""

__version__ = "1.0.0"

"""
Token risk intelligence: holder concentration analysis and monitoring.
"""
__version__ = "0.1.0"

"""
Resume ingestion, processing queue and processing state service
"""

__version__ = "1.0.0"

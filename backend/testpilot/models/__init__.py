"""
Database models
"""
from testpilot.models.quota_counter import QuotaCounter

__all__ = ["QuotaCounter"]

"""
Record Sync
Offline-first synchronization engine for receipts, warranties and household records
"""

__version__ = "1.0.0"

"""
Room Ledger - Source Package

Shared-expense tracking for a fixed group of roommates.

The core is a small, pure settlement engine:
1. Aggregate expenses for a reporting window
2. Compare each roommate against an equal share
3. Suggest the transfers that settle everyone up

Storage, validation, audit logging and the HTTP surface sit around it.
"""

__version__ = "1.0.0"
__author__ = "Room Ledger Team"

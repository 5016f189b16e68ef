"""HTTP front end for Room Ledger."""

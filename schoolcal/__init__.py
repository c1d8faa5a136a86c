"""School calendar import, reconciliation and maintenance tools."""

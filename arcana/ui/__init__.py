"""Event delivery and observers."""

"""Service layer for subnet and address pool management."""

"""
Shared modules for the Care-Coord hospital backend.

This package contains shared configuration and utilities used across the application.
"""

from shared.cosmos_config import (
    COSMOS_ENDPOINT,
    DATABASE_NAME,
    HOSPITAL_CONTAINERS,
)

__all__ = [
    "COSMOS_ENDPOINT",
    "DATABASE_NAME",
    "HOSPITAL_CONTAINERS",
]

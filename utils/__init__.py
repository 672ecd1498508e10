"""
Utilities Module

Common helpers shared across the package:
- Write-once registries for pluggable implementations
"""

from .registry import Registry

__all__ = [
    'Registry',
]

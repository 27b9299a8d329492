# apps/core/utils/__init__.py
"""
Core utilities package
"""

from .context import (
    set_current_request_id,
    get_current_request_id,
    clear_request_id,
    set_current_user,
    get_current_user,
    clear_user,
    request_context,
)

__all__ = [
    'set_current_request_id',
    'get_current_request_id',
    'clear_request_id',
    'set_current_user',
    'get_current_user',
    'clear_user',
    'request_context',
]

from .drf import (
    LIBRARIAN_GROUP,
    ADMIN_GROUP,
    is_admin,
    is_librarian,
    IsAdmin,
    IsLibrarian,
    IsLibrarianOrReadOnly,
    IsOwnerOrLibrarian,
)

__all__ = [
    'LIBRARIAN_GROUP',
    'ADMIN_GROUP',
    'is_admin',
    'is_librarian',
    'IsAdmin',
    'IsLibrarian',
    'IsLibrarianOrReadOnly',
    'IsOwnerOrLibrarian',
]

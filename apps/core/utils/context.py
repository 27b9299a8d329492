# apps/core/utils/context.py
import threading
from contextlib import contextmanager

# Thread-local storage for request context
_thread_locals = threading.local()


def set_current_request_id(request_id):
    """
    Set the current request id in thread-local storage
    """
    _thread_locals.request_id = request_id


def get_current_request_id():
    """
    Get the current request id from thread-local storage
    """
    return getattr(_thread_locals, 'request_id', None)


def clear_request_id():
    if hasattr(_thread_locals, 'request_id'):
        delattr(_thread_locals, 'request_id')


def set_current_user(user):
    """
    Set the current user in thread-local storage
    """
    _thread_locals.user = user


def get_current_user():
    """
    Get the current user from thread-local storage
    """
    return getattr(_thread_locals, 'user', None)


def clear_user():
    if hasattr(_thread_locals, 'user'):
        delattr(_thread_locals, 'user')


@contextmanager
def request_context(request_id, user=None):
    """
    Context manager for running code (tasks, commands) under a request id
    """
    old_request_id = get_current_request_id()
    old_user = get_current_user()
    set_current_request_id(request_id)
    set_current_user(user)
    try:
        yield
    finally:
        set_current_request_id(old_request_id)
        set_current_user(old_user)

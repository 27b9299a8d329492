import logging


class RequestContextFilter(logging.Filter):
    """
    Logging filter to add request context to log records
    """
    def filter(self, record):
        from apps.core.utils.context import get_current_request_id, get_current_user

        record.request_id = get_current_request_id() or '-'

        user = get_current_user()
        if user is not None and getattr(user, 'is_authenticated', False):
            record.user = user.get_username()
        else:
            record.user = 'anonymous'

        return True

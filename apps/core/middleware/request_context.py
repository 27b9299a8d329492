import uuid

from django.utils.deprecation import MiddlewareMixin

from apps.core.utils.context import (
    set_current_request_id,
    set_current_user,
    clear_request_id,
    clear_user,
)


class RequestContextMiddleware(MiddlewareMixin):
    """
    Attach a request id to each request and expose it, with the user,
    to the logging filter through thread-local storage
    """
    header_name = 'HTTP_X_REQUEST_ID'
    response_header = 'X-Request-ID'

    def process_request(self, request):
        request_id = request.META.get(self.header_name) or uuid.uuid4().hex
        request.request_id = request_id[:64]
        set_current_request_id(request.request_id)
        set_current_user(getattr(request, 'user', None))
        return None

    def process_response(self, request, response):
        request_id = getattr(request, 'request_id', None)
        if request_id:
            response[self.response_header] = request_id
        clear_request_id()
        clear_user()
        return response

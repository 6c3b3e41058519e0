from functools import wraps

from moviebooking.responses import api_response


def api_login_required(view_func):
    """
    Reject anonymous callers with a 401 JSON envelope instead of a login redirect.

    Session authentication is provided by ``django.contrib.auth``; issuing and
    verifying credentials happens outside this project.
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return api_response(401, message='Unauthorized: authentication credentials were not provided.')

        return view_func(request, *args, **kwargs)

    return wrapper

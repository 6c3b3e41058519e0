from django.http import JsonResponse


def api_response(status=200, data=None, message='', **extra):
    """Render the ``{code, success, message, data}`` envelope used by every API view."""
    payload = {
        'code': status,
        'success': 200 <= status < 300,
        'message': message,
    }
    if data is not None:
        payload['data'] = data
    payload.update(extra)
    return JsonResponse(payload, status=status)

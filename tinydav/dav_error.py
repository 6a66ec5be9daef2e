# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
The :class:`DAVError` exception is raised by request handlers to end a request
with a given HTTP status.

:class:`~tinydav.error_printer.ErrorPrinter` catches it and sends the status,
the optional `context_info` text and any extra headers to the client.
"""

from http import HTTPStatus

__docformat__ = "reStructuredText"

# ========================================================================
# Status codes that TinyDAV sends
# ========================================================================
HTTP_OK = 200
HTTP_NO_CONTENT = 204
HTTP_MULTI_STATUS = 207
HTTP_NOT_MODIFIED = 304

HTTP_BAD_REQUEST = 400
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_METHOD_NOT_ALLOWED = 405
HTTP_PRECONDITION_FAILED = 412
HTTP_REQUEST_ENTITY_TOO_LARGE = 413

HTTP_INTERNAL_ERROR = 500


# ========================================================================
# DAVError
# ========================================================================


class DAVError(Exception):
    """Terminate the current request with an HTTP error status.

    Args:
        status_code (int): e.g. HTTP_NOT_FOUND
        context_info (str): plain text that is sent as response body
            (followed by a newline). The body is empty if omitted.
        src_exception (Exception): the cause; only logged
        add_headers (list): extra (name, value) response headers,
            e.g. ``[("Connection", "close")]``
    """

    def __init__(
        self, status_code, context_info=None, *, src_exception=None, add_headers=None
    ):
        super().__init__(status_code, context_info)
        self.value = int(status_code)
        self.context_info = context_info
        self.src_exception = src_exception
        self.add_headers = add_headers or []

    def __repr__(self):
        return f"DAVError({self.get_user_info()})"

    def __str__(self):
        return self.get_user_info()

    def get_user_info(self):
        """Return a one-line description for log output."""
        parts = [get_http_status_string(self.value)]
        if self.context_info:
            parts.append(self.context_info)
        if self.src_exception is not None:
            parts.append(f"caused by {self.src_exception!r}")
        return ": ".join(parts)

    def get_response_page(self):
        """Return (content_type, body) of the error response."""
        body = f"{self.context_info}\n" if self.context_info else ""
        return ("text/plain; charset=utf-8", body.encode("utf-8"))


def get_http_status_code(v):
    """Return the status code of a DAVError or an int."""
    if isinstance(v, DAVError):
        return v.value
    return int(v)


def get_http_status_string(v):
    """Return a WSGI status line, e.g. ``'207 Multi-Status'``.

    `v` may be a status code or a DAVError.
    """
    code = get_http_status_code(v)
    try:
        return f"{code} {HTTPStatus(code).phrase}"
    except ValueError:
        return f"{code} Unknown Status"


def as_DAVError(e):
    """Return `e` if it is a DAVError, otherwise wrap it as HTTP_INTERNAL_ERROR."""
    if isinstance(e, DAVError):
        return e
    return DAVError(HTTP_INTERNAL_ERROR, src_exception=e)

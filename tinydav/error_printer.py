# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
WSGI middleware that turns exceptions of the wrapped application into HTTP
error responses.

A :class:`~tinydav.dav_error.DAVError` is sent with its status code; any other
exception is logged with its traceback and sent as '500 Internal Server Error'.
"""

from tinydav import util
from tinydav.dav_error import HTTP_INTERNAL_ERROR, DAVError, as_DAVError
from tinydav.mw.base_mw import BaseMiddleware

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)


# ========================================================================
# ErrorPrinter
# ========================================================================
class ErrorPrinter(BaseMiddleware):
    def __call__(self, environ, start_response):
        started = []

        def _deferred_start_response(status, response_headers, exc_info=None):
            started[:] = [status, response_headers, exc_info]

        # The response is only started after the wrapped app has produced its
        # complete body, so an exception can still replace it.
        try:
            app_iter = self.next_app(environ, _deferred_start_response)
            try:
                body = list(app_iter)
            finally:
                if hasattr(app_iter, "close"):
                    app_iter.close()
        except DAVError as e:
            return self._send_error(environ, start_response, e)
        except Exception as e:
            _logger.exception(f"Unhandled {e.__class__.__name__}")
            return self._send_error(environ, start_response, as_DAVError(e))

        start_response(*started)
        return body

    def _send_error(self, environ, start_response, e):
        if e.value == HTTP_INTERNAL_ERROR:
            _logger.error(e.get_user_info())
        else:
            _logger.debug(f"Caught {e!r}")
        return util.send_status_response(environ, start_response, e)

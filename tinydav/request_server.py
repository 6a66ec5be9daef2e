# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
WSGI application that handles one single WebDAV request.

Only three methods are supported:

PROPFIND
    List a folder (``Depth: 1`` only) as '207 Multi-Status' XML.
GET
    Return a file and its content fingerprint as ``ETag`` header.
PUT
    Create or overwrite a file. If an ``If-Match`` header is passed, the
    file is only written if its current fingerprint matches.

Everything else is answered with '405 Method Not Allowed'.
"""

from tinydav import util, xml_tools
from tinydav.dav_error import (
    HTTP_BAD_REQUEST,
    HTTP_FORBIDDEN,
    HTTP_METHOD_NOT_ALLOWED,
    HTTP_NO_CONTENT,
    HTTP_NOT_FOUND,
    HTTP_OK,
    HTTP_PRECONDITION_FAILED,
    get_http_status_string,
)

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)

#: Sent as ``Allow`` header with '405 Method Not Allowed'
ALLOWED_METHODS = ("PROPFIND", "GET", "PUT")


# ========================================================================
# RequestServer
# ========================================================================
class RequestServer:
    """Terminal WSGI application: dispatch a request to a `do_METHOD()` handler.

    Args:
        fs_provider (FilesystemProvider):
        config (dict | None): `block_size` and `max_body_chunks` are used
    """

    def __init__(self, fs_provider, config=None):
        config = config or {}
        self._fs_provider = fs_provider
        self.block_size = config.get("block_size", util.DEFAULT_BLOCK_SIZE)
        self.max_body_chunks = config.get(
            "max_body_chunks", util.DEFAULT_MAX_BODY_CHUNKS
        )
        # Fixed at construction time
        self._method_map = {
            "PROPFIND": self.do_PROPFIND,
            "GET": self.do_GET,
            "PUT": self.do_PUT,
        }

    def __repr__(self):
        return f"{self.__class__.__name__}({self._fs_provider})"

    def __call__(self, environ, start_response):
        method = self._method_map.get(environ["REQUEST_METHOD"])
        if not method:
            _logger.info(f"Unsupported HTTP method {environ['REQUEST_METHOD']!r}")
            self._fail(
                HTTP_METHOD_NOT_ALLOWED,
                add_headers=[("Allow", ", ".join(ALLOWED_METHODS))],
            )
        return method(environ, start_response)

    def _fail(self, value, context_info=None, **kwargs):
        util.fail(value, context_info, **kwargs)

    def _get_path(self, environ):
        """Return the file system path that the request URL refers to."""
        return util.resolve_url_path(util.get_request_url(environ))

    def do_PROPFIND(self, environ, start_response):
        """List the direct members of a folder.

        Only ``Depth: 1`` is accepted. The request body is ignored.
        """
        if environ.get("HTTP_DEPTH") != "1":
            self._fail(HTTP_FORBIDDEN, "PROPFIND requests are limited to `Depth: 1`")

        path = self._get_path(environ)
        entries = self._fs_provider.get_directory_entries(path)

        multistatus_el = xml_tools.make_multistatus_el()
        for entry in entries:
            xml_tools.add_member_response(
                multistatus_el, entry.path, is_collection=entry.is_collection
            )
        _logger.debug(f"PROPFIND {path!r}: {len(entries)} members")

        return util.send_multi_status_response(environ, start_response, multistatus_el)

    def do_GET(self, environ, start_response):
        path = self._get_path(environ)
        try:
            content = self._fs_provider.read_file(path)
        except OSError as e:
            self._fail(HTTP_NOT_FOUND, src_exception=e)

        start_response(
            get_http_status_string(HTTP_OK),
            [
                ("Content-Type", "application/octet-stream"),
                ("Content-Length", str(len(content.data))),
                ("Date", util.get_rfc1123_time()),
                ("ETag", content.etag),
            ],
        )
        return [content.data]

    def do_PUT(self, environ, start_response):
        """Create or overwrite a file.

        A non-empty ``If-Match`` header makes the write conditional.
        """
        path = self._get_path(environ)
        if environ.get("HTTP_IF_MATCH"):
            return self._put_conditional(environ, start_response, path)
        return self._put_unconditional(environ, start_response, path)

    def _put_conditional(self, environ, start_response, file_path):
        """Write only if the current fingerprint is one of the If-Match tokens.

        A missing or unreadable file never matches. On mismatch the request
        body is left unread.
        """
        tokens = util.parse_if_match_header(environ["HTTP_IF_MATCH"])
        try:
            etag = self._fs_provider.read_file(file_path).etag
        except OSError as e:
            _logger.debug(f"PUT {file_path!r}: precondition failed ({e})")
            self._fail(HTTP_PRECONDITION_FAILED, src_exception=e)

        if etag not in tokens:
            _logger.debug(f"PUT {file_path!r}: ETag {etag!r} not in {tokens}")
            self._fail(HTTP_PRECONDITION_FAILED)

        return self._put_unconditional(environ, start_response, file_path)

    def _put_unconditional(self, environ, start_response, file_path):
        data = util.read_request_body(
            environ, self.block_size, max_chunks=self.max_body_chunks
        )
        try:
            etag = self._fs_provider.write_file(file_path, data)
        except OSError as e:
            _logger.warning(f"PUT {file_path!r} failed: {e}")
            self._fail(HTTP_BAD_REQUEST, "failed to write file", src_exception=e)

        return util.send_status_response(
            environ, start_response, HTTP_NO_CONTENT, add_headers=[("ETag", etag)]
        )

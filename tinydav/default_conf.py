# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Built-in configuration.

TinyDAVApp merges the passed options (command line, config file or dict) into
a copy of :data:`DEFAULT_CONFIG`.
"""

from tinydav.error_printer import ErrorPrinter

__docformat__ = "reStructuredText"

DEFAULT_VERBOSE = 3
DEFAULT_LOGGER_DATE_FORMAT = "%H:%M:%S"
DEFAULT_LOGGER_FORMAT = "%(asctime)s.%(msecs)03d - %(levelname)-8s: %(message)s"

DEFAULT_CONFIG = {
    #: 'cheroot' or 'wsgiref' (used by the `tinydav` command only)
    "server": "cheroot",
    #: Extra keyword arguments for the cheroot server
    "server_args": {},
    "host": "localhost",
    "port": 8000,
    #: Request paths are resolved relative to this folder (None: working dir)
    "root_path": None,
    #: Bytes per `wsgi.input` read
    "block_size": 8192,
    #: A PUT body that needs more reads than this gets '413' (the limit
    #: counts reads, not bytes)
    "max_body_chunks": 1000000,
    "fs_provider": {
        #: Threads that stat directory members in parallel
        "stat_workers": 8,
    },
    #: Outermost first. RequestServer is always the innermost application.
    "middleware_stack": [
        ErrorPrinter,
    ],
    #: 0: critical only, 1: errors, 2: warnings,
    #: 3: one line per request, 4: debug output
    "verbose": DEFAULT_VERBOSE,
    #: Hide the TinyDAV and Python versions from clients and the banner
    "suppress_version_info": False,
    "logging": {
        #: False: leave the 'tinydav' logger alone (e.g. when embedded)
        "enable": None,
        "logger_date_format": DEFAULT_LOGGER_DATE_FORMAT,
        "logger_format": DEFAULT_LOGGER_FORMAT,
        #: Module loggers switched to DEBUG, e.g. ["request_server"]
        "enable_loggers": [],
    },
}

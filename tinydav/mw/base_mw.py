"""
Common base class for the entries of ``middleware_stack``.
"""

from abc import ABC, abstractmethod

__docformat__ = "reStructuredText"


class BaseMiddleware(ABC):
    """WSGI application that wraps the next application of the stack.

    TinyDAVApp creates instances as ``cls(tinydav_app, next_app, config)``
    when ``middleware_stack`` lists a class or a 'module.ClassName' string.
    Already created WSGI callables may be listed as well.

    See :class:`tinydav.error_printer.ErrorPrinter`.
    """

    def __init__(self, tinydav_app, next_app, config):
        self.tinydav_app = tinydav_app
        self.next_app = next_app
        self.config = config
        self.verbose = config.get("verbose", 3)

    @abstractmethod
    def __call__(self, environ, start_response):
        raise NotImplementedError

    def __repr__(self):
        return f"{self.__class__.__name__}(next_app={self.next_app!r})"

    def is_disabled(self):
        """Return True to leave this middleware out of the stack."""
        return False

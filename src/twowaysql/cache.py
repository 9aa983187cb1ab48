"""Cache of parsed templates.

Parsing is the expensive part of rendering a template, and applications
usually render the same few templates over and over with different
parameters. :class:`TemplateCache` keeps the most recently used templates
keyed by a hash of their text, so that repeated calls skip the parsing::

    >>> cache = TemplateCache(maxsize=10)
    >>> cache.get("SELECT 1") is cache.get("SELECT 1")
    True

Templates are immutable, so the same cached template can be handed
to any number of threads.
"""

import hashlib
import logging
import threading
from collections import OrderedDict

from .functions import FunctionRegistry
from .nodes import Template
from .parser import TemplateParser

logger = logging.getLogger(__name__)

DEFAULT_MAXSIZE = 512


class TemplateCache:
    """LRU cache of parsed templates, safe to share between threads."""

    def __init__(
        self, maxsize: int = DEFAULT_MAXSIZE, registry: FunctionRegistry | None = None
    ) -> None:
        """
        :param maxsize: Maximum number of templates kept, the least recently
                        used one is discarded when the limit is exceeded.
        :param registry: The extension functions available to the templates.
        """
        if maxsize < 1:
            raise ValueError(f"maxsize must be a positive number, got {maxsize}")
        self.maxsize = maxsize
        self.registry = registry
        self._templates: OrderedDict[str, Template] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, text: str, resource_info: str | None = None) -> Template:
        """The parsed template for ``text``, parsing it only if not cached.

        Format errors are never cached, they are raised every time.
        """
        key = self._key(text, resource_info)
        with self._lock:
            template = self._templates.get(key)
            if template is not None:
                self._templates.move_to_end(key)
                logger.debug("Template cache hit for %s", resource_info)
                return template

        logger.debug("Template cache miss for %s", resource_info)
        template = TemplateParser(resource_info, self.registry).parse(text)
        with self._lock:
            self._templates[key] = template
            if len(self._templates) > self.maxsize:
                self._templates.popitem(last=False)
        return template

    def clear(self) -> None:
        with self._lock:
            self._templates.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._templates)

    def __contains__(self, text: str) -> bool:
        prefix = f"{self._digest(text)}:"
        with self._lock:
            return any(k.startswith(prefix) for k in self._templates)

    @staticmethod
    def _digest(text: str) -> str:
        return hashlib.md5(text.encode(), usedforsecurity=False).hexdigest()

    def _key(self, text: str, resource_info: str | None) -> str:
        return f"{self._digest(text)}:{resource_info}"

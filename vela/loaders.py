"""Template resource loaders.

A loader answers ``resolve(name)`` with the source of a template, or with an
awaitable of it, and raises ``LoaderError`` when the resource does not
exist. ``exists(name)`` and ``last_modified(name)`` complete the protocol.
"""

import logging
import os
import threading
import time

from cachetools import LRUCache

from vela.errors import LoaderError
from vela.options import RenderOptions
from vela.template import Template

__all__ = ["CachingFileLoader", "DictLoader", "NullLoader"]

LOG = logging.getLogger(__name__)


class NullLoader(object):
    def resolve(self, name):
        raise LoaderError(name, "no loader available")

    def exists(self, name):
        return False

    def last_modified(self, name):
        return None


class DictLoader(object):
    """Serves templates from an in-memory mapping of name to source."""

    def __init__(self, templates=None):
        self.templates = {}
        self.modified = {}
        for name, source in (templates or {}).items():
            self.add(name, source)

    def add(self, name, source):
        self.templates[name] = source
        self.modified[name] = time.time()

    def resolve(self, name):
        try:
            return self.templates[name]
        except KeyError:
            raise LoaderError(name, "not found")

    def exists(self, name):
        return name in self.templates

    def last_modified(self, name):
        return self.modified.get(name)


class CachingFileLoader(object):
    """Loads templates from a directory, keeping compiled templates until
    the file on disk changes."""

    def __init__(self, basedir, options=None, cache_size=128):
        self.basedir = basedir
        self.options = options if options is not None else RenderOptions()
        self.known_templates = LRUCache(maxsize=cache_size)  # name -> (template, mtime)
        self.lock = threading.Lock()

    def filename_of(self, name):
        return os.path.join(self.basedir, name)

    def resolve(self, name):
        try:
            with open(self.filename_of(name), encoding=self.options.encoding) as f:
                return f.read()
        except OSError as e:
            raise LoaderError(name, e.strerror or str(e))

    def exists(self, name):
        return os.path.isfile(self.filename_of(name))

    def last_modified(self, name):
        try:
            return os.path.getmtime(self.filename_of(name))
        except OSError:
            return None

    def load_template(self, name):
        mtime = self.last_modified(name)
        if mtime is None:
            raise LoaderError(name, "not found in %s" % self.basedir)
        with self.lock:
            cached = self.known_templates.get(name)
        if cached is not None and mtime <= cached[1]:
            return cached[0]
        LOG.debug("compiling %s", self.filename_of(name))
        template = Template(self.resolve(name), filename=name, options=self.options)
        template.ensure_compiled()
        with self.lock:
            self.known_templates[name] = (template, mtime)
        return template

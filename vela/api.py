import os

from cachetools import LRUCache

from vela.loaders import CachingFileLoader
from vela.options import RenderOptions

__all__ = ["Vela"]


class Vela(object):
    def __init__(self, cache=10, **options):
        self.loaders = LRUCache(maxsize=cache)
        self.options = RenderOptions(**options)

    def __call__(self, data, template, mime_type="text/plain", providers=None):
        basepath = os.path.dirname(template)

        if basepath not in self.loaders:
            loader = CachingFileLoader(basepath, options=self.options)
            self.loaders[basepath] = loader

        else:
            loader = self.loaders[basepath]

        template = loader.load_template(os.path.basename(template))

        return mime_type, template.merge(data, loader=loader, providers=providers)

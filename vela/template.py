import io

from vela.builder import build
from vela.evaluator import Evaluator
from vela.options import RenderOptions

__all__ = ["Template", "render", "render_async"]


class Template(object):
    """A compiled template.

    Compilation happens once, on first use; the resulting tree is immutable
    and every merge runs against a fresh ``Evaluator``, so one instance can
    be shared between threads and concurrent tasks.
    """

    def __init__(self, content, filename=None, options=None):
        self.content = content
        self.filename = filename
        self.options = options if options is not None else RenderOptions()
        self.root_element = None

    def ensure_compiled(self):
        if self.root_element is None:
            self.root_element = build(
                self.content, self.filename, self.options.space_gobbling
            )
        return self.root_element

    def merge(self, namespace, loader=None, providers=None):
        output = io.StringIO()
        self.merge_to(namespace, output, loader, providers)
        return output.getvalue()

    def merge_to(self, namespace, fileobj, loader=None, providers=None):
        root = self.ensure_compiled()
        evaluator = Evaluator(namespace, loader, providers, self.options)
        evaluator.render_to(root, fileobj)

    async def merge_async(self, namespace, loader=None, providers=None):
        root = self.ensure_compiled()
        evaluator = Evaluator(namespace, loader, providers, self.options)
        return await evaluator.render_async(root)

    def __repr__(self):
        return "<Template %s>" % (self.filename or "<string>")


def _options(options, settings):
    if options is None:
        return RenderOptions(**settings)
    if settings:
        return options.replace(**settings)
    return options


def render(source, context=None, loader=None, providers=None, options=None, **settings):
    """Renders ``source`` against ``context`` in one call.

    Keyword settings (``space_gobbling``, ``max_loops`` ...) override the
    corresponding ``RenderOptions`` fields.
    """
    template = Template(source, options=_options(options, settings))
    return template.merge(context if context is not None else {}, loader, providers)


async def render_async(
    source, context=None, loader=None, providers=None, options=None, **settings
):
    template = Template(source, options=_options(options, settings))
    return await template.merge_async(
        context if context is not None else {}, loader, providers
    )

"""Per-render state and the drivers that run a template walk.

An ``Evaluator`` is created for every render and discarded afterwards: it
owns the scope stack, the macro table, the depth counters and the output
stream, so nothing leaks from one render into the next.

The walk produced by ``nodes.Template.evaluate`` is a generator that yields
a ``LoadRequest`` whenever ``#parse`` or ``#include`` needs a resource.
``run`` answers those requests with the loader synchronously; ``run_async``
awaits loaders whose ``resolve`` returns an awaitable. Loader failures are
thrown back into the walk at the directive that asked.
"""

import inspect
import io
import logging

from vela.builder import build
from vela.errors import LoaderError, TemplateError
from vela.nodes import StopSignal
from vela.options import RenderOptions
from vela.providers import ProviderRegistry
from vela.scope import MacroTable, ScopeManager

__all__ = ["Evaluator"]

LOG = logging.getLogger(__name__)


class Evaluator(object):
    def __init__(
        self, namespace=None, loader=None, providers=None, options=None, filename=None
    ):
        self.options = options if options is not None else RenderOptions()
        self.scopes = ScopeManager(namespace)
        self.macros = MacroTable(self.options.macro_replace_allowed)
        self.loader = loader
        self.filename = filename
        self.macro_depth = 0
        self.parse_depth = 0
        self.evaluate_depth = 0
        self.stream = None
        self.compiled = {}
        if providers is not None:
            if not isinstance(providers, ProviderRegistry):
                providers = ProviderRegistry(providers)
            providers.inject(self.scopes)

    # services used by the nodes

    def write(self, text):
        self.stream.write(text)

    def define_macros(self, macros):
        for macro in macros:
            self.macros.define(macro.name, macro.parameters, macro.body)

    def compile(self, source, filename=None):
        key = (filename, source)
        template = self.compiled.get(key)
        if template is None:
            template = build(source, filename, self.options.space_gobbling)
            self.compiled[key] = template
        return template

    def render_fragment(self, block):
        """Renders a block into a buffer of its own.

        This is part of the walk: loads inside the block are yielded to the
        running driver, and the text produced is the return value.
        """
        stream, self.stream = self.stream, io.StringIO()
        try:
            yield from block.evaluate(self)
            return self.stream.getvalue()
        finally:
            self.stream = stream

    # loading

    def request(self, request):
        if self.loader is None:
            raise LoaderError(request.name, "no loader available")
        try:
            source = self.loader.resolve(request.name)
        except LoaderError:
            raise
        except Exception as e:
            raise LoaderError(request.name, e) from e
        return source

    def checked(self, name, source):
        if source is None:
            raise LoaderError(name, "loader returned nothing")
        if isinstance(source, bytes):
            source = source.decode(self.options.encoding)
        return source

    def resolve(self, request):
        source = self.request(request)
        if inspect.isawaitable(source):
            if hasattr(source, "close"):
                source.close()
            raise TemplateError(
                "loader for '%s' is asynchronous; render with merge_async()"
                % request.name
            )
        return self.checked(request.name, source)

    async def resolve_async(self, request):
        source = self.request(request)
        if inspect.isawaitable(source):
            try:
                source = await source
            except LoaderError:
                raise
            except Exception as e:
                raise LoaderError(request.name, e) from e
        return self.checked(request.name, source)

    # drivers

    def run(self, walk):
        value, error = None, None
        while True:
            try:
                if error is not None:
                    request = walk.throw(error)
                else:
                    request = walk.send(value)
            except StopIteration:
                return
            value, error = None, None
            try:
                value = self.resolve(request)
            except LoaderError as e:
                error = e

    async def run_async(self, walk):
        value, error = None, None
        while True:
            try:
                if error is not None:
                    request = walk.throw(error)
                else:
                    request = walk.send(value)
            except StopIteration:
                return
            value, error = None, None
            try:
                value = await self.resolve_async(request)
            except LoaderError as e:
                error = e

    def start(self, template, stream):
        self.stream = stream
        self.filename = template.filename
        return iter(template.evaluate(self))

    def render_to(self, template, stream):
        walk = self.start(template, stream)
        try:
            self.run(walk)
        except StopSignal:
            LOG.debug("#stop ended the render of %s", self.filename or "<string>")

    async def render_to_async(self, template, stream):
        walk = self.start(template, stream)
        try:
            await self.run_async(walk)
        except StopSignal:
            LOG.debug("#stop ended the render of %s", self.filename or "<string>")

    def render(self, template):
        output = io.StringIO()
        self.render_to(template, output)
        return output.getvalue()

    async def render_async(self, template):
        output = io.StringIO()
        await self.render_to_async(template, output)
        return output.getvalue()

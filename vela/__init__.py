from vela.errors import (
    LexicalError,
    LoaderError,
    ParseIssue,
    TemplateError,
    TemplateExecutionError,
    TemplateSyntaxError,
)
from vela.loaders import CachingFileLoader, DictLoader, NullLoader
from vela.options import RenderOptions, SpaceGobbling
from vela.parser import check
from vela.providers import ProviderRegistry
from vela.template import Template, render, render_async

__all__ = [
    "CachingFileLoader",
    "DictLoader",
    "LexicalError",
    "LoaderError",
    "NullLoader",
    "ParseIssue",
    "ProviderRegistry",
    "RenderOptions",
    "SpaceGobbling",
    "Template",
    "TemplateError",
    "TemplateExecutionError",
    "TemplateSyntaxError",
    "check",
    "render",
    "render_async",
]

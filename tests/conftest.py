import pytest

from vela import DictLoader, render


@pytest.fixture
def loader():
    return DictLoader()


@pytest.fixture
def test_render(loader):
    """Renders a template string against a context, resolving ``#parse``
    and ``#include`` through the ``loader`` fixture."""

    def _render(template, context=None, **settings):
        return render(template, context or {}, loader=loader, **settings)

    return _render

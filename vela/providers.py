import logging
import re

__all__ = ["ProviderRegistry"]

LOG = logging.getLogger(__name__)

NAME = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*$")


class ProviderRegistry(object):
    """Named host objects (``$util``, ``$input``, ...) made visible to every
    template rendered with this registry.

    Providers are opaque: templates reach them through the same property and
    method rules as any other value. A variable of the same name in the
    render context takes precedence over the provider.
    """

    def __init__(self, providers=None):
        self.providers = {}
        if providers:
            for name, provider in providers.items():
                self.register(name, provider)

    def register(self, name, provider):
        if not NAME.match(name):
            raise ValueError("invalid provider name: %r" % (name,))
        if name in self.providers:
            LOG.debug("replacing provider $%s", name)
        self.providers[name] = provider
        return provider

    def unregister(self, name):
        return self.providers.pop(name, None)

    def get(self, name):
        return self.providers.get(name)

    def names(self):
        return list(self.providers)

    def __contains__(self, name):
        return name in self.providers

    def __len__(self):
        return len(self.providers)

    def inject(self, scopes):
        for name, provider in self.providers.items():
            if scopes.has_variable(name):
                LOG.debug("context value $%s shadows the provider", name)
                continue
            scopes.set_variable(name, provider)

import logging

__all__ = ["RenderOptions", "SpaceGobbling"]

LOG = logging.getLogger(__name__)


class SpaceGobbling(object):
    NONE = "none"
    BC = "bc"
    LINES = "lines"
    STRUCTURED = "structured"

    MODES = (NONE, BC, LINES, STRUCTURED)
    DEFAULT = LINES

    @classmethod
    def normalize(cls, mode):
        if mode is None:
            return cls.DEFAULT
        normalized = str(mode).strip().lower()
        if normalized not in cls.MODES:
            LOG.warning(
                "unknown space gobbling mode %r, falling back to %r", mode, cls.DEFAULT
            )
            return cls.DEFAULT
        return normalized


class RenderOptions(object):
    """Per-render configuration.

    Instances are treated as read-only once handed to a template; use
    ``replace()`` to derive a variant.
    """

    # Velocity property key -> (attribute, converter)
    PROPERTIES = {
        "space.gobbling": ("space_gobbling", str),
        "directive.foreach.max_loops": ("max_loops", int),
        "directive.parse.max_depth": ("max_parse_depth", int),
        "velocimacro.max_depth": ("max_macro_depth", int),
        "velocimacro.inline.replace_global": (
            "macro_replace_allowed",
            lambda v: str(v).lower() == "true",
        ),
        "resource.default_encoding": ("encoding", str),
    }

    def __init__(
        self,
        space_gobbling=SpaceGobbling.DEFAULT,
        max_loops=1000,
        max_macro_depth=20,
        max_parse_depth=10,
        max_evaluate_depth=10,
        encoding="utf-8",
        strict_loading=True,
        macro_replace_allowed=False,
    ):
        self.space_gobbling = SpaceGobbling.normalize(space_gobbling)
        self.max_loops = max_loops
        self.max_macro_depth = max_macro_depth
        self.max_parse_depth = max_parse_depth
        self.max_evaluate_depth = max_evaluate_depth
        self.encoding = encoding
        self.strict_loading = strict_loading
        self.macro_replace_allowed = macro_replace_allowed

    @classmethod
    def from_properties(cls, properties):
        kwargs = {}
        for key, value in properties.items():
            try:
                attribute, convert = cls.PROPERTIES[key]
            except KeyError:
                LOG.debug("ignoring unsupported property %s", key)
                continue
            kwargs[attribute] = convert(value)
        return cls(**kwargs)

    def replace(self, **changes):
        values = dict(self.__dict__)
        values.update(changes)
        return RenderOptions(**values)

    def __repr__(self):
        return "RenderOptions(%s)" % ", ".join(
            "%s=%r" % item for item in sorted(self.__dict__.items())
        )

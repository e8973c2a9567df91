from collections import namedtuple

__all__ = [
    "LexicalError",
    "LoaderError",
    "ParseIssue",
    "TemplateError",
    "TemplateExecutionError",
    "TemplateSyntaxError",
]


ParseIssue = namedtuple("ParseIssue", "message expected position")


class TemplateError(Exception):
    pass


class TemplateSyntaxError(TemplateError):
    def __init__(self, source, position, expected, rule="template", filename=None):
        self.source = source
        self.position = position
        self.expected = expected
        self.rule = rule
        self.filename = filename
        self.text_understood = source[:position]
        self.line = 1 + self.text_understood.count("\n")
        self.column = len(self.text_understood) - self.text_understood.rfind("\n")
        got = source[position:]
        if len(got) > 40:
            got = got[:36] + " ..."
        message = "line %d, column %d: expected %s in %s, got: %s ..." % (
            self.line,
            self.column,
            expected,
            self.element_name(),
            got,
        )
        self.errors = [ParseIssue(message, expected, position)]
        TemplateError.__init__(self, message)

    def get_position_strings(self):
        error_line_start = 1 + self.text_understood.rfind("\n")
        if "\n" in self.source[self.position :]:
            error_line_end = self.source.find("\n", self.position)
        else:
            error_line_end = len(self.source)
        error_line = self.source[error_line_start:error_line_end]
        caret_pos = self.column
        return [error_line, " " * (caret_pos - 1) + "^"]

    def element_name(self):
        return self.rule.replace("_", " ")


class LexicalError(TemplateSyntaxError):
    def __init__(self, source, position, expected, tokens=(), filename=None):
        TemplateSyntaxError.__init__(
            self, source, position, expected, rule="token", filename=filename
        )
        self.tokens = list(tokens)


class TemplateExecutionError(TemplateError):
    def __init__(self, node, cause, filename=None):
        self.filename = filename
        self.start = node.location
        self.end = node.end
        self.node = node
        self.__cause__ = cause
        where = "%s:%d" % (filename or "<string>", self.start)
        TemplateError.__init__(
            self, "%s: %s: %s" % (where, type(cause).__name__, cause)
        )


class LoaderError(TemplateError):
    def __init__(self, name, reason=None):
        self.name = name
        self.reason = reason
        message = "cannot load template resource '%s'" % name
        if reason:
            message += ": %s" % reason
        TemplateError.__init__(self, message)

"""Value semantics shared by every node: truthiness, coercion, the binary
and unary operators, rendering of values as text, and the adapters that
give templates uniform access to host objects."""

import logging
import math
import operator
import re
from collections.abc import Mapping, MutableMapping, MutableSequence, Sequence, Set

__all__ = [
    "ADAPTERS",
    "DataAdapter",
    "ObjectAdapter",
    "adapter_for",
    "binary",
    "boolean_value",
    "get_item",
    "get_property",
    "invoke_method",
    "set_item",
    "set_property",
    "to_number",
    "to_text",
    "unary",
]

LOG = logging.getLogger(__name__)

NUMBER = re.compile(r"\s*[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?\s*$")


###############################################################################
# Truth and numbers
###############################################################################


def boolean_value(value):
    if value is None or value is False:
        return False
    if value is True:
        return True
    if isinstance(value, float):
        return value != 0 and not math.isnan(value)
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return len(value) > 0
    if isinstance(value, Mapping):
        return True
    if isinstance(value, (Sequence, Set)):
        return len(value) > 0
    return bool(value)


def to_number(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str) and NUMBER.match(value):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            return float(text)
    return None


def _normalize(number):
    if isinstance(number, float) and number.is_integer() and abs(number) < 2**53:
        return int(number)
    return number


def _add(a, b):
    if isinstance(a, str) or isinstance(b, str):
        if a is None or b is None:
            return None
        return to_text(a) + to_text(b)
    return _arithmetic(operator.add, a, b)


def _arithmetic(op, a, b):
    x, y = to_number(a), to_number(b)
    if x is None or y is None:
        return None
    return op(x, y)


def _divide(a, b):
    x, y = to_number(a), to_number(b)
    if x is None or y is None:
        return None
    if y == 0:
        return 0
    if isinstance(x, int) and isinstance(y, int):
        return _normalize(x / y) if x % y else x // y
    return x / y


def _modulo(a, b):
    x, y = to_number(a), to_number(b)
    if x is None or y is None:
        return None
    if y == 0:
        return 0
    if isinstance(x, int) and isinstance(y, int):
        remainder = abs(x) % abs(y)
        return -remainder if x < 0 else remainder
    return math.fmod(x, y)


def _equals(a, b):
    if a is None or b is None:
        return a is None and b is None
    x, y = to_number(a), to_number(b)
    if x is not None and y is not None:
        return x == y
    if isinstance(a, bool) or isinstance(b, bool):
        return a is b
    if type(a) is type(b):
        return a == b
    return to_text(a) == to_text(b)


def _comparison(op):
    def compare(a, b):
        x, y = to_number(a), to_number(b)
        if x is not None and y is not None:
            return op(x, y)
        if isinstance(a, str) and isinstance(b, str):
            return op(a, b)
        LOG.debug("cannot compare %r with %r", a, b)
        return False

    return compare


BINARY_OPERATORS = {
    "+": _add,
    "-": lambda a, b: _arithmetic(operator.sub, a, b),
    "*": lambda a, b: _arithmetic(operator.mul, a, b),
    "/": _divide,
    "%": _modulo,
    "==": _equals,
    "!=": lambda a, b: not _equals(a, b),
    ">": _comparison(operator.gt),
    ">=": _comparison(operator.ge),
    "<": _comparison(operator.lt),
    "<=": _comparison(operator.le),
    "&&": lambda a, b: boolean_value(a) and boolean_value(b),
    "||": lambda a, b: boolean_value(a) or boolean_value(b),
}

WORD_OPERATORS = {
    "eq": "==",
    "ne": "!=",
    "gt": ">",
    "ge": ">=",
    "lt": "<",
    "le": "<=",
    "and": "&&",
    "or": "||",
    "not": "!",
}


def _negate(value):
    number = to_number(value)
    return None if number is None else -number


UNARY_OPERATORS = {
    "!": lambda value: not boolean_value(value),
    "-": _negate,
    "+": to_number,
}


def binary(op, a, b):
    return BINARY_OPERATORS[op](a, b)


def unary(op, value):
    return UNARY_OPERATORS[op](value)


###############################################################################
# Rendering
###############################################################################


def to_text(value):
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, Mapping):
        return "{%s}" % ", ".join(
            "%s=%s" % (to_text(k), to_text(v)) for k, v in value.items()
        )
    if isinstance(value, (Sequence, Set)) and not isinstance(value, (bytes, range)):
        return "[%s]" % ", ".join(to_text(item) for item in value)
    if isinstance(value, range):
        return "[%s]" % ", ".join(str(item) for item in value)
    return str(value)


###############################################################################
# Host objects
###############################################################################


def _java_pattern(pattern):
    return re.compile(pattern)


def _java_replacement(replacement):
    return re.sub(r"\$(\d+)", r"\\\1", replacement)


def _substring(s, begin, end=None):
    return s[begin:end]


def _index_of(s, sub, start=0):
    return s.find(sub, start)


def _split(s, pattern, limit=0):
    parts = _java_pattern(pattern).split(s, maxsplit=max(limit - 1, 0))
    if limit == 0:
        while parts and parts[-1] == "":
            parts.pop()
    return parts


STRING_METHODS = {
    "length": len,
    "isEmpty": lambda s: len(s) == 0,
    "toUpperCase": lambda s: s.upper(),
    "toLowerCase": lambda s: s.lower(),
    "trim": lambda s: s.strip(),
    "contains": lambda s, sub: to_text(sub) in s,
    "startsWith": lambda s, prefix: s.startswith(prefix),
    "endsWith": lambda s, suffix: s.endswith(suffix),
    "equals": lambda s, other: s == other,
    "equalsIgnoreCase": lambda s, other: isinstance(other, str)
    and s.lower() == other.lower(),
    "indexOf": _index_of,
    "lastIndexOf": lambda s, sub: s.rfind(sub),
    "charAt": lambda s, index: s[index],
    "substring": _substring,
    "concat": lambda s, other: s + to_text(other),
    "replace": lambda s, old, new: s.replace(to_text(old), to_text(new)),
    "replaceAll": lambda s, pattern, repl: _java_pattern(pattern).sub(
        _java_replacement(repl), s
    ),
    "replaceFirst": lambda s, pattern, repl: _java_pattern(pattern).sub(
        _java_replacement(repl), s, count=1
    ),
    "matches": lambda s, pattern: _java_pattern(pattern).fullmatch(s) is not None,
    "split": _split,
    "toString": lambda s: s,
}


def _list_add(items, *args):
    if len(args) == 2:
        items.insert(args[0], args[1])
        return None
    items.append(args[0])
    return True


def _list_remove(items, item):
    if isinstance(item, int) and not isinstance(item, bool):
        return items.pop(item)
    if item in items:
        items.remove(item)
        return True
    return False


def _list_set(items, index, value):
    previous = items[index]
    items[index] = value
    return previous


def _list_index_of(items, item):
    try:
        return items.index(item)
    except ValueError:
        return -1


LIST_METHODS = {
    "size": len,
    "isEmpty": lambda items: len(items) == 0,
    "get": lambda items, index: items[index],
    "contains": lambda items, item: item in items,
    "indexOf": _list_index_of,
    "add": _list_add,
    "addAll": lambda items, others: items.extend(others) or True,
    "remove": _list_remove,
    "set": _list_set,
    "subList": lambda items, begin, end: list(items[begin:end]),
    "toString": to_text,
}


def _map_put(mapping, key, value):
    previous = mapping.get(key)
    mapping[key] = value
    return previous


def _map_put_all(mapping, other):
    mapping.update(other)


MAP_METHODS = {
    "size": len,
    "isEmpty": lambda mapping: len(mapping) == 0,
    "get": lambda mapping, key: mapping.get(key),
    "getOrDefault": lambda mapping, key, default: mapping.get(key, default),
    "containsKey": lambda mapping, key: key in mapping,
    "containsValue": lambda mapping, value: value in mapping.values(),
    "keySet": lambda mapping: list(mapping.keys()),
    "values": lambda mapping: list(mapping.values()),
    "entrySet": lambda mapping: [
        {"key": key, "value": value} for key, value in mapping.items()
    ],
    "put": _map_put,
    "putAll": _map_put_all,
    "remove": lambda mapping, key: mapping.pop(key, None),
    "toString": to_text,
}


def _getter_names(name):
    capitalized = name[:1].upper() + name[1:]
    return ("get" + capitalized, "is" + capitalized)


class DataAdapter(object):
    """Plain structured data: mappings, sequences and strings.

    Besides the data itself, these values answer the Java collection and
    string methods templates are written against (``$list.size()``,
    ``$map.put(...)``, ``$s.startsWith(...)``)."""

    METHODS = ((str, STRING_METHODS), (Mapping, MAP_METHODS), (Sequence, LIST_METHODS))

    def handles(self, value):
        return isinstance(value, (str, Mapping, Sequence, Set)) and not isinstance(
            value, bytes
        )

    def methods_for(self, value):
        for cls, methods in self.METHODS:
            if isinstance(value, cls):
                return methods
        return LIST_METHODS

    def get_property(self, value, name):
        if isinstance(value, Mapping):
            result = value.get(name)
            if result is not None or name in value:
                return result
        methods = self.methods_for(value)
        for getter in _getter_names(name):
            if getter in methods:
                return methods[getter](self._sequence(value))
        return None

    def invoke_method(self, value, name, args):
        if isinstance(value, Mapping) and callable(value.get(name)):
            return value[name](*args)
        method = self.methods_for(value).get(name)
        if method is not None:
            return method(self._sequence(value), *args)
        attribute = getattr(value, name, None)
        if callable(attribute):
            return attribute(*args)
        return None

    def _sequence(self, value):
        if isinstance(value, Set) and not isinstance(value, MutableSequence):
            return list(value)
        return value


class ObjectAdapter(object):
    """Any other host object: attributes, bean-style getters, callables."""

    def handles(self, value):
        return True

    def get_property(self, value, name):
        result = getattr(value, name, None)
        if result is not None:
            return result
        for getter in _getter_names(name):
            method = getattr(value, getter, None)
            if callable(method):
                return method()
        if hasattr(value, "__getitem__"):
            try:
                return value[name]
            except (KeyError, IndexError, TypeError):
                return None
        return None

    def invoke_method(self, value, name, args):
        method = getattr(value, name, None)
        if callable(method):
            return method(*args)
        return None


ADAPTERS = [DataAdapter(), ObjectAdapter()]


def adapter_for(value):
    for adapter in ADAPTERS:
        if adapter.handles(value):
            return adapter


def get_property(value, name):
    if value is None:
        return None
    return adapter_for(value).get_property(value, name)


def invoke_method(value, name, args):
    if value is None:
        return None
    return adapter_for(value).invoke_method(value, name, args)


def get_item(value, index):
    if value is None or index is None:
        return None
    if isinstance(value, Mapping):
        return value.get(index)
    if isinstance(value, (Sequence, range)) and not isinstance(value, str):
        if isinstance(index, bool) or not isinstance(index, int):
            number = to_number(index)
            if not isinstance(number, int):
                LOG.debug("%r is not a list index", index)
                return None
            index = number
        try:
            return value[index]
        except IndexError:
            return None
    return get_property(value, to_text(index))


def set_property(value, name, new_value):
    if isinstance(value, MutableMapping):
        value[name] = new_value
    else:
        setattr(value, name, new_value)


def set_item(value, index, new_value):
    if isinstance(value, MutableSequence):
        value[int(to_number(index))] = new_value
    else:
        set_property(value, index, new_value)

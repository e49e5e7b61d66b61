"""
Tag algebra for bookmark tag sets.

Tag expressions are comma-separated segments:

    +tag        add tag
    -tag        remove tag
    ~old:new    replace old with new (only when old is present)
    tag         add tag (no prefix)

Tags are stored in canonical form: lower-cased, de-duplicated, sorted and
wrapped in the delimiter (``,python,web,``) so that a substring match on
``,name,`` can only ever hit a whole tag.
"""
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Union

from marklog.errors import MalformedTagExpression

DELIMITER = ","
EMPTY_TAGS = DELIMITER


@dataclass(frozen=True)
class AddTag:
    name: str


@dataclass(frozen=True)
class RemoveTag:
    name: str


@dataclass(frozen=True)
class ReplaceTag:
    old: str
    new: str


@dataclass(frozen=True)
class SetPlain:
    """An unprefixed tag; applies exactly like AddTag."""
    name: str


TagOperation = Union[AddTag, RemoveTag, ReplaceTag, SetPlain]


def normalize_tag(name: str) -> str:
    """Trim and lower-case a single tag name."""
    return name.strip().lower()


def split_tags(tags: Union[str, Iterable[str], None]) -> List[str]:
    """
    Split a delimited tag string (canonical or not) into a sorted list.

    Empty segments are dropped, so ``",a,,b,"`` and ``"b, a"`` both give
    ``["a", "b"]``.
    """
    if tags is None:
        return []
    if isinstance(tags, str):
        parts = tags.split(DELIMITER)
    else:
        parts = list(tags)
    return sorted({normalize_tag(p) for p in parts if p and p.strip()})


def canonicalize(tags: Union[str, Iterable[str], None]) -> str:
    """
    Serialize tags to canonical form.

    >>> canonicalize(["Web", "python", "web"])
    ',python,web,'
    >>> canonicalize([])
    ','
    """
    names = split_tags(tags)
    if not names:
        return EMPTY_TAGS
    return DELIMITER + DELIMITER.join(names) + DELIMITER


def _name(expression: str, raw: str) -> str:
    name = normalize_tag(raw)
    if not name:
        raise MalformedTagExpression(expression, "empty tag name")
    return name


def parse(expression: str) -> List[TagOperation]:
    """
    Parse a tag expression into an ordered list of operations.

    Raises:
        MalformedTagExpression: if a segment is empty after trimming or a
            replace segment lacks the ``:`` separator
    """
    if expression is None or not expression.strip():
        return []

    operations: List[TagOperation] = []
    for segment in expression.split(DELIMITER):
        segment = segment.strip()
        if not segment:
            raise MalformedTagExpression(expression, "empty segment")

        prefix, rest = segment[0], segment[1:]
        if prefix == "+":
            operations.append(AddTag(_name(expression, rest)))
        elif prefix == "-":
            operations.append(RemoveTag(_name(expression, rest)))
        elif prefix == "~":
            old, sep, new = rest.partition(":")
            if not sep:
                raise MalformedTagExpression(
                    expression, f"replace '{segment}' needs the form ~old:new"
                )
            operations.append(ReplaceTag(_name(expression, old), _name(expression, new)))
        else:
            operations.append(SetPlain(_name(expression, segment)))

    return operations


def apply(current: Union[str, Iterable[str], None], operations: Iterable[TagOperation]) -> FrozenSet[str]:
    """
    Apply operations left to right over one working set.

    Removing or replacing an absent tag is a no-op, never an error.
    """
    tags = set(split_tags(current))

    for op in operations:
        if isinstance(op, (AddTag, SetPlain)):
            tags.add(normalize_tag(op.name))
        elif isinstance(op, RemoveTag):
            tags.discard(normalize_tag(op.name))
        elif isinstance(op, ReplaceTag):
            old = normalize_tag(op.old)
            if old in tags:
                tags.remove(old)
                tags.add(normalize_tag(op.new))
        else:
            raise TypeError(f"Unknown tag operation: {op!r}")

    return frozenset(tags)


def apply_expression(current: Union[str, Iterable[str], None], expression: str) -> str:
    """Parse ``expression``, apply it to ``current`` and return canonical form."""
    return canonicalize(apply(current, parse(expression)))

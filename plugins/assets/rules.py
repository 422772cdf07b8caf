"""
Best-match rule resolution.

A scheme is an ordered list of rules ``(condition, action, flags)``. Resolving
a (kind, signature) pair walks the scheme once, merging each matching action
into the result: a match at least as specific as the best one seen so far
overwrites fields, a weaker match only fills fields that are still unset.

Conditions, from weakest to strongest:

- ``default``: applies to everything; only fills in once something better matched.
- ``css``: a type-level rule for every css kind.
- ``css:*``: any filter signature on css.
- ``css-print:concat``: one kind and one signature.

A kind in a condition matches every kind of the same type; its media
variant only makes the condition more specific.

A rule condition can also be a callable ``(kind, signature, best_kind)``
returning 1 (better match), -1 (weaker match) or None (no match).
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple, Union

from plugins.assets.errors import ConfigurationError, UnknownKindError
from plugins.assets.kind import Kind

# File name appended to output path templates that name a directory.
DEFAULT_FILENAME = "{name}-{digest:.12}.{ext}"

# Specificity of a condition: (signature level, kind variant level).
Specificity = Tuple[int, int]
EXACT: Specificity = (2, 2)


@dataclass(frozen=True)
class Default:
    def __str__(self) -> str:
        return "default"


@dataclass(frozen=True)
class Predicate:
    function: Callable[[Kind, str, Optional[Kind]], Optional[int]]


@dataclass(frozen=True)
class ExactKey:
    kind: Kind
    signature: str

    @property
    def key(self) -> str:
        return f"{self.kind.name}:{self.signature}"

    @property
    def specificity(self) -> Specificity:
        return 2, self.kind.specificity


@dataclass(frozen=True)
class WildcardSignature:
    kind: Kind
    # True for a bare "<kind>" condition, False for "<kind>:*"
    type_level: bool = False

    @property
    def specificity(self) -> Specificity:
        return (0 if self.type_level else 1), self.kind.specificity


Condition = Union[Default, Predicate, ExactKey, WildcardSignature]


class Rule(NamedTuple):
    condition: Condition
    action: Any
    flags: Optional[Dict[str, Any]] = None


def parse_condition(value) -> Condition:
    if isinstance(value, (Default, Predicate, ExactKey, WildcardSignature)):
        return value
    if callable(value):
        return Predicate(value)
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"Don't understand rule condition {value!r}")

    text = value.strip()
    if text == "default":
        return Default()

    kind_name, separator, signature = text.partition(":")
    try:
        kind = Kind.parse(kind_name)
    except UnknownKindError as e:
        raise ConfigurationError(f"Don't understand rule condition {value!r}: {e}") from e

    if not separator:
        return WildcardSignature(kind, type_level=True)
    if signature == "*":
        return WildcardSignature(kind)
    return ExactKey(kind, signature)


def parse_rule(item) -> Rule:
    """Accept a Rule, a ``(condition, action[, flags])`` sequence or a one-key ``{condition: action}`` mapping."""
    if isinstance(item, Rule):
        return Rule(parse_condition(item.condition), item.action, dict(item.flags or {}))
    if isinstance(item, Mapping):
        if len(item) != 1:
            raise ConfigurationError(f"A rule mapping needs exactly one condition, got {list(item)}")
        ((condition, action),) = item.items()
        return Rule(parse_condition(condition), action, {})
    if isinstance(item, (list, tuple)) and len(item) in (2, 3):
        flags = dict(item[2] or {}) if len(item) == 3 else {}
        return Rule(parse_condition(item[0]), item[1], flags)
    raise ConfigurationError(f"Don't understand rule {item!r}")


def parse_scheme(items) -> List[Rule]:
    """Normalize a scheme; a bare string becomes a single ``default`` rule."""
    if items is None:
        return []
    if isinstance(items, str):
        return [Rule(Default(), items, {})]
    if isinstance(items, (Rule, Mapping)):
        return [parse_rule(items)]
    return [parse_rule(item) for item in items]


def path_fields(action) -> Dict[str, Any]:
    if action is None:
        return {}
    if isinstance(action, str):
        return {"path": action}
    if isinstance(action, Mapping):
        return dict(action)
    raise ConfigurationError(f"Don't understand output path action {action!r}")


def asset_fields(action) -> Dict[str, Any]:
    if action is None:
        return {}
    if isinstance(action, Mapping):
        return dict(action)
    raise ConfigurationError(f"Don't understand output asset action {action!r}")


def resolve(
    scheme: Iterable[Rule],
    kind: Kind,
    signature: str,
    extract: Callable[[Any], Dict[str, Any]] = path_fields,
) -> Dict[str, Any]:
    """Merge the actions of every rule in ``scheme`` that applies to (kind, signature)."""
    key = f"{kind.name}:{signature}"
    best_kind: Optional[Kind] = None
    best: Optional[Specificity] = None
    result: Dict[str, Any] = {}

    for rule in scheme:
        condition = rule.condition

        if isinstance(condition, Predicate):
            outcome = condition.function(kind, signature, best_kind)
            if outcome is None:
                continue
            if outcome not in (1, -1):
                raise ConfigurationError(f"Rule predicate returned {outcome!r}, expected 1, -1 or None")
            if outcome > 0:
                best_kind, best = kind, EXACT
        elif isinstance(condition, ExactKey) and condition.key == key:
            outcome = 1
            best_kind, best = kind, EXACT
        elif isinstance(condition, Default):
            outcome = 1 if best_kind is None else -1
        else:
            if isinstance(condition, ExactKey) and condition.signature != signature:
                continue
            if not condition.kind.type.same_as(kind.type):
                continue
            if best is None or condition.specificity >= best:
                outcome = 1
                best_kind, best = condition.kind, condition.specificity
            else:
                outcome = -1

        fields = extract(rule.action)
        if outcome > 0:
            result.update(fields)
        else:
            for name, value in fields.items():
                if result.get(name) is None:
                    result[name] = value

    return result


def expand_path(template: str, **values) -> str:
    """Fill the ``{placeholders}`` of an output path template."""
    if template.endswith("/"):
        template += DEFAULT_FILENAME
    try:
        return template.format_map(values)
    except KeyError as e:
        raise ConfigurationError(
            f"Unknown placeholder {e} in output path '{template}' (known: {', '.join(sorted(values))})"
        ) from e
    except (IndexError, ValueError) as e:
        raise ConfigurationError(f"Malformed output path '{template}': {e}") from e

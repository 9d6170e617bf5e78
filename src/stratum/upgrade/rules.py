"""Declarative property transforms for config documents.

A :class:`ConfigTypeRules` bundles the rules for one config type and the
services that must be installed for them to apply. ``apply`` is pure: it
never touches the store and returns a new dict.

Application order is fixed by rule kind, then by declaration order within
each kind:

1. ``RemoveProperty``: delete the key if present
2. ``RenameProperty``: move the value to the new key
3. ``ReplaceValue``: exact or substring replacement of the value
4. ``AddProperty``: insert if absent, overwrite only when ``force``

Every rule treats a missing key as a no-op, and every shipped rule set is
idempotent: ``rules.apply(rules.apply(x)) == rules.apply(x)``.

Example:
    >>> kafka = ConfigTypeRules(
    ...     "kafka-broker",
    ...     (RemoveProperty("kafka.timeline.metrics.host"),),
    ... )
    >>> kafka.apply({"kafka.timeline.metrics.host": "h", "kafka.timeline.metrics.port": "6188"})
    {'kafka.timeline.metrics.port': '6188'}
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

Attributes = Mapping[str, Mapping[str, str]]


class MatchMode(str, Enum):
    EXACT = "exact"
    CONTAINS = "contains"


@dataclass(frozen=True)
class AddProperty:
    key: str
    value: str
    force: bool = False


@dataclass(frozen=True)
class RemoveProperty:
    key: str


@dataclass(frozen=True)
class ReplaceValue:
    """Replace ``old`` with ``new`` in the value of ``key``.

    ``EXACT`` swaps the whole value only when it equals ``old``;
    ``CONTAINS`` substitutes every occurrence of ``old`` inside it.
    """

    key: str
    old: str
    new: str
    match: MatchMode = MatchMode.EXACT


@dataclass(frozen=True)
class RenameProperty:
    """Move ``old`` to ``new``. An existing ``new`` value wins and ``old`` is dropped."""

    old: str
    new: str


PropertyRule = AddProperty | RemoveProperty | ReplaceValue | RenameProperty


@dataclass(frozen=True)
class ConfigTypeRules:
    """Rules for one config type, gated on installed services."""

    config_type: str
    rules: tuple[PropertyRule, ...]
    requires: frozenset[str] = field(default_factory=frozenset)

    def applies_to(self, services: Iterable[str] | None) -> bool:
        if not self.requires:
            return True
        return services is not None and self.requires <= set(services)

    def apply(
        self, properties: Mapping[str, str], services: Iterable[str] | None = None
    ) -> dict[str, str]:
        """Return the transformed copy of ``properties``.

        When a required service is missing the copy is returned unchanged.
        """
        result = dict(properties)
        if not self.applies_to(services):
            return result

        for rule in self._of_kind(RemoveProperty):
            result.pop(rule.key, None)

        for rule in self._of_kind(RenameProperty):
            if rule.old not in result:
                continue
            value = result.pop(rule.old)
            result.setdefault(rule.new, value)

        for rule in self._of_kind(ReplaceValue):
            current = result.get(rule.key)
            if current is None:
                continue
            if rule.match is MatchMode.EXACT:
                if current == rule.old:
                    result[rule.key] = rule.new
            elif rule.old in current:
                result[rule.key] = current.replace(rule.old, rule.new)

        for rule in self._of_kind(AddProperty):
            if rule.force or rule.key not in result:
                result[rule.key] = rule.value

        return result

    def transform_attributes(
        self, attributes: Attributes, new_properties: Mapping[str, str]
    ) -> dict[str, dict[str, str]]:
        """Carry property attributes across renames and drop those of removed keys.

        Attribute maps left empty are dropped entirely.
        """
        renames = {r.old: r.new for r in self._of_kind(RenameProperty)}
        result: dict[str, dict[str, str]] = {}
        for name, values in attributes.items():
            moved = {
                key: value
                for key, value in values.items()
                if key not in renames and key in new_properties
            }
            for old, new in renames.items():
                if old in values and new in new_properties:
                    moved.setdefault(new, values[old])
            if moved:
                result[name] = moved
        return result

    def _of_kind(self, kind: type) -> list:
        return [rule for rule in self.rules if isinstance(rule, kind)]


__all__ = [
    "MatchMode",
    "AddProperty",
    "RemoveProperty",
    "ReplaceValue",
    "RenameProperty",
    "PropertyRule",
    "ConfigTypeRules",
]

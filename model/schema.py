# model/schema.py

"""
Relation signatures.

A Signature declares, for every relation the evaluator may see, the names
and value types of its fields. Ingestion checks each fact against it and
formula type checking reads variable types from it.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple

from .errors import SignatureConflict, TypeMismatch
from .fact import Fact
from .value import ValueType, coerce


@dataclass(frozen=True, slots=True)
class RelationSchema:
    name: str
    fields: Tuple[Tuple[str, ValueType], ...]

    @classmethod
    def of(cls, name: str, /, **fields: ValueType) -> "RelationSchema":
        """Build a schema from keyword arguments, in declaration order."""
        return cls(name, tuple(fields.items()))

    @property
    def arity(self) -> int:
        return len(self.fields)

    @property
    def types(self) -> Tuple[ValueType, ...]:
        return tuple(t for _, t in self.fields)

    def __str__(self) -> str:
        body = ", ".join(f"{n}:{t}" for n, t in self.fields)
        return f"{self.name}({body})"


@dataclass(slots=True)
class Signature:
    """Mapping of relation name to RelationSchema."""

    relations: Dict[str, RelationSchema] = field(default_factory=dict)

    @classmethod
    def of(cls, *schemas: RelationSchema) -> "Signature":
        sig = cls()
        for schema in schemas:
            sig.declare(schema)
        return sig

    def declare(self, schema: RelationSchema) -> None:
        existing = self.relations.get(schema.name)
        if existing is not None and existing.types != schema.types:
            raise SignatureConflict(
                f"Relation '{schema.name}' declared as {existing} and as {schema}"
            )
        if existing is None:
            self.relations[schema.name] = schema

    def merge(self, other: "Signature") -> "Signature":
        """Return a new signature holding the declarations of both."""
        merged = Signature(dict(self.relations))
        for schema in other:
            merged.declare(schema)
        return merged

    def get(self, name: str) -> Optional[RelationSchema]:
        return self.relations.get(name)

    def check(self, fact: Fact) -> Fact:
        """Validate a fact and return it with its values normalised.

        Raises:
            TypeMismatch: the relation is undeclared, the arity differs, or a
                value cannot be coerced to its declared type.
        """
        schema = self.relations.get(fact.relation)
        if schema is None:
            raise TypeMismatch(f"Undeclared relation '{fact.relation}' in {fact}")
        if fact.arity != schema.arity:
            raise TypeMismatch(
                f"Relation '{fact.relation}' expects {schema.arity} fields, got {fact.arity} in {fact}"
            )
        values = []
        for value, (fname, ftype) in zip(fact.fields, schema.fields):
            try:
                values.append(coerce(value, ftype))
            except TypeError as exc:
                raise TypeMismatch(f"Field '{fname}' of {fact}: {exc}") from exc
        normalised = tuple(values)
        if all(new is old for new, old in zip(normalised, fact.fields)):
            return fact
        return Fact(fact.relation, normalised, fact.timestamp)

    def __contains__(self, name: object) -> bool:
        return name in self.relations

    def __iter__(self) -> Iterator[RelationSchema]:
        return iter(self.relations.values())

    def __len__(self) -> int:
        return len(self.relations)

    def __str__(self) -> str:
        return "\n".join(str(s) for s in self)


def signature_from(declarations: Mapping[str, Iterable[Tuple[str, ValueType]]]) -> Signature:
    """Build a Signature from ``{relation: [(field, type), ...]}``."""
    return Signature.of(*(RelationSchema(name, tuple(fields)) for name, fields in declarations.items()))

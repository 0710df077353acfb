from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from .errors import ValidationError


@dataclass(frozen=True)
class KeySpec:
    fields: tuple[str, ...]

    def __post_init__(self) -> None:
        if len(self.fields) not in (1, 2):
            raise ValidationError(f"key must have one or two fields (got {len(self.fields)})")
        if any(not name for name in self.fields):
            raise ValidationError("key field names must be non-empty")
        if len(set(self.fields)) != len(self.fields):
            raise ValidationError(f"duplicate key field: {self.fields[0]}")

    @classmethod
    def parse(cls, key: str | Sequence[str] | None, mappings: Mapping[str, Any] | None = None) -> KeySpec:
        if key is None or (not isinstance(key, str) and len(key) == 0):
            names = list(mappings or {})[:2]
            return cls(tuple(names) if names else ("id",))
        if isinstance(key, str):
            return cls((key,))
        return cls(tuple(key))

    @property
    def partition(self) -> str:
        return self.fields[0]

    @property
    def sort(self) -> str | None:
        return self.fields[1] if len(self.fields) == 2 else None

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __contains__(self, name: object) -> bool:
        return name in self.fields


@dataclass(frozen=True)
class Projection:
    type: str
    fields: tuple[str, ...] = ()

    @staticmethod
    def all() -> Projection:
        return Projection(type="ALL")

    @staticmethod
    def keys_only() -> Projection:
        return Projection(type="KEYS_ONLY")

    @staticmethod
    def include(*fields: str) -> Projection:
        return Projection(type="INCLUDE", fields=tuple(fields))

    @staticmethod
    def parse(value: Projection | str | Sequence[str] | None) -> Projection:
        if value is None:
            return Projection.all()
        if isinstance(value, Projection):
            return value
        if isinstance(value, str):
            if value not in {"ALL", "KEYS_ONLY", "INCLUDE"}:
                raise ValidationError(f"unsupported projection type: {value}")
            return Projection(type=value)
        return Projection.include(*value)

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"ProjectionType": self.type}
        if self.type == "INCLUDE" and self.fields:
            out["NonKeyAttributes"] = list(self.fields)
        return out


@dataclass(frozen=True)
class IndexSpec:
    name: str
    type: str
    partition: str | None
    sort: str | None = None
    projection: Projection = Projection.all()
    read_capacity: int = 1
    write_capacity: int = 1


def gsi(
    name: str,
    *,
    partition: str,
    sort: str | None = None,
    projection: Projection | str | Sequence[str] | None = None,
    read_capacity: int = 1,
    write_capacity: int = 1,
) -> IndexSpec:
    return IndexSpec(
        name=name,
        type="GSI",
        partition=partition,
        sort=sort,
        projection=Projection.parse(projection),
        read_capacity=read_capacity,
        write_capacity=write_capacity,
    )


def lsi(name: str, *, sort: str, projection: Projection | str | Sequence[str] | None = None) -> IndexSpec:
    return IndexSpec(name=name, type="LSI", partition=None, sort=sort, projection=Projection.parse(projection))


def _local_from_key(name: str, key: Any, projection: Any = None) -> IndexSpec:
    # a leading partition field is checked against the table key by resolve_indexes
    fields = [key] if isinstance(key, str) else list(key) if isinstance(key, (list, tuple)) else []
    if not fields or len(fields) > 2 or not all(isinstance(f, str) and f for f in fields):
        raise ValidationError(f"local index {name}: key must be [sort] or [partition, sort], got {key!r}")
    return IndexSpec(
        name=name,
        type="LSI",
        partition=fields[0] if len(fields) == 2 else None,
        sort=fields[-1],
        projection=Projection.parse(projection),
    )


def _local_from_shorthand(name: str, value: Any) -> IndexSpec:
    if isinstance(value, IndexSpec):
        return value
    if isinstance(value, (str, list, tuple)):
        return _local_from_key(name, value)
    if isinstance(value, Mapping):
        key = value.get("sort", value.get("key"))
        if key is None:
            raise ValidationError(f"local index {name}: sort field is required")
        return _local_from_key(name, key, value.get("projection"))
    raise ValidationError(f"local index {name}: unsupported definition {value!r}")


def _global_from_shorthand(name: str, value: Any) -> IndexSpec:
    if isinstance(value, IndexSpec):
        return value
    if isinstance(value, str):
        return gsi(name, partition=value)
    if isinstance(value, (list, tuple)) and len(value) in (1, 2):
        return gsi(name, partition=value[0], sort=value[1] if len(value) == 2 else None)
    if isinstance(value, Mapping):
        partition = value.get("partition")
        if not isinstance(partition, str):
            raise ValidationError(f"global index {name}: partition field is required")
        return gsi(
            name,
            partition=partition,
            sort=value.get("sort"),
            projection=value.get("projection"),
            read_capacity=int(value.get("read_capacity", 1)),
            write_capacity=int(value.get("write_capacity", 1)),
        )
    raise ValidationError(f"global index {name}: unsupported definition {value!r}")


def parse_local_indexes(indexes: Any) -> tuple[IndexSpec, ...]:
    """Accepts ``["field", ...]``, ``{"name": "field" | [fields] | {...}}`` or ``[IndexSpec, ...]``."""
    if not indexes:
        return ()
    if isinstance(indexes, Mapping):
        return tuple(_local_from_shorthand(name, value) for name, value in indexes.items())
    out: list[IndexSpec] = []
    for value in indexes:
        out.append(_local_from_shorthand(value, value) if isinstance(value, str) else _local_from_shorthand("", value))
    return tuple(out)


def parse_global_indexes(indexes: Any) -> tuple[IndexSpec, ...]:
    if not indexes:
        return ()
    if isinstance(indexes, Mapping):
        return tuple(_global_from_shorthand(name, value) for name, value in indexes.items())
    return tuple(_global_from_shorthand("", value) for value in indexes)


def resolve_indexes(key: KeySpec, local: Sequence[IndexSpec], global_: Sequence[IndexSpec]) -> tuple[IndexSpec, ...]:
    resolved: list[IndexSpec] = []
    seen: set[str] = set()

    for spec in (*local, *global_):
        if not spec.name:
            raise ValidationError("index name is required")
        if spec.name in seen:
            raise ValidationError(f"duplicate index name: {spec.name}")
        seen.add(spec.name)

        if spec.type == "LSI":
            if spec.partition is not None and spec.partition != key.partition:
                raise ValidationError(
                    f"index {spec.name}: LSI partition must be the table partition key ({key.partition})"
                )
            if spec.sort is None:
                raise ValidationError(f"index {spec.name}: LSI requires a sort field")
            resolved.append(replace(spec, partition=key.partition))
        elif spec.type == "GSI":
            if not spec.partition:
                raise ValidationError(f"index {spec.name}: GSI requires a partition field")
            resolved.append(spec)
        else:
            raise ValidationError(f"unsupported index type: {spec.type}")

    return tuple(resolved)

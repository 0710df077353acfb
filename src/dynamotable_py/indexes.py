from __future__ import annotations

from collections.abc import Iterable, Sequence

from .model import IndexSpec, KeySpec


class IndexRouter:
    """Picks the secondary index a query has to target from its condition fields.

    Local indexes are tried first and match only the partition key plus the
    index sort key. Global indexes come next (index partition key, plus its
    sort key when the query constrains one). When nothing declared matches,
    the first non-key field name is returned as is and the store decides
    whether such an index exists.
    """

    def __init__(self, key: KeySpec, indexes: Sequence[IndexSpec] = ()) -> None:
        self._key = key
        self._local = tuple(idx for idx in indexes if idx.type == "LSI")
        self._global = tuple(idx for idx in indexes if idx.type == "GSI")

    def route(self, fields: Iterable[str]) -> str | None:
        names = list(dict.fromkeys(fields))
        non_key = [name for name in names if name not in self._key]
        if not non_key:
            return None

        present = set(names)

        for idx in self._local:
            if idx.sort in present and present <= {self._key.partition, idx.sort}:
                return idx.name

        for idx in self._global:
            if idx.partition not in present:
                continue
            rest = present - {idx.partition}
            if not rest or (idx.sort is not None and rest == {idx.sort}):
                return idx.name

        return non_key[0]

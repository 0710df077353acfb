from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from .batch import MAX_GET, MAX_WRITE, BatchGetRequest, BatchOrchestrator, BatchWriteRequest
from .client import StoreClient
from .codec import AttributeCodec, FieldMapping, Record, WireAttribute
from .conditions import ConditionBuilder
from .errors import TransportError, ValidationError
from .indexes import IndexRouter
from .mapper import Hook, ItemMapper, KeyResolver
from .model import IndexSpec, KeySpec, parse_global_indexes, parse_local_indexes, resolve_indexes
from .pagination import PaginatedReader
from .query import Page, decode_cursor, encode_cursor
from .scatter import ScatterGatherScanner, is_segmented
from .schema import build_create_table_request, build_update_table_request, key_attribute_type

LOG = logging.getLogger(__name__)

_UPDATE_ACTIONS = frozenset({"put", "add", "delete"})
_COUNTER_FIELD = "lastId"


def _attributes_to_get(options: Any) -> dict[str, Any]:
    if options is None:
        return {}
    if isinstance(options, str):
        return {"AttributesToGet": [options]}
    if isinstance(options, (list, tuple)):
        return {"AttributesToGet": list(options)}
    if isinstance(options, Mapping):
        return dict(options)
    raise ValidationError(f"unsupported options: {options!r}")


def _check_segments(req: Mapping[str, Any]) -> None:
    segment = req.get("Segment")
    total = req.get("TotalSegments")
    if segment is None and total is None:
        return
    if total is None:
        raise ValidationError("Segment requires TotalSegments")
    if int(total) <= 0:
        raise ValidationError("TotalSegments must be > 0")
    if segment is not None and not 0 <= int(segment) < int(total):
        raise ValidationError(f"Segment must be in [0, {total})")


class Table:
    """Handle on one store table: field mapping, key layout and indexes.

    Every operation takes an optional ``options`` argument holding raw wire
    parameters; those win over the parameters the handle derives (``Key``,
    ``Item``, ``KeyConditions``, ...). A list or a single string in place of
    ``options`` means ``AttributesToGet``.
    """

    def __init__(
        self,
        name: str,
        client: StoreClient | None,
        *,
        mappings: Mapping[str, Any] | None = None,
        key: str | Sequence[str] | None = None,
        key_types: Mapping[str, Any] | None = None,
        local_indexes: Any = None,
        global_indexes: Any = None,
        pre_to: Hook | None = None,
        post_to: Hook | None = None,
        pre_from: Hook | None = None,
        post_from: Hook | None = None,
        use_next_id: bool = False,
        max_get: int = MAX_GET,
        max_write: int = MAX_WRITE,
        max_retries: int = 5,
        max_pages: int | None = None,
        max_workers: int | None = None,
        sleep: Callable[[float], None] | None = time.sleep,
    ) -> None:
        if not name:
            raise ValidationError("table name is required")
        if client is None:
            raise ValidationError("client is required")

        self._name = name
        self._client = client
        self._mappings = FieldMapping(mappings)
        self._key = KeySpec.parse(key, self._mappings)
        self._key_types = dict(key_types or {})
        self._indexes = resolve_indexes(
            self._key, parse_local_indexes(local_indexes), parse_global_indexes(global_indexes)
        )
        self._use_next_id = use_next_id

        self._codec = AttributeCodec(self._mappings)
        self._mapper = ItemMapper(self._codec, pre_to=pre_to, post_to=post_to, pre_from=pre_from, post_from=post_from)
        self._resolver = KeyResolver(self._codec, self._key)
        self._conditions = ConditionBuilder(self._codec)
        self._router = IndexRouter(self._key, self._indexes)
        self._reader = PaginatedReader(client, self.from_item, max_pages=max_pages)
        self._scanner = ScatterGatherScanner(self._reader, max_workers=max_workers)
        self._batch = BatchOrchestrator(
            client,
            max_get=max_get,
            max_write=max_write,
            max_retries=max_retries,
            max_workers=max_workers,
            sleep=sleep,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def client(self) -> StoreClient:
        return self._client

    @property
    def key(self) -> KeySpec:
        return self._key

    @property
    def indexes(self) -> tuple[IndexSpec, ...]:
        return self._indexes

    @property
    def codec(self) -> AttributeCodec:
        return self._codec

    # mapping

    def to_item(self, record: Mapping[str, Any] | None) -> dict[str, WireAttribute] | None:
        return self._mapper.to_item(record)

    def from_item(self, item: Mapping[str, WireAttribute] | None) -> Record | None:
        return self._mapper.from_item(item)

    def resolve_key(self, *key: Any) -> dict[str, WireAttribute]:
        return self._resolver.resolve(*key)

    def conditions(self, exprs: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
        return self._conditions.conditions(exprs)

    def key_type(self, field: str) -> str:
        return key_attribute_type(field, key_types=self._key_types, mappings=self._mappings)

    def default_key(self) -> list[Any]:
        """Key of the counter item used by ``next_id``/``init_id``."""
        defaults = {"S": "0", "N": 0, "B": b"\xd3M4"}
        return [defaults[self.key_type(field)] for field in self._key]

    def _options(self, options: Any) -> dict[str, Any]:
        req = _attributes_to_get(options)
        req.setdefault("TableName", self._name)
        return req

    # single item operations

    def get(self, key: Any, options: Any = None) -> Record | None:
        req = self._options(options)
        if "Key" not in req:
            req["Key"] = self.resolve_key(key)
        resp = self._client.request("GetItem", req)
        return self.from_item(resp.get("Item"))

    def put(self, record: Mapping[str, Any], options: Any = None) -> Record | None:
        req = self._options(options)
        if "Item" not in req:
            req["Item"] = self.to_item(record)
        resp = self._client.request("PutItem", req)
        return self.from_item(resp["Attributes"]) if resp.get("Attributes") else None

    def delete(self, key: Any, options: Any = None) -> Record | None:
        req = self._options(options)
        if "Key" not in req:
            req["Key"] = self.resolve_key(key)
        resp = self._client.request("DeleteItem", req)
        return self.from_item(resp["Attributes"]) if resp.get("Attributes") else None

    def update(self, key: Any, actions: Mapping[str, Any] | None = None, options: Any = None) -> Record | None:
        """Applies ``put``/``add``/``delete`` actions to one item.

        Called with a single record, every non-key field of it is put. A put
        value that encodes to nothing becomes a ``DELETE`` of the attribute.
        """
        resp = self._update(key, actions, options)
        return self.from_item(resp["Attributes"]) if resp.get("Attributes") else None

    def _update(self, key: Any, actions: Mapping[str, Any] | None, options: Any) -> Mapping[str, Any]:
        if actions is None:
            if not isinstance(key, Mapping):
                raise ValidationError("update without actions needs a full record")
            record = key
            key = {field: record.get(field) for field in self._key}
            actions = {"put": {k: v for k, v in record.items() if k not in self._key}}

        unknown = set(actions).difference(_UPDATE_ACTIONS)
        if unknown:
            raise ValidationError(f"actions must only contain put/add/delete (got {sorted(unknown)})")

        req = self._options(options)
        if "Key" not in req:
            req["Key"] = self.resolve_key(key)
        updates: dict[str, Any] = dict(req.get("AttributeUpdates") or {})
        req["AttributeUpdates"] = updates

        for field, value in (actions.get("put") or {}).items():
            if field in updates:
                continue
            attr = self._codec.encode(value, field)
            updates[field] = {"Action": "DELETE"} if attr is None else {"Action": "PUT", "Value": attr}

        for field, value in (actions.get("add") or {}).items():
            if field in updates:
                continue
            attr = self._codec.encode(value, field)
            if attr is None:
                raise ValidationError(f"cannot add an empty value to {field}")
            updates[field] = {"Action": "ADD", "Value": attr}

        deletes = actions.get("delete") or []
        if isinstance(deletes, (str, Mapping)):
            deletes = [deletes]
        for entry in deletes:
            if isinstance(entry, str):
                updates.setdefault(entry, {"Action": "DELETE"})
                continue
            for field, members in entry.items():
                if field in updates:
                    continue
                attr = self._codec.encode(members, field)
                if attr is None:
                    raise ValidationError(f"no members to delete from {field}")
                updates[field] = {"Action": "DELETE", "Value": attr}

        return self._client.request("UpdateItem", req)

    def increment(self, key: Any, field: str, amount: Any = 1, options: Any = None) -> Any:
        req = self._options(options)
        req.setdefault("ReturnValues", "UPDATED_NEW")
        resp = self._update(key, {"add": {field: amount}}, req)
        attributes = resp.get("Attributes") or {}
        attr = attributes.get(field)
        if attr is None:
            return None
        return self._codec.decode(attr, field, attributes)

    def next_id(self, amount: int = 1, options: Any = None) -> Any:
        return self.increment(self.default_key(), _COUNTER_FIELD, amount, options)

    def init_id(self, value: int = 0, options: Any = None) -> Record | None:
        return self.update(self.default_key(), {"put": {_COUNTER_FIELD: value}}, options)

    # reads

    def _query_request(self, conditions: Mapping[str, Any], options: Any) -> dict[str, Any]:
        req = self._options(options)
        if "KeyConditions" not in req:
            req["KeyConditions"] = self.conditions(conditions)
        if "IndexName" not in req:
            index = self._router.route(req["KeyConditions"])
            if index is not None:
                LOG.debug("Routing query on %s to index %s", self._name, index)
                req["IndexName"] = index
        if "Segment" in req or "TotalSegments" in req:
            raise ValidationError("Segment/TotalSegments are only valid for scans")
        return req

    def _scan_request(self, conditions: Mapping[str, Any] | None, options: Any) -> dict[str, Any]:
        req = self._options(options)
        if self._use_next_id:
            conditions = dict(conditions or {})
            for field, default in zip(self._key, self.default_key(), strict=True):
                conditions.setdefault(field, {"!=": default})
        if conditions and "ScanFilter" not in req:
            req["ScanFilter"] = self.conditions(conditions)
        _check_segments(req)
        return req

    def query(self, conditions: Mapping[str, Any], options: Any = None) -> list[Record] | int:
        return self._reader.read("Query", self._query_request(conditions, options))

    def scan(self, conditions: Mapping[str, Any] | None = None, options: Any = None) -> list[Record] | int:
        req = self._scan_request(conditions, options)
        if is_segmented(req):
            return self._scanner.scan(req)
        return self._reader.read("Scan", req)

    def query_page(
        self, conditions: Mapping[str, Any], options: Any = None, cursor: str | None = None
    ) -> Page[Record]:
        return self._page("Query", self._query_request(conditions, options), cursor)

    def scan_page(
        self, conditions: Mapping[str, Any] | None = None, options: Any = None, cursor: str | None = None
    ) -> Page[Record]:
        req = self._scan_request(conditions, options)
        if is_segmented(req):
            raise ValidationError("page reads need an explicit Segment")
        return self._page("Scan", req, cursor)

    def _page(self, operation: str, req: dict[str, Any], cursor: str | None) -> Page[Record]:
        if req.get("Select") == "COUNT":
            raise ValidationError("Select=COUNT is not supported for page reads")
        index = req.get("IndexName")
        if cursor:
            decoded = decode_cursor(cursor)
            if decoded.index != index:
                raise ValidationError("cursor was issued for a different index")
            req["ExclusiveStartKey"] = decoded.last_key

        items, last_key = self._reader.read_page(operation, req)
        next_cursor = encode_cursor(last_key, index=index) if last_key else None
        return Page(items=list(items), next_cursor=next_cursor)  # type: ignore[arg-type]

    # batches

    def batch_get(self, keys: Sequence[Any], options: Any = None, tables: Sequence[Any] = ()) -> Any:
        """Fetches ``keys`` from this table, plus any ``(table, keys, options)`` in ``tables``.

        Returns a list for this table alone, or ``{table_name: [records]}``
        when other tables take part.
        """
        groups: list[tuple[Table, Sequence[Any], Any]] = []
        if keys:
            groups.append((self, keys, options))
        for entry in tables:
            if isinstance(entry, Mapping):
                groups.append((entry["table"], entry.get("keys") or [], entry.get("options")))
            else:
                table, group_keys, *rest = entry
                groups.append((table, group_keys, rest[0] if rest else None))

        requests = [
            BatchGetRequest(
                table_name=table.name,
                keys=[table.resolve_key(k) for k in group_keys],
                decode=table.from_item,
                options=_attributes_to_get(group_options),
            )
            for table, group_keys, group_options in groups
        ]
        found = self._batch.get(requests)
        if not tables:
            return found.get(self._name, [])
        return found

    def batch_write(self, operations: Any = None, tables: Sequence[Any] = ()) -> None:
        """Writes puts and deletes in chunks; ``operations`` is a list of records or ``{"puts", "deletes"}``."""
        groups: list[tuple[Table, Any]] = []
        if operations:
            groups.append((self, operations))
        for entry in tables:
            if isinstance(entry, Mapping):
                groups.append((entry["table"], entry.get("operations")))
            else:
                table, ops = entry
                groups.append((table, ops))

        requests: list[BatchWriteRequest] = []
        for table, ops in groups:
            if not ops:
                continue
            if not isinstance(ops, Mapping):
                ops = {"puts": ops, "deletes": []}
            puts = [table.to_item(record) for record in ops.get("puts") or []]
            requests.append(
                BatchWriteRequest(
                    table_name=table.name,
                    puts=[item for item in puts if item],
                    deletes=[table.resolve_key(k) for k in ops.get("deletes") or []],
                )
            )
        self._batch.write(requests)

    # table lifecycle

    def create_table(
        self,
        read_capacity: int = 1,
        write_capacity: int = 1,
        indexes: Any = None,
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        opts = dict(options or {})
        table_indexes = self._indexes
        if indexes:
            global_ = tuple(idx for idx in self._indexes if idx.type == "GSI")
            table_indexes = resolve_indexes(self._key, parse_local_indexes(indexes), global_)

        req = build_create_table_request(
            str(opts.get("TableName") or self._name),
            self._key,
            indexes=table_indexes,
            key_types=self._key_types,
            mappings=self._mappings,
            read_capacity=read_capacity,
            write_capacity=write_capacity,
            billing_mode=str(opts.get("BillingMode") or "PROVISIONED"),
        )
        req.update(opts)
        resp = self._client.request("CreateTable", req)
        return dict(resp.get("TableDescription") or {})

    def describe_table(self, options: Mapping[str, Any] | None = None) -> dict[str, Any]:
        req = dict(options or {})
        req.setdefault("TableName", self._name)
        resp = self._client.request("DescribeTable", req)
        return dict(resp.get("Table") or {})

    def table_status(self) -> str | None:
        """One DescribeTable call; ``None`` when the table does not exist."""
        try:
            description = self.describe_table()
        except TransportError as err:
            if err.code == "ResourceNotFoundException":
                return None
            raise
        return description.get("TableStatus")

    def update_table(
        self,
        read_capacity: int,
        write_capacity: int,
        options: Mapping[str, Any] | None = None,
        global_indexes: Mapping[str, tuple[int, int]] | None = None,
    ) -> dict[str, Any]:
        opts = dict(options or {})
        req = build_update_table_request(
            str(opts.get("TableName") or self._name),
            read_capacity=read_capacity,
            write_capacity=write_capacity,
            global_indexes=global_indexes,
        )
        req.update(opts)
        resp = self._client.request("UpdateTable", req)
        return dict(resp.get("TableDescription") or {})

    def delete_table(self, options: Mapping[str, Any] | None = None) -> dict[str, Any]:
        req = dict(options or {})
        req.setdefault("TableName", self._name)
        resp = self._client.request("DeleteTable", req)
        return dict(resp.get("TableDescription") or {})

    def list_tables(self, options: Mapping[str, Any] | None = None) -> list[str]:
        req = dict(options or {})
        limit = req.get("Limit")
        names: list[str] = []
        while True:
            resp = self._client.request("ListTables", dict(req))
            names.extend(resp.get("TableNames") or [])
            last = resp.get("LastEvaluatedTableName")
            if not last or (limit is not None and len(names) >= limit):
                return names
            req["ExclusiveStartTableName"] = last

from __future__ import annotations

import os
import uuid
from datetime import UTC, datetime

from dynamotable_py import Table, create_store_client


def main() -> None:
    client = create_store_client(
        region=os.environ.get("AWS_REGION", "us-east-1"),
        endpoint_url=os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000"),
    )
    table = Table(
        f"dynamotable_example_{uuid.uuid4().hex[:12]}",
        client,
        key=["pk", "sk"],
        mappings={"pk": "S", "sk": "S", "value": "N", "seen": "isodate", "labels": "mapS"},
    )

    table.create_table(options={"BillingMode": "PAY_PER_REQUEST"})
    client.client.get_waiter("table_exists").wait(TableName=table.name)  # type: ignore[attr-defined]

    try:
        now = datetime.now(UTC)
        table.batch_write(
            [
                {"pk": "A", "sk": "001", "value": 1, "seen": now, "labels": {"new": True}},
                {"pk": "A", "sk": "010", "value": 10, "seen": now},
                {"pk": "A", "sk": "100", "value": 100},
            ]
        )

        print("get:", table.get(["A", "010"]))
        print("query beginsWith('0'):", table.query({"pk": "A", "sk": {"beginsWith": "0"}}))

        page = table.query_page({"pk": "A"}, {"Limit": 2})
        print("first page:", page.items, "next:", page.next_cursor)
    finally:
        table.delete_table()


if __name__ == "__main__":
    main()

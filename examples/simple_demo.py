#!/usr/bin/env python3
"""
Simple demo of the daylog line store.

Writes a handful of records into a temporary data directory, pages through
them, deletes one line, and runs a retention sweep.
"""

import tempfile
from datetime import timedelta

from daylog.core.store import LineStore, RetentionSweeper
from daylog.core.store.naming import today_utc
from daylog.utils.logging import configure_logging


def main():
    configure_logging(log_level="WARNING", log_format="console")

    with tempfile.TemporaryDirectory() as tmpdir:
        store = LineStore(directory=tmpdir)
        today = today_utc()

        print("[1] Writing 10 records...")
        for i in range(10):
            store.append_record(
                {"project": "demo", "level": "info", "message": f"Hello #{i}", "line": i},
                day=today,
            )

        print("[2] Reading page 2 (page_size=4)...")
        result = store.scan_page(today, page=2, page_size=4)
        for record in result.records:
            print(f"    {record['message']}")
        print(f"    scanned={result.scanned_lines} has_next={result.has_next} has_more={result.has_more}")

        print("[3] Deleting line 1...")
        store.delete_line(today, 1)
        print(f"    lines left: {store.line_count(today)}")

        print("[4] Writing an old partition and sweeping with retain_days=7...")
        store.append_record({"message": "stale"}, day=today - timedelta(days=30))
        removed = RetentionSweeper(store, retain_days=7).sweep()
        print(f"    removed: {[p.name for p in removed]}")


if __name__ == "__main__":
    main()

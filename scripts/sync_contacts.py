"""Run one full contact sync for the connected WhatsApp session.

Usage:
    DATABASE_URL=... DB_TOKEN=... WPP_BASE_URL=... WPP_SESSION=... WPP_TOKEN=... \
        uv run python scripts/sync_contacts.py [--groups] [--unsaved] [--validate] [--limit N]

Prints the sync summary as JSON. Exits 1 when the sync did not run.
"""

from __future__ import annotations

import argparse
import json
import sys

from zapsync.api.factory import build_service
from zapsync.domain.models import ScanOptions


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--groups", action="store_true", help="include group chats")
    parser.add_argument("--unsaved", action="store_true", help="include contacts not in the address book")
    parser.add_argument("--validate", action="store_true", help="confirm each number with the server")
    parser.add_argument("--no-messages", action="store_true", help="skip last message snapshots")
    parser.add_argument("--no-labels", action="store_true", help="skip label resolution")
    parser.add_argument("--limit", type=int, default=None)
    args = parser.parse_args(argv)

    options = ScanOptions(
        include_groups=args.groups,
        include_unsaved=args.unsaved,
        validate_server=args.validate,
        include_last_message=not args.no_messages,
        include_labels=not args.no_labels,
        limit=args.limit,
    )
    summary = build_service().sync_all_contacts(options)
    print(json.dumps(summary.to_dict(), indent=2))
    return 0 if summary.success else 1


if __name__ == "__main__":
    sys.exit(main())

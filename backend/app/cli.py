"""Database admin commands for every configured region.

    regional-uploads init-db    create/upgrade the uploaded_files table everywhere
    regional-uploads check-db   connectivity, table presence and columns per region
"""
import argparse
import asyncio
import logging
import sys

from sqlalchemy import inspect

from app.config import settings
from app.database import StorageGateway
from app.exceptions import safe_error_message
from app.models import FileRecord


async def init_region(gateway: StorageGateway, region: str) -> str:
    try:
        await gateway.ensure_schema(region)
    except Exception as e:
        return f"[error] {region}: {safe_error_message(e)}"
    return f"[ok] {region}: database initialized"


async def check_region(gateway: StorageGateway, region: str) -> tuple[bool, list[str]]:
    lines = [f"Checking {region}..."]
    try:
        await gateway.ping(region)
        lines.append("  connection: ok")
        columns = await gateway.run_sync(region, _describe_table)
    except Exception as e:
        lines.append(f"  error: {safe_error_message(e)}")
        return False, lines

    lines.append(f"  table {FileRecord.__tablename__} exists: {columns is not None}")
    for name, type_ in columns or []:
        lines.append(f"    {name}: {type_}")
    return True, lines


def _describe_table(sync_conn) -> list[tuple[str, str]] | None:
    inspector = inspect(sync_conn)
    if not inspector.has_table(FileRecord.__tablename__):
        return None
    return [(c["name"], str(c["type"])) for c in inspector.get_columns(FileRecord.__tablename__)]


async def run_init(gateway: StorageGateway) -> int:
    try:
        results = await asyncio.gather(*(init_region(gateway, r) for r in gateway.registry.names))
    finally:
        await gateway.dispose()
    for line in results:
        print(line)
    return 1 if any(line.startswith("[error]") for line in results) else 0


async def run_check(gateway: StorageGateway) -> int:
    try:
        results = await asyncio.gather(*(check_region(gateway, r) for r in gateway.registry.names))
    finally:
        await gateway.dispose()
    for _, lines in results:
        print("\n".join(lines))
    return 0 if all(ok for ok, _ in results) else 1


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="regional-uploads", description=__doc__.splitlines()[0])
    parser.add_argument("--log-level", default="WARNING")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="Create the uploaded_files table in every region")
    sub.add_parser("check-db", help="Report connectivity and table layout per region")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None, gateway: StorageGateway | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=args.log_level.upper())
    gateway = gateway or StorageGateway.from_settings(settings)
    command = run_init if args.command == "init-db" else run_check
    return asyncio.run(command(gateway))


if __name__ == "__main__":
    sys.exit(main())

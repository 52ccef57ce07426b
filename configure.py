# configure.py
"""Save or show the CIMA Watch subscription (recipients + hospital catalog)."""
import argparse
import json
import sys

from cimawatch.catalog_upload import CatalogError, load_catalog_file
from cimawatch.config_api import handle_get_config, handle_save_config


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Configure CIMA Watch daily reports")
    parser.add_argument("--show", action="store_true", help="Print the current configuration")
    parser.add_argument("--catalog", type=str, help="Hospital catalog file (.xlsx, .xls or .csv)")
    parser.add_argument(
        "--emails", type=str, default="",
        help="Recipients, comma or semicolon separated",
    )
    parser.add_argument("--hospital", type=str, default="", help="Hospital name")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)

    if args.show:
        status, body = handle_get_config()
        print(json.dumps(body, ensure_ascii=False, indent=2))
        return 0 if status == 200 else 1

    if not args.catalog:
        print("--catalog is required unless --show is given", file=sys.stderr)
        return 2

    try:
        catalog = load_catalog_file(args.catalog)
    except CatalogError as e:
        print(str(e), file=sys.stderr)
        return 1

    emails = [p.strip() for p in args.emails.replace(";", ",").split(",") if p.strip()]
    status, body = handle_save_config(
        {"emails": emails, "catalogCNs": sorted(catalog), "hospitalName": args.hospital}
    )
    if status != 200:
        print(body.get("error", "Error"), file=sys.stderr)
        return 1

    print(f"{body['message']}: {len(catalog)} códigos, {len(emails)} destinatarios")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""Issue signed download or management links from the command line.

This is the stand-in for the chat command layer: it signs a capability for a
user and prints the URL to hand out.
"""
from __future__ import annotations

import argparse
import sys

from download_gateway.core.settings import settings
from download_gateway.services.catalog import DirectoryCatalog
from download_gateway.services.signing import CapabilitySigner


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Issue a signed gateway link")
    parser.add_argument("--user", required=True, help="Identity the link is issued to")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--file", help="File id to grant a download link for")
    target.add_argument("--search", help="Issue a link for the best match of this query")
    target.add_argument("--manage", action="store_true", help="Issue a management link")
    parser.add_argument(
        "--ttl",
        type=int,
        default=settings.url_expiry_sec,
        help="Link lifetime in seconds (default: URL_EXPIRY_SEC)",
    )
    parser.add_argument(
        "--base-url",
        default=settings.web_server_base_url,
        help="Public base URL of the gateway",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    signer = CapabilitySigner(settings.signing_secret)
    ttl_ms = args.ttl * 1000

    if args.manage:
        print(signer.sign_manage(args.base_url, args.user, ttl_ms))
        return 0

    file_id = args.file
    if args.search is not None:
        catalog = DirectoryCatalog(settings.files_directory, settings.allowed_extensions)
        catalog.rescan()
        matches = catalog.search(args.search, limit=1)
        if not matches:
            print(f"No file matches {args.search!r}", file=sys.stderr)
            return 1
        file_id = matches[0].file.id
        print(f"Matched {matches[0].file.path}", file=sys.stderr)

    print(signer.sign_download(args.base_url, args.user, file_id, ttl_ms))
    return 0


if __name__ == "__main__":
    sys.exit(main())

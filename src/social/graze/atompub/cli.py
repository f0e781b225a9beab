from typing import Any, Dict, List, Optional
import argparse
import asyncio
import json
import logging
from logging.config import dictConfig
import os
import sys

import sentry_sdk

from social.graze.atompub.auth import build_authenticator
from social.graze.atompub.client import Client
from social.graze.atompub.config import ClientSettings
from social.graze.atompub.errors import AtomPubError
from social.graze.atompub.model.atom import Category, Content, Control, Entry, Person
from social.graze.atompub.model.base import Text, TextType
from social.graze.atompub.model.service import ServiceDocument

logger = logging.getLogger(__name__)


def configure_logging(debug: bool = False) -> None:
    logging_config_file = os.getenv("LOGGING_CONFIG_FILE", "")

    if len(logging_config_file) > 0:
        with open(logging_config_file) as fl:
            dictConfig(json.load(fl))
        return

    logging.basicConfig()
    logging.getLogger().setLevel(logging.DEBUG if debug else logging.INFO)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="atompub", description="Discover AtomPub collections and publish entries."
    )
    parser.add_argument("--username", help="WSSE username.")
    parser.add_argument("--password", help="WSSE password.")
    parser.add_argument("--user-agent", help="User-Agent header value.")
    parser.add_argument(
        "--timeout", type=float, help="Per-request timeout in seconds."
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=None,
        help="Print every response body.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    service = subparsers.add_parser("service", help="Show a service document.")
    service.add_argument(
        "url",
        nargs="?",
        help="The service document URL. Defaults to ATOMPUB_SERVICE_URL.",
    )

    post = subparsers.add_parser("post", help="Create an entry in a collection.")
    post.add_argument("collection_url", help="The collection URL.")
    post.add_argument("--title", required=True, help="The entry title.")
    post.add_argument("--title-type", choices=[t.value for t in TextType])
    post.add_argument("--content", help="The entry content.")
    post.add_argument(
        "--content-type", help="Content type, e.g. text, html or a media type."
    )
    post.add_argument(
        "--author", action="append", default=[], help="Author name (repeatable)."
    )
    post.add_argument(
        "--category", action="append", default=[], help="Category term (repeatable)."
    )
    post.add_argument("--draft", action="store_true", help="Publish as a draft.")

    return parser


def build_settings(args: argparse.Namespace) -> ClientSettings:
    overrides: Dict[str, Any] = {
        "username": args.username,
        "password": args.password,
        "user_agent": args.user_agent,
        "timeout": args.timeout,
        "verbose": args.verbose,
    }
    return ClientSettings(**{k: v for k, v in overrides.items() if v is not None})


def entry_from_args(args: argparse.Namespace) -> Entry:
    entry = Entry(
        title=Text(
            type=TextType(args.title_type) if args.title_type else None,
            value=args.title,
        ),
        authors=[Person(name=name) for name in args.author],
        categories=[Category(term=term) for term in args.category],
    )
    if args.content is not None:
        entry.content = Content(type=args.content_type, value=args.content)
    if args.draft:
        entry.control = Control(draft=True)
    return entry


def format_service_document(service_document: ServiceDocument) -> List[str]:
    lines: List[str] = []
    for workspace in service_document.workspaces:
        lines.append(f"workspace: {workspace.title.value}")
        for collection in workspace.collections:
            lines.append(f"  collection: {collection.title.value} <{collection.href}>")
            for accept in collection.accept:
                lines.append(f"    accept: {accept}")
            if collection.categories is not None:
                categories = collection.categories
                fixed = " (fixed)" if categories.is_fixed else ""
                if categories.href is not None:
                    lines.append(f"    categories: <{categories.href}>{fixed}")
                for category in categories.categories:
                    scheme = category.scheme or categories.scheme or ""
                    lines.append(f"    category: {scheme}{category.term}{fixed}")
    return lines


async def realMain(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = build_settings(args)
    configure_logging(settings.debug)

    if settings.sentry_dsn is not None:
        sentry_sdk.init(dsn=settings.sentry_dsn)

    try:
        authenticator = build_authenticator(settings)
    except ValueError as e:
        parser.error(str(e))

    async with Client(authenticator=authenticator, settings=settings) as client:
        try:
            if args.command == "service":
                url = args.url or settings.service_url
                if url is None:
                    parser.error("a service document URL is required")
                response = await client.discover(url)
                for line in format_service_document(response.body):
                    print(line)
            elif args.command == "post":
                created = await client.publish(
                    args.collection_url, entry_from_args(args)
                )
                print(f"id: {created.body.id}")
                if created.location is not None:
                    print(f"location: {created.location}")
                for rel in ("alternate", "edit"):
                    link = created.body.link(rel)
                    if link is not None:
                        print(f"{rel}: {link.href}")
        except AtomPubError as e:
            sentry_sdk.capture_exception(e)
            logger.exception("Exception running %s", args.command)
            return 1

    return 0


def main(argv: Optional[List[str]] = None) -> None:
    sys.exit(asyncio.run(realMain(argv)))


if __name__ == "__main__":
    main()

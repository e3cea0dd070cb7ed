#!/usr/bin/env python3
"""Catalog Explorer CLI - browse and search the PRH catalog through the local cache."""
import argparse
import asyncio
import sys
import json
from dataclasses import asdict
from tabulate import tabulate
from catalog_cache.config import Config
from catalog_cache.errors import CatalogError
from catalog_cache.models import Author, CatalogKind
from catalog_cache.search import AuthorQuery, TitleQuery
from catalog_cache.session import CatalogSession
from catalog_cache.sorting import SortState
import logging

logger = logging.getLogger(__name__)


def _clip(text, width: int) -> str:
    text = text or ""
    return text[:width] + "..." if len(text) > width else text


def display_records(records, format_type: str):
    """Display authors or titles in specified format."""
    if not records:
        print("No results.")
        return

    is_authors = isinstance(records[0], Author)

    if format_type == "table":
        if is_authors:
            headers = ["ID", "Name", "First", "Last"]
            rows = [
                [a.id, _clip(a.display_name, 40), a.first_name, a.last_name]
                for a in records
            ]
        else:
            headers = ["ISBN", "Title", "Author", "Format", "USD", "EUR", "On sale"]
            rows = [
                [
                    t.isbn,
                    _clip(t.title_full, 50),
                    _clip(t.author_display_name, 30),
                    t.format_code,
                    t.price_usd or "N/A",
                    t.price_eur or "N/A",
                    t.on_sale_date or "Unknown"
                ]
                for t in records
            ]
        print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))

    elif format_type == "json":
        print(json.dumps([asdict(r) for r in records], indent=2))

    elif format_type == "compact":
        for i, record in enumerate(records, 1):
            if is_authors:
                print(f"{i}. {record.display_name} ({record.id})")
            else:
                print(f"{i}. {record.title_full} - {record.author_display_name}")


def log_progress(kind: CatalogKind, loaded: int, total: int):
    logger.info(f"{kind.value}: {loaded}/{total} loaded")


async def browse(session: CatalogSession, args):
    """Show one page, sorted over the full catalog if --sort is given."""
    kind = CatalogKind(args.command)
    if args.sort:
        sort = SortState(args.sort, descending=args.desc)
        records = await session.search.sorted_page(kind, sort, args.page, args.page_size)
    else:
        records = await session.page_loader.load_page(kind, args.page, args.page_size)

    display_records(records, args.format)
    total = session.store.total_count(kind)
    if total is not None:
        pages = (total + args.page_size - 1) // args.page_size
        print(f"\nPage {args.page + 1} of {pages} ({total} {kind.value})")


async def run_command(session: CatalogSession, args):
    if args.command in ("authors", "titles"):
        await browse(session, args)

    elif args.command == "search-authors":
        query = AuthorQuery(first_name=args.first or "", last_name=args.last or "")
        display_records(await session.search.search_authors(query), args.format)

    elif args.command == "search-titles":
        query = TitleQuery(
            keyword=args.keyword or "",
            author=args.author or "",
            format=args.format_code or "",
            exclude_non_books=not args.include_non_books
        )
        display_records(await session.search.search_titles(query), args.format)

    elif args.command == "lucky":
        record = await session.search.feeling_lucky(CatalogKind(args.kind))
        display_records([record] if record else [], args.format)

    elif args.command == "author":
        display_records([await session.get_author(args.author_id)], args.format)

    elif args.command == "title":
        display_records([await session.get_title(args.isbn)], args.format)

    elif args.command == "author-titles":
        display_records(
            await session.titles_for_author(args.author_id, args.offset, args.limit),
            args.format
        )

    elif args.command == "preload":
        kinds = list(CatalogKind) if args.kind == "all" else [CatalogKind(args.kind)]
        results = await asyncio.gather(*session.preload(kinds))
        for result in results:
            print(
                f"{result.kind.value}: {result.records_loaded} records in {result.batches} batches, "
                f"{len(result.failures)} failed, complete={result.dense}"
            )


async def main_async(args, config: Config):
    async with CatalogSession.from_config(config, on_progress=log_progress) as session:
        await run_command(session, args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Catalog Explorer - cached browsing and search over the PRH API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Browse the third page of authors
  %(prog)s authors --page 2 --page-size 20

  # Sort all titles by price, most expensive first (loads the full catalog)
  %(prog)s titles --sort price --desc

  # Search titles by author, keeping non-book formats
  %(prog)s search-titles --author "Dan Brown" --include-non-books

  # Random title
  %(prog)s lucky titles
        """
    )
    parser.add_argument("--format", choices=["table", "json", "compact"], default="table", help="Output format")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Browse commands
    for kind, fields in (("authors", ["first_name", "last_name"]), ("titles", ["title", "author", "price", "date"])):
        browse_parser = subparsers.add_parser(kind, help=f"Browse {kind} page by page")
        browse_parser.add_argument("--page", type=int, default=0, help="0-based page index (default: 0)")
        browse_parser.add_argument("--page-size", type=int, default=Config.DEFAULT_PAGE_SIZE, help="Records per page")
        browse_parser.add_argument("--sort", choices=fields, help="Sort the full catalog by this field")
        browse_parser.add_argument("--desc", action="store_true", help="Sort descending")

    # Search commands
    authors_parser = subparsers.add_parser("search-authors", help="Prefix search on author names")
    authors_parser.add_argument("--first", help="First name prefix")
    authors_parser.add_argument("--last", help="Last name prefix")

    titles_parser = subparsers.add_parser("search-titles", help="Search titles")
    titles_parser.add_argument("keyword", nargs="?", help="Title words or an ISBN")
    titles_parser.add_argument("--author", help="Author name")
    titles_parser.add_argument("--format-code", help="Format code (HC, TR, EL, AU, ...)")
    titles_parser.add_argument("--include-non-books", action="store_true", help="Keep calendars, games, music, ...")

    lucky_parser = subparsers.add_parser("lucky", help="Show a random record")
    lucky_parser.add_argument("kind", choices=["authors", "titles"])

    # Lookups
    author_parser = subparsers.add_parser("author", help="Show one author")
    author_parser.add_argument("author_id")

    title_parser = subparsers.add_parser("title", help="Show one title")
    title_parser.add_argument("isbn")

    author_titles_parser = subparsers.add_parser("author-titles", help="List an author's titles")
    author_titles_parser.add_argument("author_id")
    author_titles_parser.add_argument("--offset", type=int, default=0)
    author_titles_parser.add_argument("--limit", type=int, default=50)

    preload_parser = subparsers.add_parser("preload", help="Load a full collection into the cache")
    preload_parser.add_argument("kind", choices=["authors", "titles", "all"])

    return parser


def main():
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = Config()

    # Configure logging
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        asyncio.run(main_async(args, config))

    except KeyboardInterrupt:
        logger.info("\n⚠️  Interrupted by user")
        sys.exit(0)
    except CatalogError as e:
        logger.error(f"❌ Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

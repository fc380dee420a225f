"""CLI entrypoint for placefinder."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from placefinder.errors import CountryNotFound, InvalidQuery
from placefinder.logging_config import setup_logging


def main() -> None:
    setup_logging()

    parser = argparse.ArgumentParser(prog="placefinder")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve")
    sub.add_parser("migrate")

    search_parser = sub.add_parser("search")
    search_parser.add_argument("query")
    search_parser.add_argument("--lang", default="en")
    search_parser.add_argument("--country", default=None, help="alpha-2/alpha-3 code; omit for global")
    search_parser.add_argument("--limit", type=int, default=10)
    search_parser.add_argument("--json", action="store_true")

    countries_parser = sub.add_parser("countries")
    countries_parser.add_argument("query")
    countries_parser.add_argument("--lang", action="append", default=[])

    places_parser = sub.add_parser("places")
    places_parser.add_argument("country")
    places_parser.add_argument("--lang", default="en")

    clear_parser = sub.add_parser("clear-cache")
    clear_parser.add_argument("--country", default=None)

    args = parser.parse_args()

    try:
        if args.command == "serve":
            _serve()
        elif args.command == "migrate":
            asyncio.run(_migrate())
        elif args.command == "search":
            _run(_search(args.query, args.lang, args.country, args.limit, args.json))
        elif args.command == "countries":
            _countries(args.query, args.lang or ["en"])
        elif args.command == "places":
            _run(_places(args.country, args.lang))
        elif args.command == "clear-cache":
            _run(_clear_cache(args.country))
    except (InvalidQuery, CountryNotFound) as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(2)


def _run(coro) -> None:
    """Run a command coroutine, then release the cache pool if one was opened."""

    async def runner():
        try:
            await coro
        finally:
            from placefinder.config import get_settings

            if get_settings().cache.backend == "postgres":
                from placefinder.db import close_pool

                await close_pool()

    asyncio.run(runner())


def _serve() -> None:
    import uvicorn

    from placefinder.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "placefinder.api:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=(settings.env == "development"),
        log_level=settings.log_level.lower(),
    )


async def _migrate() -> None:
    from placefinder.db import close_pool, get_pool, run_migrations

    await get_pool()
    await run_migrations()
    await close_pool()
    print("Migrations applied successfully.")


async def _search(query: str, lang: str, country: str | None, limit: int, as_json: bool) -> None:
    from placefinder.search import get_search_service

    result = await get_search_service().search(query, lang, country)
    if as_json:
        print(json.dumps(result.model_dump(mode="json"), ensure_ascii=False, indent=2))
        return

    print("\n" + "-" * 72)
    print(f"Query:    {result.query} (lang={result.language}, scope={result.scope})")
    if result.alternate_query:
        print(f"Resolved: {result.resolved_query}  (translated from '{result.alternate_query}')")
    print(f"Matches:  {len(result.places)}{'  [cache]' if result.from_cache else ''}")

    if not result.places:
        print("(none)")
        return

    for i, place in enumerate(result.places[:limit], 1):
        shown = place.name
        if place.original_name and place.original_name != place.name:
            shown += f" ({place.original_name})"
        if place.translation_error:
            shown += " [untranslated]"
        region = f"{place.state_name} [{place.state_code}]" if place.state_code else place.state_name
        print(f"{i:>3}. {shown}  -  {region}, {place.country_code}  ({place.kind})")


def _countries(query: str, languages: list[str]) -> None:
    from placefinder.search import get_search_service

    for country in get_search_service().search_countries(query, languages):
        names = ", ".join(f"{k}={v}" for k, v in country.names.items())
        print(f"{country.alpha2} {country.alpha3}  {names}")


async def _places(country: str, lang: str) -> None:
    from placefinder.search import get_search_service

    listing = await get_search_service().list_places(country, lang)
    print(f"{listing.country.names.get('en', listing.country.alpha2)}: {len(listing.places)} place(s)")
    for place in listing.places:
        print(f"  {place.id:>5}  {place.name}  ({place.kind})")


async def _clear_cache(country: str | None) -> None:
    from placefinder.search import get_search_service

    service = get_search_service()
    if country:
        ok = await service.invalidate_scope(country)
        print(f"Cache cleared for {country.upper()}: {'ok' if ok else 'partial/failed'}")
    else:
        out = await service.invalidate_all()
        print(f"Cleared {out['cleared_count']} cache entries.")


if __name__ == "__main__":
    main()

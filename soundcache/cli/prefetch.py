# =============================================================================
# soundcache/cli/prefetch.py -- Warm the persistent store from the shell
# =============================================================================
#
# Runs each URL through the regular AudioCache pipeline with a pass-through
# decoder, so the bytes and their validators land in the configured store
# exactly as they would for an application load.  URLs are fetched
# concurrently; the same URL given twice is coalesced into one request.
#
# Typical usage:
#   python -m soundcache.cli prefetch https://cdn.example.com/kick.wav
#   python -m soundcache.cli prefetch URL1 URL2 --json
#
# Exit code is 0 when every URL loaded, 1 otherwise.  With --json, log lines
# go to stderr so stdout is a single JSON document.
# =============================================================================

"""Prefetch command: load URLs through the cache and report per-URL results."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, TextIO

from soundcache.models.events import CacheHitEvent, CacheMissEvent, LoadingCallbacks
from soundcache.providers.decoder.raw_decoder import RawBytesDecoder
from soundcache.services.audio_cache import AudioCache
from soundcache.utils.errors import classify_error


async def prefetch(audio_cache: AudioCache, urls: list[str]) -> list[dict[str, Any]]:
    """Load every URL and return one result record per URL, in input order."""
    decoder = RawBytesDecoder()
    return list(await asyncio.gather(*(_prefetch_one(audio_cache, decoder, url) for url in urls)))


async def _prefetch_one(
    audio_cache: AudioCache,
    decoder: RawBytesDecoder,
    url: str,
) -> dict[str, Any]:
    source = {"value": "network"}

    def on_cache_hit(event: CacheHitEvent) -> None:
        source["value"] = event.cache_type

    def on_cache_miss(event: CacheMissEvent) -> None:
        source["value"] = "network"

    callbacks = LoadingCallbacks(on_cache_hit=on_cache_hit, on_cache_miss=on_cache_miss)
    try:
        buffer = await audio_cache.get_audio_buffer(decoder, url, callbacks=callbacks)
    except Exception as exc:
        return {
            "url": url,
            "status": "error",
            "error_type": classify_error(exc),
            "error": str(exc),
        }
    return {"url": url, "status": "ok", "size": len(buffer), "source": source["value"]}


def format_results(results: list[dict[str, Any]], json_output: bool) -> str:
    if json_output:
        return json.dumps(results, indent=2)
    lines = []
    for result in results:
        if result["status"] == "ok":
            lines.append(f"OK    {result['size']:>10,} B  [{result['source']}]  {result['url']}")
        else:
            lines.append(f"FAIL  {result['error_type']:>12}  {result['url']}: {result['error']}")
    return "\n".join(lines)


async def run(
    audio_cache: AudioCache,
    urls: list[str],
    json_output: bool = False,
    out: TextIO | None = None,
) -> int:
    """Prefetch *urls*, print the report, close the transport; return the exit code."""
    out = out or sys.stdout
    try:
        results = await prefetch(audio_cache, urls)
    finally:
        await audio_cache.transport.aclose()
    print(format_results(results, json_output), file=out)
    return 0 if all(r["status"] == "ok" for r in results) else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="soundcache",
        description="soundcache command line tools.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    prefetch_parser = subparsers.add_parser(
        "prefetch", help="Load URLs through the cache to warm the persistent store"
    )
    prefetch_parser.add_argument("urls", nargs="+", metavar="URL", help="Resource URLs")
    prefetch_parser.add_argument(
        "--json", dest="json_output", action="store_true", help="Print results as JSON"
    )
    prefetch_parser.add_argument(
        "--config", default="config/config.yaml", help="Path to the YAML config file"
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Exits 0 when every URL loaded, 1 otherwise."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        sys.exit(1)

    # Imported here so logging is configured before any module logger is used.
    from soundcache.config.settings import Settings
    from soundcache.main import build_audio_cache
    from soundcache.utils.logging import configure_logging

    settings = Settings()
    configure_logging(
        log_level=settings.log_level,
        json_output=settings.app_env == "production",
        stream=sys.stderr if args.json_output else sys.stdout,
    )

    audio_cache = build_audio_cache(settings, config_path=args.config)
    exit_code = asyncio.run(run(audio_cache, args.urls, json_output=args.json_output))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()

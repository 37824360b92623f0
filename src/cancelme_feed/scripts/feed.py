# src/cancelme_feed/scripts/feed.py
"""
Print one page of the feed.

Usage:
    cancelme-feed --sort top_week --tag gaming --limit 10
"""

import argparse
import asyncio

from cancelme_feed.core.logging import configure_logging
from cancelme_feed.core.settings import settings
from cancelme_feed.schemas.feed import SortMode
from cancelme_feed.services.feed import FeedPaginator
from cancelme_feed.services.moderation import AutoModerationEvaluator
from cancelme_feed.services.remote import HttpRemoteService
from cancelme_feed.services.state import FeedStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Print one page of the CancelMe feed")
    parser.add_argument(
        "--sort",
        choices=[mode.value for mode in SortMode],
        default=SortMode.RECENT.value,
    )
    parser.add_argument("--tag", default=None, help="Only posts carrying this tag")
    parser.add_argument("--limit", type=int, default=settings.feed_page_size)
    parser.add_argument("--offset", type=int, default=0)
    parser.add_argument("--log-level", default=None)
    return parser


async def print_page(args: argparse.Namespace) -> int:
    remote = HttpRemoteService()
    moderation = AutoModerationEvaluator(remote)
    paginator = FeedPaginator(FeedStore(), remote, moderation, page_size=args.limit)
    try:
        page = await paginator.fetch_page(args.offset, args.limit, args.sort, args.tag)
        _, hidden = await moderation.refresh([post.id for post in page.items])
    finally:
        await remote.aclose()

    for post in page.items:
        flag = " [masqué]" if hidden.get(post.id) else ""
        tags = " ".join(f"#{tag}" for tag in post.tags)
        print(
            f"{post.created_at:%Y-%m-%d %H:%M}  score={post.score:<4} views={post.views:<5} "
            f"{post.author_label}: {post.caption or post.media_url or ''} {tags}{flag}"
        )
    if page.has_more:
        print(f"... more with --offset {args.offset + args.limit}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    return asyncio.run(print_page(args))


if __name__ == "__main__":
    raise SystemExit(main())

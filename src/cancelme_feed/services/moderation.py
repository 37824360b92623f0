"""Community auto-moderation driven by recent report counts."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta

from cancelme_feed.core.errors import RemoteReadFailure
from cancelme_feed.core.settings import settings
from cancelme_feed.db.time import utcnow
from cancelme_feed.schemas.report import ReportRecord
from cancelme_feed.services.remote import RemoteService

logger = logging.getLogger(__name__)


class AutoModerationEvaluator:
    """Derive advisory hidden flags from recent reports.

    A post is hidden once its report count within the lookback window reaches
    the threshold. The flag is recomputed on every refresh and viewers may
    override it per session.
    """

    def __init__(
        self,
        remote: RemoteService,
        *,
        window_hours: int | None = None,
        threshold: int | None = None,
    ) -> None:
        self._remote = remote
        self.window = timedelta(
            hours=settings.reports_window_hours if window_hours is None else window_hours
        )
        self.threshold = (
            settings.reports_autohide_threshold if threshold is None else threshold
        )

    def count_recent(
        self,
        records: Iterable[ReportRecord],
        *,
        now: datetime | None = None,
    ) -> dict[str, int]:
        """Count reports per post that fall inside the lookback window."""
        since = (now or utcnow()) - self.window
        return dict(Counter(record.post_id for record in records if record.created_at >= since))

    def evaluate_counts(self, counts: Mapping[str, int]) -> dict[str, bool]:
        """Map each post to its hidden flag."""
        return {post_id: count >= self.threshold for post_id, count in counts.items()}

    async def refresh(
        self,
        post_ids: Sequence[str],
        *,
        now: datetime | None = None,
    ) -> tuple[dict[str, int], dict[str, bool]]:
        """Fetch recent reports for `post_ids` and return `(counts, hidden flags)`.

        Posts without reports count as zero. If the reports cannot be read the
        evaluator fails open: every post gets zero reports and stays visible.
        """
        if not post_ids:
            return {}, {}
        now = now or utcnow()
        try:
            records = await self._remote.query_reports(post_ids, now - self.window)
        except RemoteReadFailure as exc:
            logger.warning("Reports unavailable, treating as zero: %s", exc)
            records = []
        wanted = set(post_ids)
        recent = self.count_recent((r for r in records if r.post_id in wanted), now=now)
        counts = {post_id: recent.get(post_id, 0) for post_id in post_ids}
        return counts, self.evaluate_counts(counts)

    async def evaluate(
        self,
        post_ids: Sequence[str],
        *,
        now: datetime | None = None,
    ) -> dict[str, bool]:
        """Return the hidden flag of each post in `post_ids`."""
        _, hidden = await self.refresh(post_ids, now=now)
        return hidden

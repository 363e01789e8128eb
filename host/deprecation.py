"""Deprecation tracking for legacy plugin API surfaces.

Every use of a deprecated surface is counted. Console emission is throttled
per feature so a hot legacy call path cannot flood the log, while the usage
report keeps exact counts for migration planning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import Lock

logger = logging.getLogger(__name__)

DEFAULT_MAX_WARNINGS = 5
UNKNOWN_SINCE = "unknown"


@dataclass(frozen=True, slots=True)
class DeprecationNotice:
    """Description of one deprecated feature."""

    feature: str
    deprecated_since: str
    removed_in: str | None = None
    replacement: str | None = None
    reason: str | None = None

    def format(self, context: str | None = None) -> str:
        """Render the console message for this notice."""
        message = f"[DEPRECATED] {self.feature} is deprecated since v{self.deprecated_since}"
        if self.removed_in:
            message += f" and will be removed in v{self.removed_in}"
        if self.replacement:
            message += f". Use {self.replacement} instead"
        if self.reason:
            message += f". Reason: {self.reason}"
        if context:
            message += f" (Context: {context})"
        return message


@dataclass(frozen=True, slots=True)
class DeprecationUsage:
    """Usage counters for one feature in a report."""

    feature: str
    usage_count: int
    deprecated_since: str
    removed_in: str | None = None
    replacement: str | None = None


@dataclass(frozen=True, slots=True)
class DeprecationReport:
    total_warnings: int
    per_feature: list[DeprecationUsage] = field(default_factory=list)


# Legacy surfaces bridged by the bundled compatibility adapters.
DEFAULT_NOTICES: tuple[DeprecationNotice, ...] = (
    DeprecationNotice(
        "Plugin.init",
        "2.0.0",
        removed_in="3.0.0",
        replacement="Plugin.initialize",
    ),
    DeprecationNotice(
        "Plugin.destroy",
        "2.0.0",
        removed_in="3.0.0",
        replacement="Plugin.cleanup",
    ),
    DeprecationNotice(
        "Plugin.on_activate",
        "2.0.0",
        removed_in="3.0.0",
        replacement="Plugin.on_enable",
    ),
    DeprecationNotice(
        "Plugin.on_deactivate",
        "2.0.0",
        removed_in="3.0.0",
        replacement="Plugin.on_disable",
    ),
    DeprecationNotice(
        "Plugin.__init__(config)",
        "2.0.0",
        removed_in="3.0.0",
        replacement="Plugin.__init__(context, config)",
        reason="plugins receive their context at construction time",
    ),
    DeprecationNotice(
        "context.api",
        "2.0.0",
        removed_in="3.0.0",
        replacement="context.storage / context.events / context.http",
    ),
    DeprecationNotice(
        "dot-notation permissions",
        "2.0.0",
        removed_in="3.0.0",
        replacement="kebab-case permission tokens",
    ),
    DeprecationNotice("module.setup", "1.0.0", removed_in="3.0.0", replacement="Plugin.on_install"),
    DeprecationNotice("module.activate", "1.0.0", removed_in="3.0.0", replacement="Plugin.on_enable"),
    DeprecationNotice("module.deactivate", "1.0.0", removed_in="3.0.0", replacement="Plugin.on_disable"),
    DeprecationNotice("module.dispose", "1.0.0", removed_in="3.0.0", replacement="Plugin.cleanup"),
)


class DeprecationManager:
    """Count deprecated API usage and emit throttled warnings.

    Args:
        max_warnings_per_feature: Console messages emitted per feature before
            further uses are only counted.
        enabled: When ``False`` nothing is logged; counting continues.
        notices: Notices to register up front. Defaults to
            :data:`DEFAULT_NOTICES`.
    """

    def __init__(
        self,
        max_warnings_per_feature: int = DEFAULT_MAX_WARNINGS,
        *,
        enabled: bool = True,
        notices: tuple[DeprecationNotice, ...] | list[DeprecationNotice] | None = None,
    ) -> None:
        self.max_warnings_per_feature = max_warnings_per_feature
        self.enabled = enabled
        self._notices: dict[str, DeprecationNotice] = {}
        self._usage: dict[str, int] = {}
        self._emitted: dict[str, int] = {}
        self._lock = Lock()
        for notice in DEFAULT_NOTICES if notices is None else notices:
            self.register(notice)

    def register(self, notice: DeprecationNotice) -> None:
        """Register or replace the notice for ``notice.feature``."""
        self._notices[notice.feature] = notice

    def notice_for(self, feature: str) -> DeprecationNotice:
        return self._notices.get(feature) or DeprecationNotice(feature, UNKNOWN_SINCE)

    def warn(self, feature: str, context: str | None = None) -> None:
        """Record one use of ``feature``; log it while under the per-feature cap.

        Never raises.
        """
        try:
            with self._lock:
                self._usage[feature] = self._usage.get(feature, 0) + 1
                emitted = self._emitted.get(feature, 0)
                should_emit = self.enabled and emitted < self.max_warnings_per_feature
                if should_emit:
                    self._emitted[feature] = emitted + 1

            if should_emit:
                logger.warning(self.notice_for(feature).format(context))
        except Exception:
            logger.debug("Deprecation tracking failed for %s", feature, exc_info=True)

    def usage_count(self, feature: str) -> int:
        return self._usage.get(feature, 0)

    def emitted_count(self, feature: str) -> int:
        return self._emitted.get(feature, 0)

    def get_report(self) -> DeprecationReport:
        """Summarize usage per feature, most used first."""
        with self._lock:
            usage = dict(self._usage)

        per_feature = []
        for feature, count in sorted(usage.items(), key=lambda item: (-item[1], item[0])):
            notice = self.notice_for(feature)
            per_feature.append(
                DeprecationUsage(
                    feature=feature,
                    usage_count=count,
                    deprecated_since=notice.deprecated_since,
                    removed_in=notice.removed_in,
                    replacement=notice.replacement,
                )
            )
        return DeprecationReport(total_warnings=sum(usage.values()), per_feature=per_feature)

    def reset(self) -> None:
        """Forget all counters; registered notices are kept."""
        with self._lock:
            self._usage.clear()
            self._emitted.clear()

"""
Shared utilities for filtering Datadog monitors.
"""

from typing import Iterable, List, Optional

from ferry.models.migration import MonitorFilter
from ferry.models.monitor import Monitor


def parse_filter_options(
    tags: Optional[str] = None,
    name: Optional[str] = None,
    message: Optional[str] = None,
) -> Optional[MonitorFilter]:
    """
    Build a MonitorFilter from command line style options.

    Args:
        tags: Comma-separated tags, e.g. ``"env:prod,team:api"``
        name: Regular expression matched against monitor names
        message: Regular expression matched against monitor messages

    Returns:
        MonitorFilter, or None when no option was given

    Raises:
        re.error: If a pattern is not a valid regular expression
    """
    if not tags and not name and not message:
        return None

    tag_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else []
    return MonitorFilter.from_strings(tags=tag_list, name=name, message=message)


def monitor_matches(monitor: Monitor, monitor_filter: MonitorFilter) -> bool:
    """Check a single monitor against every criterion of the filter."""
    if monitor_filter.tags and not any(tag in monitor.tags for tag in monitor_filter.tags):
        return False
    if monitor_filter.name_pattern is not None and not monitor_filter.name_pattern.search(monitor.name):
        return False
    if monitor_filter.message_pattern is not None and not monitor_filter.message_pattern.search(monitor.message):
        return False
    return True


def filter_monitors(monitors: Iterable[Monitor], monitor_filter: Optional[MonitorFilter]) -> List[Monitor]:
    """
    Filter monitors, preserving their order.

    Args:
        monitors: Monitors to filter
        monitor_filter: Criteria; None or an empty filter keeps everything

    Returns:
        Monitors matching all given criteria
    """
    if monitor_filter is None or monitor_filter.is_empty:
        return list(monitors)
    return [monitor for monitor in monitors if monitor_matches(monitor, monitor_filter)]

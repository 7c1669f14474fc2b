"""Notification filter predicate."""

from notifeed.models.notification import Notification, NotificationFilter


def matches_filter(notification: Notification, filter: NotificationFilter) -> bool:
    """AND of the filter's clauses; an absent or empty clause never rejects."""
    if filter.sources and notification.source not in filter.sources:
        return False

    if filter.types and notification.type not in filter.types:
        return False

    if filter.unread_only and notification.read:
        return False

    # Keyword filter (case-insensitive search in title and body)
    if filter.keywords:
        search_text = f"{notification.title} {notification.body}".lower()
        if not any(kw.lower() in search_text for kw in filter.keywords):
            return False

    return True

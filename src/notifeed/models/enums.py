"""String enums for notification sources, types and watcher states."""

from enum import StrEnum


class NotificationSource(StrEnum):
    SLACK = "slack"
    GITHUB = "github"


class SlackNotificationType(StrEnum):
    MENTION = "mention"
    DM = "dm"
    CHANNEL = "channel"
    THREAD_REPLY = "thread_reply"


class GitHubNotificationType(StrEnum):
    PR_REVIEW = "pr_review"
    PR_COMMENT = "pr_comment"
    ISSUE_MENTION = "issue_mention"
    CI_STATUS = "ci_status"
    PR_MERGED = "pr_merged"
    PR_CLOSED = "pr_closed"
    ISSUE_ASSIGNED = "issue_assigned"


class WatcherState(StrEnum):
    STARTED = "started"
    STOPPED = "stopped"
    POLLING = "polling"
    ERROR = "error"


class CiStatus(StrEnum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"

"""Slack Web API payload shapes (only the fields notifeed reads)."""

from pydantic import BaseModel, ConfigDict


class SlackMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ts: str
    text: str = ""
    user: str | None = None
    thread_ts: str | None = None
    type: str | None = None
    subtype: str | None = None


class SlackChannel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    is_member: bool = False
    is_archived: bool = False
    is_private: bool = False
    is_im: bool = False


class SlackPostedMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ts: str
    channel: str


class SlackSearchResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    matches: list[SlackMessage]
    total: int

"""Teams, channels and channel messages.

Usage:
    team = client.get_team("team-id")
    general = team.get_channel("General")
    general.send_message("Build is green")

    for message in general.list_messages(n=10):
        print(message.properties["body"]["content"])

    general.get_folder().list_items()
"""

from typing import TYPE_CHECKING, Any

from ms365.core.logging import get_logger
from ms365.core.validation import assert_exactly_one
from ms365.graph.drives import Drive, DriveItem
from ms365.graph.objects import GraphObject
from ms365.graph.sites import Site
from ms365.lookup import find_one_by_name

if TYPE_CHECKING:
    from ms365.graph.directory import Group

logger = get_logger(__name__)

DEFAULT_MESSAGE_PAGE = 50


def _message_body(body: str, content_type: str) -> dict[str, Any]:
    if content_type not in ("text", "html"):
        raise ValueError(f"content_type must be 'text' or 'html', got '{content_type}'")
    return {"body": {"content": body, "contentType": content_type}}


class Team(GraphObject):
    """A Teams workspace. Team IDs are the IDs of their backing groups."""

    collection = "teams"

    def list_channels(self, filter: str | None = None) -> list["Channel"]:
        channels = self.client.paginate(
            f"{self.path}/channels",
            params={"$filter": filter} if filter is not None else None,
        )
        return [Channel(self.client, item, team_id=self.id) for item in channels]

    def get_channel(self, channel_name: str | None = None, channel_id: str | None = None) -> "Channel":
        """Get a channel by name or ID; with neither, get the primary channel.

        Raises:
            ValidationError: If both name and ID are supplied
            NotFoundError: If no channel has that name
            AmbiguousNameError: If more than one channel has that name
        """
        if channel_name is not None or channel_id is not None:
            assert_exactly_one([channel_name, channel_id], "Supply at most one of channel name or ID")

        if channel_name is not None:
            return find_one_by_name(self.list_channels, channel_name, kind="Channel")

        op = "primaryChannel" if channel_id is None else f"channels/{channel_id}"
        return Channel(self.client, self.do_operation(op), team_id=self.id)

    def get_drive(self, drive_id: str | None = None) -> Drive:
        """Get the team's shared document library (the backing group's drive)."""
        op = "drive" if drive_id is None else f"drives/{drive_id}"
        return Drive(self.client, self.client.get(f"groups/{self.id}/{op}"))

    def list_drives(self) -> list[Drive]:
        drives = self.client.paginate(f"groups/{self.id}/drives")
        return [Drive(self.client, item) for item in drives]

    def get_sharepoint_site(self) -> Site:
        return Site(self.client, self.client.get(f"groups/{self.id}/sites/root"))

    def get_group(self) -> "Group":
        from ms365.graph.directory import Group

        return Group(self.client, self.client.get(f"groups/{self.id}"))


class Channel(GraphObject):
    """A channel within a team."""

    def __init__(self, client, properties: dict[str, Any], team_id: str, path: str | None = None):
        self.team_id = team_id
        super().__init__(client, properties, path or f"teams/{team_id}/channels/{properties.get('id', '')}")

    def list_messages(self, n: int = DEFAULT_MESSAGE_PAGE) -> list["ChatMessage"]:
        """List the most recent top-level messages.

        Args:
            n: Maximum number of messages; the server returns up to 50 per page
        """
        pages = max(1, -(-n // DEFAULT_MESSAGE_PAGE))
        items = self.client.paginate(
            f"{self.path}/messages",
            page_size=min(n, DEFAULT_MESSAGE_PAGE),
            max_pages=pages,
        )
        return [ChatMessage(self.client, item, parent_path=self.path) for item in items[:n]]

    def get_message(self, message_id: str) -> "ChatMessage":
        return ChatMessage(
            self.client,
            self.do_operation(f"messages/{message_id}"),
            parent_path=self.path,
        )

    def send_message(self, body: str, content_type: str = "text") -> "ChatMessage":
        result = self.do_operation("messages", method="POST", json=_message_body(body, content_type))
        logger.info("Channel message sent", team_id=self.team_id, channel_id=self.id)
        return ChatMessage(self.client, result, parent_path=self.path)

    def get_folder(self) -> DriveItem:
        """Get the folder in the team's document library holding this channel's files."""
        return DriveItem(self.client, self.do_operation("filesFolder"))


class ChatMessage(GraphObject):
    """A channel message or a reply to one."""

    def __init__(self, client, properties: dict[str, Any], parent_path: str, path: str | None = None):
        self.parent_path = parent_path
        super().__init__(client, properties, path or f"{parent_path}/messages/{properties.get('id', '')}")

    @property
    def name(self) -> str:
        return self.properties.get("subject") or ""

    def list_replies(self, n: int = DEFAULT_MESSAGE_PAGE) -> list["ChatMessage"]:
        pages = max(1, -(-n // DEFAULT_MESSAGE_PAGE))
        items = self.client.paginate(
            f"{self.path}/replies",
            page_size=min(n, DEFAULT_MESSAGE_PAGE),
            max_pages=pages,
        )
        return [self._reply(item) for item in items[:n]]

    def get_reply(self, message_id: str) -> "ChatMessage":
        return self._reply(self.do_operation(f"replies/{message_id}"))

    def send_reply(self, body: str, content_type: str = "text") -> "ChatMessage":
        result = self.do_operation("replies", method="POST", json=_message_body(body, content_type))
        return self._reply(result)

    def _reply(self, properties: dict[str, Any]) -> "ChatMessage":
        return ChatMessage(
            self.client,
            properties,
            parent_path=self.path,
            path=f"{self.path}/replies/{properties.get('id', '')}",
        )

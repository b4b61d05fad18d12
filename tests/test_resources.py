"""Tests for the resource objects in ms365.graph.

Each object is driven by a MagicMock GraphClient so the tests can assert the
exact Graph paths requested.
"""

from pathlib import Path
from unittest.mock import MagicMock, call

import pytest

from ms365.core.errors import AmbiguousNameError, NotFoundError, ValidationError
from ms365.graph.capabilities import DriveOwner, SiteOwner, TeamOwner
from ms365.graph.directory import Group, User
from ms365.graph.drives import SIMPLE_UPLOAD_LIMIT, UPLOAD_CHUNK_SIZE, Drive, DriveItem, _item_op
from ms365.graph.sites import Site
from ms365.graph.teams import Channel, ChatMessage, Team


def _file_item(item_id: str = "i1", name: str = "a.txt", parent_path: str = "/drive/root:/Docs") -> dict:
    return {
        "id": item_id,
        "name": name,
        "file": {},
        "parentReference": {"driveId": "d1", "id": "parent-1", "path": parent_path},
    }


class TestGraphObject:
    def test_default_path_from_collection(self, mock_client: MagicMock) -> None:
        assert Site(mock_client, {"id": "s1"}).path == "sites/s1"

    def test_name_prefers_display_name(self, mock_client: MagicMock) -> None:
        assert Site(mock_client, {"id": "s1", "displayName": "Eng", "name": "eng"}).name == "Eng"
        assert Drive(mock_client, {"id": "d1", "name": "Documents"}).name == "Documents"

    def test_equality_by_type_and_id(self, mock_client: MagicMock) -> None:
        assert Site(mock_client, {"id": "x"}) == Site(mock_client, {"id": "x", "displayName": "Later"})
        assert Site(mock_client, {"id": "x"}) != Drive(mock_client, {"id": "x"})
        assert len({Site(mock_client, {"id": "x"}), Site(mock_client, {"id": "x"})}) == 1

    def test_sync_fields_refetches_own_path(self, mock_client: MagicMock) -> None:
        site = Site(mock_client, {"id": "s1"})
        mock_client.request.return_value = {"id": "s1", "displayName": "Eng", "webUrl": "https://x"}

        assert site.sync_fields() is site

        mock_client.request.assert_called_once_with("GET", "sites/s1", params=None, json=None)
        assert site.web_url == "https://x"

    def test_objects_keep_their_session(self, mock_client: MagicMock) -> None:
        mock_client.request.return_value = {"id": "d1"}

        drive = Site(mock_client, {"id": "s1"}).get_drive()

        assert drive.client is mock_client


class TestCapabilities:
    def test_user_has_every_capability(self, mock_client: MagicMock) -> None:
        user = User(mock_client, {"id": "u1"}, path="me")
        assert isinstance(user, DriveOwner)
        assert isinstance(user, SiteOwner)
        assert isinstance(user, TeamOwner)

    def test_group_is_only_a_drive_owner(self, mock_client: MagicMock) -> None:
        group = Group(mock_client, {"id": "g1"})
        assert isinstance(group, DriveOwner)
        assert not isinstance(group, TeamOwner)


class TestUser:
    """Tests for User listing and the list-then-sync behaviour."""

    def test_get_drive(self, mock_client: MagicMock) -> None:
        mock_client.request.return_value = {"id": "d1", "driveType": "personal"}

        drive = User(mock_client, {"id": "u1"}, path="me").get_drive()

        assert isinstance(drive, Drive)
        mock_client.request.assert_called_once_with("GET", "me/drive", params=None, json=None)

    def test_list_sites_syncs_each_site(self, mock_client: MagicMock) -> None:
        mock_client.paginate.return_value = [{"id": "s1"}, {"id": "s2"}]
        mock_client.request.side_effect = [
            {"id": "s1", "displayName": "One"},
            {"id": "s2", "displayName": "Two"},
        ]
        user = User(mock_client, {"id": "u1"}, path="me")

        sites = user.list_sharepoint_sites(filter="displayName eq 'One'")

        assert [site.name for site in sites] == ["One", "Two"]
        mock_client.paginate.assert_called_once_with(
            "me/followedSites", params={"$filter": "displayName eq 'One'"}
        )
        assert mock_client.request.call_args_list == [
            call("GET", "sites/s1", params=None, json=None),
            call("GET", "sites/s2", params=None, json=None),
        ]

    def test_list_teams_without_filter(self, mock_client: MagicMock) -> None:
        mock_client.paginate.return_value = [{"id": "t1"}]
        mock_client.request.return_value = {"id": "t1", "displayName": "Ops"}

        teams = User(mock_client, {"id": "u1"}, path="me").list_teams()

        assert teams == [Team(mock_client, {"id": "t1"})]
        mock_client.paginate.assert_called_once_with("me/joinedTeams", params={})

    def test_empty_list_makes_no_sync_calls(self, mock_client: MagicMock) -> None:
        mock_client.paginate.return_value = []

        assert User(mock_client, {"id": "u1"}, path="me").list_teams() == []
        mock_client.request.assert_not_called()


class TestGroup:
    def test_get_sharepoint_site(self, mock_client: MagicMock) -> None:
        mock_client.request.return_value = {"id": "s1"}

        site = Group(mock_client, {"id": "g1"}).get_sharepoint_site()

        assert isinstance(site, Site)
        mock_client.request.assert_called_once_with("GET", "groups/g1/sites/root", params=None, json=None)

    def test_get_team(self, mock_client: MagicMock) -> None:
        mock_client.get.return_value = {"id": "g1", "displayName": "Ops"}

        team = Group(mock_client, {"id": "g1"}).get_team()

        assert team.path == "teams/g1"
        mock_client.get.assert_called_once_with("teams/g1")


class TestItemPaths:
    @pytest.mark.parametrize(
        ("path", "suffix", "expected"),
        [
            ("/", "", "root"),
            ("", "children", "root/children"),
            ("a/b.txt", "", "root:/a/b.txt"),
            ("/Docs/", "children", "root:/Docs:/children"),
            ("My Files/q1.xlsx", "content", "root:/My%20Files/q1.xlsx:/content"),
        ],
    )
    def test_item_op(self, path: str, suffix: str, expected: str) -> None:
        assert _item_op(path, suffix) == expected


class TestDrive:
    """Tests for Drive file operations."""

    @pytest.fixture
    def drive(self, mock_client: MagicMock) -> Drive:
        return Drive(mock_client, {"id": "d1", "name": "Documents"})

    def test_list_items_root(self, drive: Drive, mock_client: MagicMock) -> None:
        mock_client.paginate.return_value = [_file_item(), {"id": "f1", "name": "Docs", "folder": {}}]

        items = drive.list_items()

        mock_client.paginate.assert_called_once_with("drives/d1/root/children")
        assert [item.is_folder() for item in items] == [False, True]

    def test_list_items_subfolder(self, drive: Drive, mock_client: MagicMock) -> None:
        mock_client.paginate.return_value = []

        drive.list_items("Docs")

        mock_client.paginate.assert_called_once_with("drives/d1/root:/Docs:/children")

    def test_get_item(self, drive: Drive, mock_client: MagicMock) -> None:
        mock_client.request.return_value = _file_item()

        item = drive.get_item("/Docs/a.txt")

        mock_client.request.assert_called_once_with("GET", "drives/d1/root:/Docs/a.txt", params=None, json=None)
        assert item.path == "drives/d1/items/i1"
        assert item.get_path() == "/Docs/a.txt"

    def test_get_item_by_id(self, drive: Drive, mock_client: MagicMock) -> None:
        mock_client.request.return_value = _file_item("i9", "b.txt")

        item = drive.get_item_by_id("i9")

        mock_client.request.assert_called_once_with("GET", "drives/d1/items/i9", params=None, json=None)
        assert isinstance(item, DriveItem)
        assert item.path == "drives/d1/items/i9"
        assert item.get_path() == "/Docs/b.txt"

    def test_download_file(self, drive: Drive, mock_client: MagicMock, tmp_path: Path) -> None:
        dest = tmp_path / "out.txt"

        assert drive.download_file("Docs/a.txt", dest) == dest

        mock_client.download.assert_called_once_with("drives/d1/root:/Docs/a.txt:/content", dest)

    def test_download_refuses_to_overwrite(self, drive: Drive, mock_client: MagicMock, tmp_path: Path) -> None:
        dest = tmp_path / "out.txt"
        dest.write_text("keep me")

        with pytest.raises(FileExistsError):
            drive.download_file("Docs/a.txt", dest)

        mock_client.download.assert_not_called()

    def test_small_upload_is_a_single_put(self, drive: Drive, mock_client: MagicMock, tmp_path: Path) -> None:
        src = tmp_path / "a.txt"
        src.write_bytes(b"hello")
        mock_client.request.return_value = _file_item()

        item = drive.upload_file(src, "Docs/a.txt")

        assert isinstance(item, DriveItem)
        mock_client.request.assert_called_once_with(
            "PUT",
            "drives/d1/root:/Docs/a.txt:/content",
            data=b"hello",
            extra_headers={"Content-Type": "application/octet-stream"},
        )

    def test_large_upload_uses_session(self, drive: Drive, mock_client: MagicMock, tmp_path: Path) -> None:
        size = SIMPLE_UPLOAD_LIMIT + 1
        src = tmp_path / "big.bin"
        src.write_bytes(b"x" * size)
        mock_client.request.side_effect = [
            {"uploadUrl": "https://upload.example/session"},
            {"nextExpectedRanges": [f"{UPLOAD_CHUNK_SIZE}-"]},
            _file_item(name="big.bin"),
        ]

        item = drive.upload_file(src)

        assert item.name == "big.bin"
        calls = mock_client.request.call_args_list
        assert calls[0] == call(
            "POST",
            "drives/d1/root:/big.bin:/createUploadSession",
            params=None,
            json={"item": {"@microsoft.graph.conflictBehavior": "replace"}},
        )
        chunk_calls = calls[1:]
        assert len(chunk_calls) == 2
        assert all(c.args == ("PUT", "https://upload.example/session") for c in chunk_calls)
        assert all(c.kwargs["authenticate"] is False for c in chunk_calls)
        assert chunk_calls[0].kwargs["extra_headers"]["Content-Range"] == (
            f"bytes 0-{UPLOAD_CHUNK_SIZE - 1}/{size}"
        )
        assert chunk_calls[-1].kwargs["extra_headers"]["Content-Range"] == (
            f"bytes {UPLOAD_CHUNK_SIZE}-{size - 1}/{size}"
        )

    def test_create_folder(self, drive: Drive, mock_client: MagicMock) -> None:
        mock_client.request.return_value = {"id": "f2", "name": "New", "folder": {}}

        folder = drive.create_folder("Docs/New")

        assert folder.is_folder()
        mock_client.request.assert_called_once_with(
            "POST",
            "drives/d1/root:/Docs:/children",
            params=None,
            json={"name": "New", "folder": {}, "@microsoft.graph.conflictBehavior": "fail"},
        )

    def test_delete_item(self, drive: Drive, mock_client: MagicMock) -> None:
        mock_client.request.return_value = {}

        drive.delete_item("Docs/a.txt")

        mock_client.request.assert_called_once_with("DELETE", "drives/d1/root:/Docs/a.txt", params=None, json=None)


class TestDriveItem:
    def test_root_path(self, mock_client: MagicMock) -> None:
        item = DriveItem(mock_client, {"id": "r", "name": "root", "root": {}, "folder": {}})
        assert item.get_path() == "/"

    def test_parent_folder(self, mock_client: MagicMock) -> None:
        mock_client.get.return_value = {"id": "parent-1", "name": "Docs", "folder": {}}

        parent = DriveItem(mock_client, _file_item()).get_parent_folder()

        mock_client.get.assert_called_once_with("drives/d1/items/parent-1")
        assert parent.name == "Docs"

    def test_folder_cannot_be_downloaded(self, mock_client: MagicMock) -> None:
        folder = DriveItem(mock_client, {"id": "f1", "name": "Docs", "folder": {}})

        with pytest.raises(ValueError, match="folder"):
            folder.download()

    def test_download(self, mock_client: MagicMock, tmp_path: Path) -> None:
        dest = tmp_path / "a.txt"

        DriveItem(mock_client, _file_item()).download(dest)

        mock_client.download.assert_called_once_with("drives/d1/items/i1/content", dest)


class TestSite:
    def test_list_drives(self, mock_client: MagicMock) -> None:
        mock_client.paginate.return_value = [{"id": "d1"}, {"id": "d2"}]

        drives = Site(mock_client, {"id": "s1"}).list_drives()

        assert [d.id for d in drives] == ["d1", "d2"]
        mock_client.paginate.assert_called_once_with("sites/s1/drives", params={})

    def test_list_subsites(self, mock_client: MagicMock) -> None:
        mock_client.paginate.return_value = [{"id": "s2", "displayName": "Wiki"}, {"id": "s3"}]

        subsites = Site(mock_client, {"id": "s1"}).list_subsites()

        mock_client.paginate.assert_called_once_with("sites/s1/sites", params={})
        assert all(isinstance(site, Site) for site in subsites)
        assert [site.path for site in subsites] == ["sites/s2", "sites/s3"]

    def test_get_drive_by_id(self, mock_client: MagicMock) -> None:
        mock_client.request.return_value = {"id": "d2"}

        Site(mock_client, {"id": "s1"}).get_drive("d2")

        mock_client.request.assert_called_once_with("GET", "sites/s1/drives/d2", params=None, json=None)


class TestTeam:
    """Tests for Team channel lookup and group-backed accessors."""

    @pytest.fixture
    def team(self, mock_client: MagicMock) -> Team:
        return Team(mock_client, {"id": "t1", "displayName": "Ops"})

    def test_primary_channel_by_default(self, team: Team, mock_client: MagicMock) -> None:
        mock_client.request.return_value = {"id": "c0", "displayName": "General"}

        channel = team.get_channel()

        assert channel.name == "General"
        assert channel.path == "teams/t1/channels/c0"
        mock_client.request.assert_called_once_with("GET", "teams/t1/primaryChannel", params=None, json=None)

    def test_channel_by_id(self, team: Team, mock_client: MagicMock) -> None:
        mock_client.request.return_value = {"id": "c9"}

        team.get_channel(channel_id="c9")

        mock_client.request.assert_called_once_with("GET", "teams/t1/channels/c9", params=None, json=None)

    def test_channel_by_name(self, team: Team, mock_client: MagicMock) -> None:
        mock_client.paginate.return_value = [{"id": "c1", "displayName": "Releases"}]

        channel = team.get_channel("Releases")

        assert channel.id == "c1"
        assert channel.team_id == "t1"
        mock_client.paginate.assert_called_once_with(
            "teams/t1/channels", params={"$filter": "displayName eq 'Releases'"}
        )

    def test_channel_name_not_found(self, team: Team, mock_client: MagicMock) -> None:
        mock_client.paginate.return_value = []

        with pytest.raises(NotFoundError, match="Channel 'Releases' not found"):
            team.get_channel("Releases")

    def test_channel_name_ambiguous(self, team: Team, mock_client: MagicMock) -> None:
        mock_client.paginate.return_value = [{"id": "c1"}, {"id": "c2"}]

        with pytest.raises(AmbiguousNameError):
            team.get_channel("Releases")

    def test_channel_name_and_id_rejected(self, team: Team, mock_client: MagicMock) -> None:
        with pytest.raises(ValidationError):
            team.get_channel("Releases", "c1")

        mock_client.paginate.assert_not_called()
        mock_client.request.assert_not_called()

    def test_drive_comes_from_backing_group(self, team: Team, mock_client: MagicMock) -> None:
        mock_client.get.return_value = {"id": "d1"}

        team.get_drive()

        mock_client.get.assert_called_once_with("groups/t1/drive")

    def test_sharepoint_site(self, team: Team, mock_client: MagicMock) -> None:
        mock_client.get.return_value = {"id": "s1"}

        assert isinstance(team.get_sharepoint_site(), Site)
        mock_client.get.assert_called_once_with("groups/t1/sites/root")

    def test_group(self, team: Team, mock_client: MagicMock) -> None:
        mock_client.get.return_value = {"id": "t1"}

        assert isinstance(team.get_group(), Group)


class TestChannel:
    """Tests for Channel messaging."""

    @pytest.fixture
    def channel(self, mock_client: MagicMock) -> Channel:
        return Channel(mock_client, {"id": "c1", "displayName": "General"}, team_id="t1")

    def test_list_messages_small(self, channel: Channel, mock_client: MagicMock) -> None:
        mock_client.paginate.return_value = [{"id": str(i)} for i in range(10)]

        messages = channel.list_messages(n=5)

        assert len(messages) == 5
        mock_client.paginate.assert_called_once_with(
            "teams/t1/channels/c1/messages", page_size=5, max_pages=1
        )

    def test_list_messages_spans_pages(self, channel: Channel, mock_client: MagicMock) -> None:
        mock_client.paginate.return_value = []

        channel.list_messages(n=120)

        mock_client.paginate.assert_called_once_with(
            "teams/t1/channels/c1/messages", page_size=50, max_pages=3
        )

    def test_send_message(self, channel: Channel, mock_client: MagicMock) -> None:
        mock_client.request.return_value = {"id": "m1"}

        message = channel.send_message("<b>hi</b>", content_type="html")

        assert message.path == "teams/t1/channels/c1/messages/m1"
        mock_client.request.assert_called_once_with(
            "POST",
            "teams/t1/channels/c1/messages",
            params=None,
            json={"body": {"content": "<b>hi</b>", "contentType": "html"}},
        )

    def test_bad_content_type(self, channel: Channel, mock_client: MagicMock) -> None:
        with pytest.raises(ValueError, match="content_type"):
            channel.send_message("hi", content_type="markdown")

        mock_client.request.assert_not_called()

    def test_files_folder(self, channel: Channel, mock_client: MagicMock) -> None:
        mock_client.request.return_value = {
            "id": "f1",
            "name": "General",
            "folder": {},
            "parentReference": {"driveId": "d9"},
        }

        folder = channel.get_folder()

        assert folder.drive_id == "d9"
        mock_client.request.assert_called_once_with(
            "GET", "teams/t1/channels/c1/filesFolder", params=None, json=None
        )


class TestChatMessage:
    def test_reply_paths(self, mock_client: MagicMock) -> None:
        message = ChatMessage(mock_client, {"id": "m1"}, parent_path="teams/t1/channels/c1")
        mock_client.request.return_value = {"id": "r1"}

        reply = message.send_reply("thanks")

        assert reply.path == "teams/t1/channels/c1/messages/m1/replies/r1"
        assert reply.parent_path == message.path

    def test_get_reply(self, mock_client: MagicMock) -> None:
        message = ChatMessage(mock_client, {"id": "m1"}, parent_path="teams/t1/channels/c1")
        mock_client.request.return_value = {"id": "r1", "body": {"content": "thanks"}}

        reply = message.get_reply("r1")

        mock_client.request.assert_called_once_with(
            "GET", "teams/t1/channels/c1/messages/m1/replies/r1", params=None, json=None
        )
        assert reply.path == "teams/t1/channels/c1/messages/m1/replies/r1"
        assert reply.parent_path == message.path

    def test_list_replies(self, mock_client: MagicMock) -> None:
        message = ChatMessage(mock_client, {"id": "m1"}, parent_path="teams/t1/channels/c1")
        mock_client.paginate.return_value = [{"id": "r1"}, {"id": "r2"}]

        replies = message.list_replies(n=1)

        assert [r.id for r in replies] == ["r1"]
        mock_client.paginate.assert_called_once_with(
            "teams/t1/channels/c1/messages/m1/replies", page_size=1, max_pages=1
        )

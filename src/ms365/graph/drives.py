"""OneDrive and SharePoint document library operations.

Usage:
    drive = client.get_user().get_drive()

    for item in drive.list_items("Documents"):
        print(item.name, item.is_folder())

    drive.upload_file("report.xlsx", "Documents/report.xlsx")
    drive.download_file("Documents/report.xlsx", "copy.xlsx")
"""

import os
from pathlib import Path
from typing import Any
from urllib.parse import quote

from ms365.core.logging import get_logger
from ms365.graph.objects import GraphObject

logger = get_logger(__name__)

# Files up to this size go in a single PUT; larger ones use an upload session
SIMPLE_UPLOAD_LIMIT = 4 * 1024 * 1024

# Upload session chunks must be multiples of 320 KiB
UPLOAD_CHUNK_SIZE = 10 * 320 * 1024


def _quote_path(path: str) -> str:
    return quote(path.strip("/"), safe="/")


def _item_op(path: str, suffix: str = "") -> str:
    """Address a drive item by path relative to the drive root.

    _item_op("/")                   -> root
    _item_op("a/b.txt")             -> root:/a/b.txt
    _item_op("a", "children")       -> root:/a:/children
    _item_op("/", "children")       -> root/children
    """
    path = path.strip("/")
    if not path:
        return f"root/{suffix}" if suffix else "root"
    op = f"root:/{_quote_path(path)}"
    return f"{op}:/{suffix}" if suffix else op


def _resolve_dest(dest: str | Path | None, default_name: str, overwrite: bool) -> Path:
    dest_path = Path(dest) if dest is not None else Path(default_name)
    if dest_path.exists() and not overwrite:
        raise FileExistsError(f"Destination file '{dest_path}' exists; pass overwrite=True to replace it")
    return dest_path


class Drive(GraphObject):
    """A OneDrive or SharePoint document library."""

    collection = "drives"

    def get_item(self, path: str) -> "DriveItem":
        """Get a file or folder by its path from the drive root.

        Raises:
            NotFoundError: If nothing exists at that path
        """
        return DriveItem(self.client, self.do_operation(_item_op(path)))

    def get_item_by_id(self, item_id: str) -> "DriveItem":
        return DriveItem(self.client, self.do_operation(f"items/{item_id}"))

    def list_items(self, path: str = "/") -> list["DriveItem"]:
        """List the children of a folder, following pagination."""
        items = self.client.paginate(f"{self.path}/{_item_op(path, 'children')}")
        return [DriveItem(self.client, item) for item in items]

    def download_file(
        self,
        src: str,
        dest: str | Path | None = None,
        overwrite: bool = False,
    ) -> Path:
        """Download a file to the local filesystem.

        Args:
            src: Path of the file in the drive
            dest: Local destination (default: the file's name in the current directory)
            overwrite: Replace an existing local file

        Returns:
            Path of the downloaded file
        """
        dest_path = _resolve_dest(dest, os.path.basename(src.rstrip("/")), overwrite)
        self.client.download(f"{self.path}/{_item_op(src, 'content')}", dest_path)
        logger.info("File downloaded", drive_id=self.id, src=src, dest=str(dest_path))
        return dest_path

    def upload_file(self, src: str | Path, dest: str | None = None) -> "DriveItem":
        """Upload a local file, replacing any file already at the destination.

        Files above 4 MiB go through an upload session in chunks.

        Args:
            src: Local file to upload
            dest: Destination path in the drive (default: the file's name at the root)

        Returns:
            The uploaded DriveItem
        """
        src_path = Path(src)
        dest = dest or src_path.name
        size = src_path.stat().st_size

        if size <= SIMPLE_UPLOAD_LIMIT:
            result = self.client.request(
                "PUT",
                f"{self.path}/{_item_op(dest, 'content')}",
                data=src_path.read_bytes(),
                extra_headers={"Content-Type": "application/octet-stream"},
            )
        else:
            result = self._upload_in_chunks(src_path, dest, size)

        logger.info("File uploaded", drive_id=self.id, dest=dest, size=size)
        return DriveItem(self.client, result)

    def _upload_in_chunks(self, src_path: Path, dest: str, size: int) -> dict[str, Any]:
        session = self.do_operation(
            _item_op(dest, "createUploadSession"),
            method="POST",
            json={"item": {"@microsoft.graph.conflictBehavior": "replace"}},
        )
        upload_url = session["uploadUrl"]
        logger.debug("Upload session created", dest=dest, size=size)

        result: dict[str, Any] = {}
        with open(src_path, "rb") as f:
            offset = 0
            while offset < size:
                chunk = f.read(UPLOAD_CHUNK_SIZE)
                end = offset + len(chunk) - 1
                # The upload URL is pre-authorised; it must not get a bearer token
                result = self.client.request(
                    "PUT",
                    upload_url,
                    data=chunk,
                    extra_headers={
                        "Content-Length": str(len(chunk)),
                        "Content-Range": f"bytes {offset}-{end}/{size}",
                    },
                    authenticate=False,
                )
                offset = end + 1
        return result

    def create_folder(self, path: str) -> "DriveItem":
        """Create a folder; the parent folder must already exist."""
        parent, _, name = path.strip("/").rpartition("/")
        result = self.do_operation(
            _item_op(parent, "children"),
            method="POST",
            json={
                "name": name,
                "folder": {},
                "@microsoft.graph.conflictBehavior": "fail",
            },
        )
        return DriveItem(self.client, result)

    def delete_item(self, path: str) -> None:
        """Delete a file or folder (to the recycle bin)."""
        self.do_operation(_item_op(path), method="DELETE")
        logger.info("Drive item deleted", drive_id=self.id, path=path)


class DriveItem(GraphObject):
    """A file or folder in a drive."""

    def __init__(self, client, properties: dict[str, Any], path: str | None = None):
        drive_id = properties.get("parentReference", {}).get("driveId", "")
        self.drive_id = drive_id
        super().__init__(client, properties, path or f"drives/{drive_id}/items/{properties.get('id', '')}")

    def is_folder(self) -> bool:
        return "folder" in self.properties

    def get_path(self) -> str:
        """Path of the item from the drive root, e.g. '/Documents/report.xlsx'."""
        parent = self.properties.get("parentReference", {}).get("path", "")
        # parentReference.path looks like /drive/root:/Documents
        _, _, parent_path = parent.partition("root:")
        if "root" in self.properties:
            return "/"
        return f"{parent_path.rstrip('/')}/{self.name}"

    def list_items(self) -> list["DriveItem"]:
        """List the children of this folder."""
        items = self.client.paginate(f"{self.path}/children")
        return [DriveItem(self.client, item) for item in items]

    def get_parent_folder(self) -> "DriveItem":
        parent_id = self.properties.get("parentReference", {}).get("id")
        if not parent_id:
            raise ValueError(f"{self!r} is the drive root and has no parent folder")
        return DriveItem(self.client, self.client.get(f"drives/{self.drive_id}/items/{parent_id}"))

    def download(self, dest: str | Path | None = None, overwrite: bool = False) -> Path:
        """Download this file to the local filesystem."""
        if self.is_folder():
            raise ValueError(f"{self!r} is a folder; only files can be downloaded")
        dest_path = _resolve_dest(dest, self.name, overwrite)
        self.client.download(f"{self.path}/content", dest_path)
        return dest_path

    def delete(self) -> None:
        self.do_operation(method="DELETE")
        logger.info("Drive item deleted", drive_id=self.drive_id, item_id=self.id)

import logging
import posixpath
from typing import TYPE_CHECKING, Union

from ftpsession.ftp_listing import join_remote_path, normalize_remote_path, sort_rows

if TYPE_CHECKING:
    from ftpsession.ftp_file import File
    from ftpsession.ftp_session import Session


class Directory:
    def __init__(self, path: str, session: "Session") -> None:
        self.path = normalize_remote_path(path) or "."
        self.session = session

    def __repr__(self) -> str:
        return f"<Directory {self.path}>"

    @property
    def name(self) -> str:
        if self.path == "/":
            return "/"
        return posixpath.basename(self.path.rstrip("/"))

    def parent(self) -> "Directory":
        fallback = "/" if self.path.startswith("/") else "."
        return Directory(posixpath.dirname(self.path.rstrip("/")) or fallback, self.session)

    def get_directory(self, name: str) -> "Directory":
        return Directory(join_remote_path(self.path, name), self.session)

    def get_file(self, name: str) -> "File":
        from ftpsession.ftp_file import File

        return File(join_remote_path(self.path, name), self.session)

    def list_entries(self, limit: int = 500) -> list[dict]:
        connection = self.session.get_connection()
        return sort_rows(connection.list_entries(self.path, limit=limit))

    def list_names(self) -> list[str]:
        connection = self.session.get_connection()
        return sorted(connection.list_names(self.path), key=str.casefold)

    def exists(self) -> bool:
        return self.session.get_connection().is_directory(self.path)

    def create(self, parents: bool = False) -> "Directory":
        connection = self.session.get_connection()
        if not parents:
            connection.mkdir(self.path)
            return self
        current = "/" if self.path.startswith("/") else ""
        for part in [p for p in self.path.split("/") if p]:
            current = posixpath.join(current, part) if current else part
            if not connection.is_directory(current):
                connection.mkdir(current)
        logging.debug("FTP directory created: %s", self.path)
        return self

    def delete(self) -> None:
        self.session.get_connection().rmdir(self.path)

    def rename(self, new_name: str) -> "Directory":
        target = new_name if "/" in new_name else join_remote_path(self.parent().path, new_name)
        self.session.get_connection().rename(self.path, target)
        self.path = normalize_remote_path(target)
        return self

    def chmod(self, permissions: Union[int, str]) -> "Directory":
        self.session.chmod(self.path, permissions)
        return self

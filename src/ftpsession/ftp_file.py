import logging
import posixpath
from io import BytesIO
from pathlib import Path
from typing import TYPE_CHECKING, Union

from ftpsession.ftp_directory import Directory
from ftpsession.ftp_listing import file_extension, join_remote_path, normalize_remote_path
from ftpsession.models import TransferMode

if TYPE_CHECKING:
    from ftpsession.ftp_session import Session


class File:
    def __init__(self, path: str, session: "Session") -> None:
        self.path = normalize_remote_path(path)
        self.session = session

    def __repr__(self) -> str:
        return f"<File {self.path}>"

    @property
    def name(self) -> str:
        return posixpath.basename(self.path)

    @property
    def extension(self) -> str:
        return file_extension(self.name)

    @property
    def mode(self) -> TransferMode:
        return self.session.determine_mode(self.name)

    def directory(self) -> Directory:
        return Directory(posixpath.dirname(self.path) or ".", self.session)

    def exists(self) -> bool:
        connection = self.session.get_connection()
        return self.name in connection.list_names(self.directory().path)

    def size(self) -> int:
        return self.session.get_connection().size(self.path)

    def read(self) -> bytes:
        buffer = BytesIO()
        self.session.get_connection().retrieve(self.path, buffer.write, self.mode)
        return buffer.getvalue()

    def download(self, local_path: Union[str, Path]) -> Path:
        target = Path(local_path)
        if target.is_dir():
            target = target / self.name
        connection = self.session.get_connection()
        mode = self.mode
        with target.open("wb") as file_obj:
            connection.retrieve(self.path, file_obj.write, mode)
        logging.debug("FTP downloaded %s -> %s (%s)", self.path, target, mode.value)
        return target

    def write(self, data: Union[bytes, str]) -> "File":
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.session.get_connection().store(self.path, BytesIO(data), self.mode)
        return self

    def upload(self, local_path: Union[str, Path]) -> "File":
        source = Path(local_path)
        connection = self.session.get_connection()
        mode = self.mode
        with source.open("rb") as file_obj:
            connection.store(self.path, file_obj, mode)
        logging.debug("FTP uploaded %s -> %s (%s)", source, self.path, mode.value)
        return self

    def delete(self) -> None:
        self.session.get_connection().delete(self.path)

    def rename(self, new_name: str) -> "File":
        target = new_name if "/" in new_name else join_remote_path(self.directory().path, new_name)
        self.session.get_connection().rename(self.path, target)
        self.path = normalize_remote_path(target)
        return self

    def chmod(self, permissions: Union[int, str]) -> "File":
        self.session.chmod(self.path, permissions)
        return self

from typing import Optional

import pytest

from ftpsession.errors import ProtocolError
from ftpsession.ftp_connection import ENGINES
from ftpsession.ftp_listing import build_row
from ftpsession.models import TransferMode


class FakeEngine:
    def __init__(self) -> None:
        self.opens: list[dict] = []
        self.connections: list["FakeConnection"] = []
        self.fail_open = False
        self.fail_login = False
        self.fail_pwd = False
        self.fail_pasv = False
        self.fail_timeout = False
        self.fail_close = False
        self.chmod_result = True
        self.cwd = "/home/user"
        self.files: dict[str, bytes] = {}
        self.dirs: set[str] = {"/", "/home", "/home/user"}

    def open(self, host, port, timeout, secure=False, verify_tls=True, encoding="utf-8") -> "FakeConnection":
        self.opens.append(
            {
                "host": host,
                "port": port,
                "timeout": timeout,
                "secure": secure,
                "verify_tls": verify_tls,
                "encoding": encoding,
            }
        )
        if self.fail_open:
            raise ProtocolError("FTP command CONNECT failed: [Errno 111] Connection refused", command="CONNECT")
        connection = FakeConnection(self, timeout)
        self.connections.append(connection)
        return connection


class FakeConnection:
    name = "fake"

    def __init__(self, engine: FakeEngine, timeout: int) -> None:
        self.engine = engine
        self.timeout = timeout
        self.logins: list[tuple[str, str]] = []
        self.passive: Optional[bool] = None
        self.chmods: list[tuple[int, str]] = []
        self.transfers: list[tuple[str, str, TransferMode]] = []
        self.closed = False

    def login(self, username: str, password: str) -> None:
        self.logins.append((username, password))
        if self.engine.fail_login:
            raise ProtocolError("FTP command LOGIN failed: 530 Login incorrect.", command="LOGIN")

    def pwd(self) -> str:
        if self.engine.fail_pwd:
            raise ProtocolError("FTP command PWD failed: 550 denied", command="PWD")
        return self.engine.cwd

    def set_passive(self, enabled: bool) -> None:
        if self.engine.fail_pasv:
            raise ProtocolError("Active mode is not available", command="PASV")
        self.passive = enabled

    def set_timeout(self, seconds: int) -> None:
        if self.engine.fail_timeout:
            raise ProtocolError("bad timeout", command="TIMEOUT")
        self.timeout = seconds

    def chmod(self, mode: int, path: str) -> bool:
        self.chmods.append((mode, path))
        return self.engine.chmod_result

    def _children(self, remote_dir: str) -> list[dict]:
        rows = []
        prefix = remote_dir.rstrip("/") + "/"
        for path in sorted(self.engine.dirs):
            if path != remote_dir and path.startswith(prefix) and "/" not in path[len(prefix):]:
                rows.append(build_row(remote_dir, path[len(prefix):], {"type": "dir"}))
        for path, data in sorted(self.engine.files.items()):
            if path.startswith(prefix) and "/" not in path[len(prefix):]:
                rows.append(build_row(remote_dir, path[len(prefix):], {"type": "file", "size": len(data)}))
        return rows

    def list_entries(self, remote_dir: str, limit: int = 500) -> list[dict]:
        return self._children(remote_dir)[:limit]

    def list_names(self, remote_dir: str) -> list[str]:
        return [row["name"] for row in self._children(remote_dir)]

    def mkdir(self, path: str) -> str:
        if path in self.engine.dirs:
            raise ProtocolError("FTP command MKD failed: 550 exists", command="MKD")
        self.engine.dirs.add(path)
        return path

    def rmdir(self, path: str) -> None:
        self.engine.dirs.discard(path)

    def delete(self, path: str) -> None:
        if path not in self.engine.files:
            raise ProtocolError("FTP command DELE failed: 550 not found", command="DELE")
        del self.engine.files[path]

    def rename(self, source: str, target: str) -> None:
        if source in self.engine.files:
            self.engine.files[target] = self.engine.files.pop(source)
        elif source in self.engine.dirs:
            self.engine.dirs.discard(source)
            self.engine.dirs.add(target)
        else:
            raise ProtocolError("FTP command RNFR failed: 550 not found", command="RNFR")

    def size(self, path: str) -> int:
        if path not in self.engine.files:
            raise ProtocolError("FTP command SIZE failed: 550 not found", command="SIZE")
        return len(self.engine.files[path])

    def is_directory(self, path: str) -> bool:
        return path in self.engine.dirs

    def retrieve(self, path, callback, mode: TransferMode) -> None:
        self.transfers.append(("RETR", path, mode))
        if path not in self.engine.files:
            raise ProtocolError("FTP command RETR failed: 550 not found", command="RETR")
        callback(self.engine.files[path])

    def store(self, path, file_obj, mode: TransferMode) -> None:
        self.transfers.append(("STOR", path, mode))
        self.engine.files[path] = file_obj.read()

    def close(self) -> None:
        if self.engine.fail_close:
            raise RuntimeError("socket already gone")
        self.closed = True


@pytest.fixture
def fake_engine(monkeypatch: pytest.MonkeyPatch) -> FakeEngine:
    engine = FakeEngine()
    monkeypatch.setitem(ENGINES, "fake", engine.open)
    return engine


@pytest.fixture
def session(fake_engine: FakeEngine):
    from ftpsession.ftp_session import Session

    ftp = Session("ftp.example.com", "alice", "s3cret", engine="fake")
    yield ftp
    fake_engine.fail_close = False
    ftp.close()

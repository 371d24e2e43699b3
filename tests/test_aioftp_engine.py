from io import BytesIO
from pathlib import PurePosixPath
from types import SimpleNamespace

import pytest
from aioftp.common import Code
from aioftp.errors import StatusCodeError

from ftpsession import ftp_aioftp
from ftpsession.errors import AuthenticationError, ConfigurationError, ProtocolError
from ftpsession.ftp_aioftp import AioftpConnection, from_wire_ascii, to_wire_ascii_line
from ftpsession.ftp_session import Session
from ftpsession.models import TransferMode


class FakeStream:
    def __init__(self, blocks: list[bytes]) -> None:
        self.blocks = blocks
        self.written: list[bytes] = []

    async def __aenter__(self) -> "FakeStream":
        return self

    async def __aexit__(self, *exc) -> None:
        return None

    async def iter_by_block(self, count: int):
        for block in self.blocks:
            yield block

    async def write(self, data: bytes) -> None:
        self.written.append(data)


class FakeAioClient:
    instances: list["FakeAioClient"] = []
    reject_tls = False

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.socket_timeout = kwargs.get("socket_timeout")
        self.connection_timeout = kwargs.get("connection_timeout")
        self.stream = SimpleNamespace(read_timeout=None, write_timeout=None)
        self.commands: list[str] = []
        self.tls_context = None
        self.reject_login = False
        self.reject_commands = False
        self.download_blocks: list[bytes] = []
        self.streams: list[tuple[str, str, FakeStream]] = []
        self.quit_called = False
        self.closed = False
        FakeAioClient.instances.append(self)

    async def connect(self, host: str, port: int) -> list[str]:
        self.address = (host, port)
        return ["220 ready"]

    async def upgrade_to_tls(self, sslcontext) -> None:
        if self.reject_tls:
            raise StatusCodeError(Code("234"), Code("502"), ["AUTH TLS not supported"])
        self.tls_context = sslcontext

    async def login(self, user: str, password: str) -> None:
        if user == "mallory":
            raise StatusCodeError(Code("230"), Code("530"), ["Login incorrect."])
        self.user = user

    async def get_current_directory(self) -> PurePosixPath:
        return PurePosixPath("/pub")

    async def command(self, command: str, expected_codes=()) -> tuple[Code, list[str]]:
        self.commands.append(command)
        if self.reject_commands:
            raise StatusCodeError(Code("2xx"), Code("500"), ["not understood"])
        return Code("200"), ["ok"]

    def get_stream(self, command: str, expected_codes, conn_type: str = "I") -> FakeStream:
        stream = FakeStream(self.download_blocks)
        self.streams.append((command, conn_type, stream))
        return stream

    async def quit(self) -> None:
        self.quit_called = True

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_aioftp(monkeypatch: pytest.MonkeyPatch):
    FakeAioClient.instances = []
    monkeypatch.setattr(FakeAioClient, "reject_tls", False)
    monkeypatch.setattr(ftp_aioftp.aioftp, "Client", FakeAioClient)
    return FakeAioClient


@pytest.fixture
def connection(fake_aioftp):
    conn = AioftpConnection.open("ftp.example.com", 21, 5)
    yield conn
    conn.close()


def test_open_runs_client_on_background_loop(connection: AioftpConnection, fake_aioftp) -> None:
    client = fake_aioftp.instances[0]

    assert client.address == ("ftp.example.com", 21)
    assert client.kwargs["socket_timeout"] == 5
    assert client.tls_context is None
    assert connection.pwd() == "/pub"


def test_secure_open_upgrades_to_tls(fake_aioftp) -> None:
    conn = AioftpConnection.open("ftp.example.com", 21, 5, secure=True)
    try:
        assert fake_aioftp.instances[0].tls_context is not None
    finally:
        conn.close()


def test_active_mode_is_rejected(connection: AioftpConnection) -> None:
    connection.set_passive(True)
    with pytest.raises(ProtocolError):
        connection.set_passive(False)


def test_set_timeout_updates_client_and_control_stream(connection: AioftpConnection, fake_aioftp) -> None:
    connection.set_timeout(40)
    client = fake_aioftp.instances[0]

    assert connection.timeout == 40
    assert client.socket_timeout == 40
    assert client.stream.read_timeout == 40
    assert client.stream.write_timeout == 40


def test_chmod_reports_status_without_raising(connection: AioftpConnection, fake_aioftp) -> None:
    client = fake_aioftp.instances[0]

    assert connection.chmod(0o755, "/pub/run.sh") is True
    assert client.commands == ["SITE CHMOD 755 /pub/run.sh"]

    client.reject_commands = True
    assert connection.chmod(0o755, "/pub/run.sh") is False


def test_retrieve_translates_ascii_line_endings(connection: AioftpConnection, fake_aioftp) -> None:
    client = fake_aioftp.instances[0]
    client.download_blocks = [b"one\r", b"\ntwo\r\n"]
    chunks: list[bytes] = []

    connection.retrieve("/pub/readme.txt", chunks.append, TransferMode.ASCII)

    assert b"".join(chunks) == b"one\ntwo\n"
    assert client.streams[0][:2] == ("RETR /pub/readme.txt", "A")


def test_retrieve_binary_is_verbatim(connection: AioftpConnection, fake_aioftp) -> None:
    client = fake_aioftp.instances[0]
    client.download_blocks = [b"\x89PNG\r\n", b"\x00\x01"]
    chunks: list[bytes] = []

    connection.retrieve("/pub/logo.png", chunks.append, TransferMode.BINARY)

    assert b"".join(chunks) == b"\x89PNG\r\n\x00\x01"
    assert client.streams[0][1] == "I"


def test_store_ascii_sends_crlf_lines(connection: AioftpConnection, fake_aioftp) -> None:
    connection.store("/pub/notes.txt", BytesIO(b"a\nb\r\nc"), TransferMode.ASCII)

    command, conn_type, stream = fake_aioftp.instances[0].streams[0]
    assert (command, conn_type) == ("STOR /pub/notes.txt", "A")
    assert b"".join(stream.written) == b"a\r\nb\r\nc\r\n"


def test_close_quits_and_stops_loop(fake_aioftp) -> None:
    conn = AioftpConnection.open("ftp.example.com", 21, 5)
    conn.close()

    assert fake_aioftp.instances[0].quit_called is True
    assert conn.client is None
    with pytest.raises(ProtocolError):
        conn.pwd()


def test_session_with_aioftp_engine(fake_aioftp) -> None:
    session = Session("ftp.example.com", "alice", "pw", engine="aioftp", timeout=5).set_passive()
    try:
        session.connect_if_needed()
        assert session.current_path == "/pub"
        with pytest.raises(ConfigurationError):
            session.set_passive(False)
    finally:
        session.close()


def test_session_with_aioftp_engine_maps_login_failure(fake_aioftp) -> None:
    session = Session("ftp.example.com", "mallory", "pw", engine="aioftp", timeout=5)

    with pytest.raises(AuthenticationError):
        session.connect_if_needed()

    assert session.is_connected is False
    assert fake_aioftp.instances[0].quit_called is True


def test_ascii_line_helpers() -> None:
    assert to_wire_ascii_line(b"x\n") == b"x\r\n"
    assert to_wire_ascii_line(b"x\r\n") == b"x\r\n"
    assert to_wire_ascii_line(b"x") == b"x\r\n"
    assert from_wire_ascii(b"a\r\nb\r\n") == b"a\nb\n"


def test_failed_tls_upgrade_closes_client(fake_aioftp, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(FakeAioClient, "reject_tls", True)

    with pytest.raises(ProtocolError):
        AioftpConnection.open("ftp.example.com", 21, 5, secure=True)

    assert fake_aioftp.instances[0].closed is True


def test_session_with_aioftp_engine_rejects_active_mode_at_connect(fake_aioftp) -> None:
    session = Session("ftp.example.com", "alice", "pw", engine="aioftp", timeout=5)

    with pytest.raises(ConfigurationError):
        session.connect_if_needed()

    assert session.is_connected is False
    assert fake_aioftp.instances[0].quit_called is True

import asyncio
import logging
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from pathlib import PurePosixPath
from typing import BinaryIO, Callable, Optional

import aioftp
from aioftp.errors import StatusCodeError

from ftpsession.errors import ProtocolError
from ftpsession.ftp_ftplib import build_ssl_context
from ftpsession.ftp_listing import build_row
from ftpsession.models import TransferMode

AIOFTP_ERRORS = (StatusCodeError, OSError, EOFError, asyncio.TimeoutError)
AIOFTP_BLOCK_SIZE = 1024 * 256
AIOFTP_CLOSE_TIMEOUT_SECONDS = 10


def to_wire_ascii_line(line: bytes) -> bytes:
    if line[-2:] != b"\r\n":
        if line[-1:] in {b"\r", b"\n"}:
            line = line[:-1]
        line = line + b"\r\n"
    return line


def from_wire_ascii(data: bytes) -> bytes:
    return data.replace(b"\r\n", b"\n")


class AioftpConnection:
    """Blocking facade over ``aioftp.Client``.

    The client lives on a private event loop running in a daemon thread;
    every call submits a coroutine to that loop and waits for it with the
    session timeout. aioftp only opens passive data connections.
    """

    name = "aioftp"

    def __init__(self, timeout: int) -> None:
        self.timeout = timeout
        self.client: Optional[aioftp.Client] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_thread: Optional[threading.Thread] = None

    @classmethod
    def open(
        cls,
        host: str,
        port: int,
        timeout: int,
        secure: bool = False,
        verify_tls: bool = True,
        encoding: str = "utf-8",
    ) -> "AioftpConnection":
        connection = cls(timeout)
        connection._start_loop()
        try:
            connection._run(connection._open_async(host, port, secure, verify_tls, encoding), "CONNECT")
        except ProtocolError:
            connection.close()
            raise
        return connection

    def _start_loop(self) -> None:
        if self._loop and self._loop_thread and self._loop_thread.is_alive():
            return

        loop = asyncio.new_event_loop()

        def _runner() -> None:
            asyncio.set_event_loop(loop)
            loop.run_forever()

        thread = threading.Thread(target=_runner, name="ftpsession-aioftp-loop", daemon=True)
        thread.start()
        self._loop = loop
        self._loop_thread = thread

    def _stop_loop(self) -> None:
        if not self._loop:
            return
        try:
            self._loop.call_soon_threadsafe(self._loop.stop)
        except RuntimeError:
            pass
        if self._loop_thread:
            self._loop_thread.join(timeout=2)
        if not self._loop.is_running():
            self._loop.close()
        self._loop = None
        self._loop_thread = None

    def _run(self, coro, command: str, timeout: Optional[int] = None):
        if not self._loop:
            coro.close()
            raise ProtocolError("aioftp loop is not started.", command=command)
        wait_seconds = timeout or self.timeout
        fut: Future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return fut.result(timeout=wait_seconds)
        except FutureTimeoutError as exc:
            fut.cancel()
            raise ProtocolError(f"FTP command {command} timed out after {wait_seconds}s", command=command) from exc
        except AIOFTP_ERRORS as exc:
            raise ProtocolError(f"FTP command {command} failed: {exc}", command=command) from exc

    def _require_client(self) -> aioftp.Client:
        if self.client is None:
            raise ProtocolError("aioftp client is not connected.")
        return self.client

    async def _open_async(self, host: str, port: int, secure: bool, verify_tls: bool, encoding: str) -> None:
        client = aioftp.Client(
            socket_timeout=self.timeout,
            connection_timeout=self.timeout,
            encoding=encoding,
        )
        try:
            await client.connect(host=host, port=port)
            if secure:
                await client.upgrade_to_tls(build_ssl_context(verify_tls))
        except BaseException:
            client.close()
            raise
        self.client = client

    def login(self, username: str, password: str) -> None:
        client = self._require_client()
        self._run(client.login(user=username, password=password or ""), "LOGIN")

    def pwd(self) -> str:
        client = self._require_client()
        return str(self._run(client.get_current_directory(), "PWD"))

    def set_passive(self, enabled: bool) -> None:
        if not enabled:
            raise ProtocolError("Active mode is not available with the aioftp engine.", command="PASV")

    def set_timeout(self, seconds: int) -> None:
        if seconds <= 0:
            raise ProtocolError(f"Invalid socket timeout: {seconds}", command="TIMEOUT")
        client = self._require_client()
        self.timeout = seconds
        client.socket_timeout = seconds
        client.connection_timeout = seconds
        stream = client.stream
        stream.read_timeout = seconds
        stream.write_timeout = seconds

    def chmod(self, mode: int, path: str) -> bool:
        client = self._require_client()
        try:
            self._run(client.command(f"SITE CHMOD {mode:o} {path}", "2xx"), "SITE CHMOD")
        except ProtocolError as exc:
            logging.debug("SITE CHMOD %o %s reported: %s", mode, path, exc)
            return False
        return True

    async def _list_async(self, remote_dir: str, limit: int) -> list[dict]:
        client = self._require_client()
        rows: list[dict] = []
        async for path, info in client.list(PurePosixPath(remote_dir or ".")):
            rows.append(build_row(remote_dir, path.name, info))
            if len(rows) >= limit:
                break
        return rows

    def list_entries(self, remote_dir: str, limit: int = 500) -> list[dict]:
        return self._run(self._list_async(remote_dir, max(1, int(limit))), "LIST")

    def list_names(self, remote_dir: str) -> list[str]:
        return [row["name"] for row in self.list_entries(remote_dir, limit=100000)]

    def mkdir(self, path: str) -> str:
        client = self._require_client()
        self._run(client.make_directory(PurePosixPath(path), parents=False), "MKD")
        return path

    def rmdir(self, path: str) -> None:
        client = self._require_client()
        self._run(client.remove_directory(PurePosixPath(path)), "RMD")

    def delete(self, path: str) -> None:
        client = self._require_client()
        self._run(client.remove_file(PurePosixPath(path)), "DELE")

    def rename(self, source: str, target: str) -> None:
        client = self._require_client()
        self._run(client.rename(PurePosixPath(source), PurePosixPath(target)), "RNFR")

    def size(self, path: str) -> int:
        client = self._require_client()
        info = self._run(client.stat(PurePosixPath(path)), "SIZE")
        value = str((info or {}).get("size", "")).strip()
        if not value.isdigit():
            raise ProtocolError(f"Server returned no size for {path}", command="SIZE")
        return int(value)

    def is_directory(self, path: str) -> bool:
        client = self._require_client()
        try:
            return bool(self._run(client.is_dir(PurePosixPath(path)), "STAT"))
        except ProtocolError as exc:
            if isinstance(exc.__cause__, StatusCodeError):
                return False
            raise

    async def _retrieve_async(self, path: str, callback: Callable[[bytes], None], mode: TransferMode) -> None:
        client = self._require_client()
        conn_type = "A" if mode == TransferMode.ASCII else "I"
        pending = b""
        async with client.get_stream(f"RETR {path}", "1xx", conn_type=conn_type) as stream:
            async for block in stream.iter_by_block(AIOFTP_BLOCK_SIZE):
                if mode != TransferMode.ASCII:
                    callback(block)
                    continue
                data = pending + block
                # a CRLF pair may straddle two blocks
                pending = b"\r" if data.endswith(b"\r") else b""
                if pending:
                    data = data[:-1]
                callback(from_wire_ascii(data))
        if pending:
            callback(pending)

    def retrieve(self, path: str, callback: Callable[[bytes], None], mode: TransferMode) -> None:
        self._run(self._retrieve_async(path, callback, mode), "RETR")

    async def _store_async(self, path: str, file_obj: BinaryIO, mode: TransferMode) -> None:
        client = self._require_client()
        conn_type = "A" if mode == TransferMode.ASCII else "I"
        async with client.get_stream(f"STOR {path}", "1xx", conn_type=conn_type) as stream:
            while True:
                if mode == TransferMode.ASCII:
                    line = file_obj.readline()
                    if not line:
                        break
                    await stream.write(to_wire_ascii_line(line))
                    continue
                chunk = file_obj.read(AIOFTP_BLOCK_SIZE)
                if not chunk:
                    break
                await stream.write(chunk)

    def store(self, path: str, file_obj: BinaryIO, mode: TransferMode) -> None:
        self._run(self._store_async(path, file_obj, mode), "STOR")

    async def _close_async(self) -> None:
        if not self.client:
            return
        try:
            await self.client.quit()
        except Exception:
            try:
                self.client.close()
            except Exception:
                pass

    def close(self) -> None:
        if self._loop and self.client is not None:
            try:
                self._run(self._close_async(), "QUIT", timeout=AIOFTP_CLOSE_TIMEOUT_SECONDS)
            except Exception:
                pass
        self.client = None
        self._stop_loop()

import logging
import socket
import ssl
from typing import Iterable, Optional, Union

from ftpsession.errors import (
    AuthenticationError,
    ConfigurationError,
    FtpConnectionError,
    FtpError,
    ProtocolError,
)
from ftpsession.ftp_connection import EngineConnection, open_connection, resolve_engine
from ftpsession.ftp_directory import Directory
from ftpsession.ftp_file import File
from ftpsession.ftp_listing import file_extension, normalize_extension
from ftpsession.ftp_permissions import format_permissions, parse_permissions
from ftpsession.models import (
    DEFAULT_ASCII_EXTENSIONS,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT_SECONDS,
    SessionSettings,
    TransferMode,
)


def _positive_int(name: str, value) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid {name}: {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid {name}: {value!r}") from exc
    if number <= 0:
        raise ConfigurationError(f"{name.capitalize()} must be positive, got {number}")
    return number


def _root_cause(exc: BaseException) -> BaseException:
    seen = set()
    while exc.__cause__ is not None and id(exc) not in seen:
        seen.add(id(exc))
        exc = exc.__cause__
    return exc


class Session:
    """Lazily connected FTP session.

    Nothing touches the network until an operation needs the control
    connection; ``connect_if_needed()`` is the only place it is opened.
    ``Directory`` and ``File`` handles borrow the connection through
    ``get_connection()`` and never close it.
    """

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        port: int = DEFAULT_PORT,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
        engine: str = "ftplib",
        verify_tls: bool = True,
        encoding: str = "utf-8",
    ) -> None:
        resolve_engine(engine)
        self._port = _positive_int("port", port)
        if self._port > 65535:
            raise ConfigurationError(f"Port must be in range 1..65535, got {self._port}")
        self._timeout = _positive_int("timeout", timeout)
        self._host = host
        self._username = username
        self._password = password
        self._engine = engine
        self._verify_tls = bool(verify_tls)
        self._encoding = encoding
        self._connection: Optional[EngineConnection] = None
        self._secure = False
        self._passive = False
        self._mode = TransferMode.AUTO
        self._ascii_extensions: dict[str, None] = {}
        self._current_path: Optional[str] = None
        self._current_directory: Optional[Directory] = None
        self.set_ascii_extensions(DEFAULT_ASCII_EXTENSIONS)

    @classmethod
    def create(
        cls,
        host: str,
        username: str,
        password: str,
        port: int = DEFAULT_PORT,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
    ) -> "Session":
        return cls(host, username, password, port=port, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: SessionSettings) -> "Session":
        session = cls(
            settings.host,
            settings.username,
            settings.password,
            port=settings.port,
            timeout=settings.timeout,
            engine=settings.engine,
            verify_tls=settings.verify_tls,
            encoding=settings.encoding,
        )
        return (
            session.set_secure(settings.secure)
            .set_passive(settings.passive)
            .set_mode(settings.transfer_mode)
            .set_ascii_extensions(settings.ascii_extensions)
        )

    def __repr__(self) -> str:
        state = "connected" if self.is_connected else "disconnected"
        return f"<Session {self._username}@{self._host}:{self._port} {state}>"

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_connection", None) is not None:
            self.close()

    @property
    def host(self) -> str:
        return self._host

    @property
    def username(self) -> str:
        return self._username

    @property
    def port(self) -> int:
        return self._port

    @property
    def timeout(self) -> int:
        return self._timeout

    @property
    def engine(self) -> str:
        return self._engine

    @property
    def secure(self) -> bool:
        return self._secure

    @property
    def passive(self) -> bool:
        return self._passive

    @property
    def mode(self) -> TransferMode:
        return self._mode

    @property
    def ascii_extensions(self) -> tuple[str, ...]:
        return tuple(self._ascii_extensions)

    @property
    def current_path(self) -> Optional[str]:
        return self._current_path

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def connect_if_needed(self) -> None:
        if self._connection is not None:
            return

        try:
            connection = open_connection(
                self._engine,
                self._host,
                self._port,
                self._timeout,
                secure=self._secure,
                verify_tls=self._verify_tls,
                encoding=self._encoding,
            )
        except ProtocolError as exc:
            raise FtpConnectionError(self._host, self._port, str(exc)) from exc

        try:
            try:
                connection.login(self._username, self._password)
            except ProtocolError as exc:
                raise AuthenticationError(self._username, str(exc)) from exc
            self._send_passive_mode(connection)
            try:
                path = connection.pwd()
            except ProtocolError as exc:
                raise ProtocolError("Unable to get current directory", command="PWD") from exc
        except FtpError:
            connection.close()
            raise

        self._connection = connection
        self._current_path = path
        logging.info(
            "FTP connected to %s:%s as %s (tls=%s, passive=%s, engine=%s, cwd=%s)",
            self._host,
            self._port,
            self._username,
            self._secure,
            self._passive,
            self._engine,
            path,
        )

    def get_connection(self) -> EngineConnection:
        self.connect_if_needed()
        return self._connection

    def close(self) -> None:
        connection = self._connection
        self._connection = None
        self._current_path = None
        self._current_directory = None
        if connection is None:
            return
        try:
            connection.close()
        except Exception as exc:
            logging.warning("FTP close failed for %s:%s: %s", self._host, self._port, exc)
            return
        logging.info("FTP connection to %s:%s closed", self._host, self._port)

    def set_timeout(self, timeout: int) -> "Session":
        seconds = _positive_int("timeout", timeout)
        self._timeout = seconds
        if self._connection is not None:
            try:
                self._connection.set_timeout(seconds)
            except ProtocolError as exc:
                raise ConfigurationError("Unable to set timeout") from exc
        logging.debug("FTP timeout set to %ss", seconds)
        return self

    def set_secure(self, secure: bool = True) -> "Session":
        self._secure = bool(secure)
        return self

    def set_passive(self, passive: bool = True) -> "Session":
        self._passive = bool(passive)
        return self._apply_passive_mode()

    def _apply_passive_mode(self) -> "Session":
        if self._connection is not None:
            self._send_passive_mode(self._connection)
        return self

    def _send_passive_mode(self, connection: EngineConnection) -> None:
        try:
            connection.set_passive(self._passive)
        except ProtocolError as exc:
            raise ConfigurationError("Unable to set passive mode") from exc
        logging.debug("FTP passive mode %s", "on" if self._passive else "off")

    def set_mode(self, mode: Union[TransferMode, str]) -> "Session":
        if isinstance(mode, TransferMode):
            self._mode = mode
            return self
        try:
            self._mode = TransferMode(str(mode).strip().lower())
        except ValueError as exc:
            raise ConfigurationError(f"Unknown FTP transfer mode: {mode!r}") from exc
        return self

    def set_ascii_extensions(self, extensions: Iterable[str]) -> "Session":
        if isinstance(extensions, str):
            extensions = [extensions]
        normalized = (normalize_extension(item) for item in extensions)
        self._ascii_extensions = dict.fromkeys(item for item in normalized if item)
        return self

    def add_ascii_extension(self, extension: str) -> "Session":
        return self.set_ascii_extensions([*self._ascii_extensions, extension])

    def determine_mode(self, filename: str) -> TransferMode:
        if self._mode != TransferMode.AUTO:
            return self._mode
        if normalize_extension(file_extension(filename)) in self._ascii_extensions:
            return TransferMode.ASCII
        return TransferMode.BINARY

    def get_directory(self, path: str = "") -> Directory:
        if not path:
            return self.get_current_directory()
        self.connect_if_needed()
        return Directory(path, self)

    def get_file(self, path: str) -> File:
        self.connect_if_needed()
        return File(path, self)

    def get_current_directory(self) -> Directory:
        # Cached for the session lifetime; later CWDs on the server are not tracked.
        if self._current_directory is None:
            self.connect_if_needed()
            self._current_directory = Directory(self._current_path, self)
        return self._current_directory

    def chmod(self, path: str, permissions: Union[int, str]) -> "Session":
        mode = parse_permissions(permissions)
        connection = self.get_connection()
        # SITE CHMOD is known to report failure on servers that applied it,
        # so its status is logged and never raised.
        if not connection.chmod(mode, path):
            logging.debug("FTP chmod %s %s: server reported failure, ignored", format_permissions(mode), path)
        return self

    def validate_connection(self) -> tuple[bool, str]:
        try:
            self.connect_if_needed()
            return (
                True,
                "FTP: connection established "
                f"({self._username}@{self._host}:{self._port}; tls={'on' if self._secure else 'off'}; "
                f"passive={'on' if self._passive else 'off'}; mode={self._mode.value}; engine={self._engine}). "
                f"Working directory: {self._current_path}",
            )
        except FtpError as exc:
            cause = _root_cause(exc)
            if isinstance(cause, ssl.SSLCertVerificationError):
                return False, f"FTP: TLS certificate verification failed ({cause})"
            if isinstance(cause, (TimeoutError, socket.timeout)):
                return False, f"FTP: timed out after {self._timeout}s ({exc})"
            return False, f"FTP: {exc}"
        finally:
            self.close()

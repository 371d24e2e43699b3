from typing import Callable, Union

from ftpsession.errors import ConfigurationError
from ftpsession.ftp_aioftp import AioftpConnection
from ftpsession.ftp_ftplib import FtplibConnection

EngineConnection = Union[FtplibConnection, AioftpConnection]

ENGINES: dict[str, Callable[..., EngineConnection]] = {
    "ftplib": FtplibConnection.open,
    "aioftp": AioftpConnection.open,
}


def resolve_engine(name: str) -> Callable[..., EngineConnection]:
    key = (name or "ftplib").strip().lower()
    try:
        return ENGINES[key]
    except KeyError as exc:
        known = ", ".join(sorted(ENGINES))
        raise ConfigurationError(f"Unknown FTP engine {name!r}; expected one of: {known}") from exc


def open_connection(
    engine: str,
    host: str,
    port: int,
    timeout: int,
    secure: bool = False,
    verify_tls: bool = True,
    encoding: str = "utf-8",
) -> EngineConnection:
    opener = resolve_engine(engine)
    return opener(
        host,
        port,
        timeout,
        secure=secure,
        verify_tls=verify_tls,
        encoding=encoding,
    )

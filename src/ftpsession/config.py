import logging
import os
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

from ftpsession.errors import ConfigurationError
from ftpsession.ftp_connection import resolve_engine
from ftpsession.models import (
    DEFAULT_ASCII_EXTENSIONS,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT_SECONDS,
    SessionSettings,
    TransferMode,
)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(debug: bool = False, log_file: Optional[Union[str, Path]] = None) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
    )
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    if log_file:
        path = Path(log_file).resolve()
        if any(
            isinstance(h, logging.FileHandler) and Path(h.baseFilename) == path for h in root.handlers
        ):
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(DEBUG_LOG_FORMAT))
        root.addHandler(file_handler)


def _env(key: str) -> str:
    return os.getenv(key, "").strip()


def _require_non_empty(name: str, value: str) -> str:
    if not value:
        raise ConfigurationError(f"Missing required setting: {name}")
    return value


def _to_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer") from exc


def parse_extensions(raw: str) -> tuple[str, ...]:
    items = [item.strip().lstrip(".").lower() for item in raw.split(",")]
    return tuple(dict.fromkeys(item for item in items if item))


def load_settings(env_file: Optional[Union[str, Path]] = None) -> SessionSettings:
    load_dotenv(env_file)

    host = _require_non_empty("FTP_HOST", _env("FTP_HOST"))
    username = _require_non_empty("FTP_USERNAME", _env("FTP_USERNAME"))
    password = os.getenv("FTP_PASSWORD", "")

    port = _to_int("FTP_PORT", _env("FTP_PORT") or str(DEFAULT_PORT))
    if port <= 0 or port > 65535:
        raise ConfigurationError("FTP_PORT must be in range 1..65535.")

    timeout = _to_int("FTP_TIMEOUT", _env("FTP_TIMEOUT") or str(DEFAULT_TIMEOUT_SECONDS))
    if timeout < 1:
        raise ConfigurationError("FTP_TIMEOUT must be >= 1")

    mode_raw = (_env("FTP_TRANSFER_MODE") or TransferMode.AUTO.value).lower()
    try:
        transfer_mode = TransferMode(mode_raw)
    except ValueError as exc:
        raise ConfigurationError(f"Unknown FTP_TRANSFER_MODE: {mode_raw}") from exc

    extensions_raw = _env("FTP_ASCII_EXTENSIONS")
    ascii_extensions = parse_extensions(extensions_raw) if extensions_raw else DEFAULT_ASCII_EXTENSIONS

    engine = (_env("FTP_ENGINE") or "ftplib").lower()
    resolve_engine(engine)

    return SessionSettings(
        host=host,
        username=username,
        password=password,
        port=port,
        timeout=timeout,
        secure=_to_bool(_env("FTP_SECURE") or "0"),
        verify_tls=_to_bool(_env("FTP_VERIFY_TLS") or "1"),
        passive=_to_bool(_env("FTP_PASSIVE") or "0"),
        transfer_mode=transfer_mode,
        ascii_extensions=ascii_extensions,
        encoding=_env("FTP_ENCODING") or "utf-8",
        engine=engine,
    )

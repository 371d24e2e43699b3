from dataclasses import dataclass
from enum import Enum

DEFAULT_PORT = 21
DEFAULT_TIMEOUT_SECONDS = 90
DEFAULT_ASCII_EXTENSIONS = ("txt", "html", "htm", "php", "phtml")


class TransferMode(Enum):
    ASCII = "ascii"
    BINARY = "binary"
    AUTO = "auto"


@dataclass(frozen=True)
class SessionSettings:
    host: str
    username: str
    password: str
    port: int = DEFAULT_PORT
    timeout: int = DEFAULT_TIMEOUT_SECONDS
    secure: bool = False
    verify_tls: bool = True
    passive: bool = False
    transfer_mode: TransferMode = TransferMode.AUTO
    ascii_extensions: tuple[str, ...] = DEFAULT_ASCII_EXTENSIONS
    encoding: str = "utf-8"
    engine: str = "ftplib"

    def __repr__(self) -> str:
        return (
            f"SessionSettings(host={self.host!r}, username={self.username!r}, password='***', "
            f"port={self.port}, timeout={self.timeout}, secure={self.secure}, passive={self.passive}, "
            f"transfer_mode={self.transfer_mode.value}, engine={self.engine!r})"
        )

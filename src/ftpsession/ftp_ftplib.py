import ftplib
import logging
import ssl
from contextlib import contextmanager
from typing import BinaryIO, Callable, Iterator

from ftpsession.errors import ProtocolError
from ftpsession.ftp_listing import list_dir_detailed_ftplib
from ftpsession.models import TransferMode

FTPLIB_ERRORS = ftplib.all_errors


def build_ssl_context(verify_tls: bool) -> ssl.SSLContext:
    if verify_tls:
        return ssl.create_default_context()
    return ssl._create_unverified_context()


@contextmanager
def translate_errors(command: str) -> Iterator[None]:
    try:
        yield
    except FTPLIB_ERRORS as exc:
        raise ProtocolError(f"FTP command {command} failed: {exc}", command=command) from exc


class FtplibConnection:
    name = "ftplib"

    def __init__(self, client: ftplib.FTP, secure: bool) -> None:
        self.client = client
        self.secure = secure

    @classmethod
    def open(
        cls,
        host: str,
        port: int,
        timeout: int,
        secure: bool = False,
        verify_tls: bool = True,
        encoding: str = "utf-8",
    ) -> "FtplibConnection":
        if secure:
            client: ftplib.FTP = ftplib.FTP_TLS(
                timeout=timeout,
                context=build_ssl_context(verify_tls),
                encoding=encoding,
            )
        else:
            client = ftplib.FTP(timeout=timeout, encoding=encoding)
        try:
            with translate_errors("CONNECT"):
                client.connect(host=host, port=port, timeout=timeout)
                if secure:
                    client.auth()
        except ProtocolError:
            client.close()
            raise
        return cls(client, secure)

    def login(self, username: str, password: str) -> None:
        with translate_errors("LOGIN"):
            self.client.login(user=username, passwd=password or "")
            if self.secure:
                self.client.prot_p()

    def pwd(self) -> str:
        with translate_errors("PWD"):
            return self.client.pwd()

    def set_passive(self, enabled: bool) -> None:
        self.client.set_pasv(bool(enabled))

    def set_timeout(self, seconds: int) -> None:
        if seconds <= 0:
            raise ProtocolError(f"Invalid socket timeout: {seconds}", command="TIMEOUT")
        self.client.timeout = seconds
        sock = getattr(self.client, "sock", None)
        if sock is not None:
            with translate_errors("TIMEOUT"):
                sock.settimeout(seconds)

    def chmod(self, mode: int, path: str) -> bool:
        try:
            self.client.sendcmd(f"SITE CHMOD {mode:o} {path}")
        except FTPLIB_ERRORS as exc:
            logging.debug("SITE CHMOD %o %s reported: %s", mode, path, exc)
            return False
        return True

    def list_entries(self, remote_dir: str, limit: int = 500) -> list[dict]:
        with translate_errors("LIST"):
            rows, source = list_dir_detailed_ftplib(self.client, remote_dir, limit=limit)
        logging.debug("Listed %s entries in %s via %s", len(rows), remote_dir, source)
        return rows

    def list_names(self, remote_dir: str) -> list[str]:
        return [row["name"] for row in self.list_entries(remote_dir, limit=100000)]

    def mkdir(self, path: str) -> str:
        with translate_errors("MKD"):
            return self.client.mkd(path)

    def rmdir(self, path: str) -> None:
        with translate_errors("RMD"):
            self.client.rmd(path)

    def delete(self, path: str) -> None:
        with translate_errors("DELE"):
            self.client.delete(path)

    def rename(self, source: str, target: str) -> None:
        with translate_errors("RNFR"):
            self.client.rename(source, target)

    def size(self, path: str) -> int:
        with translate_errors("SIZE"):
            # SIZE is only meaningful in binary mode on most servers.
            self.client.voidcmd("TYPE I")
            value = self.client.size(path)
        if value is None:
            raise ProtocolError(f"Server returned no size for {path}", command="SIZE")
        return int(value)

    def is_directory(self, path: str) -> bool:
        try:
            current = self.client.pwd()
        except FTPLIB_ERRORS as exc:
            raise ProtocolError(f"FTP command PWD failed: {exc}", command="PWD") from exc
        try:
            self.client.cwd(path)
        except ftplib.error_perm:
            return False
        except FTPLIB_ERRORS as exc:
            raise ProtocolError(f"FTP command CWD failed: {exc}", command="CWD") from exc
        with translate_errors("CWD"):
            self.client.cwd(current)
        return True

    def retrieve(self, path: str, callback: Callable[[bytes], None], mode: TransferMode) -> None:
        with translate_errors("RETR"):
            if mode == TransferMode.ASCII:
                encoding = self.client.encoding

                def _line(line: str) -> None:
                    callback((line + "\n").encode(encoding))

                self.client.retrlines(f"RETR {path}", _line)
            else:
                self.client.retrbinary(f"RETR {path}", callback, blocksize=1024 * 256)

    def store(self, path: str, file_obj: BinaryIO, mode: TransferMode) -> None:
        with translate_errors("STOR"):
            if mode == TransferMode.ASCII:
                self.client.storlines(f"STOR {path}", file_obj)
            else:
                self.client.storbinary(f"STOR {path}", file_obj, blocksize=1024 * 256)

    def close(self) -> None:
        try:
            self.client.quit()
        except Exception:
            try:
                self.client.close()
            except Exception:
                pass

from typing import Optional


class FtpError(Exception):
    """Base class for every error raised by an FTP session."""


class FtpConnectionError(FtpError, ConnectionError):
    def __init__(self, host: str, port: int, reason: str = "") -> None:
        self.host = host
        self.port = port
        message = f'Unable to connect to host "{host}" on port {port}'
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class AuthenticationError(FtpError):
    def __init__(self, username: str, reason: str = "") -> None:
        self.username = username
        message = f'Unable to login with username "{username}"'
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ProtocolError(FtpError):
    def __init__(self, message: str, command: Optional[str] = None) -> None:
        self.command = command
        super().__init__(message)


class ConfigurationError(FtpError, ValueError):
    pass


class InvalidPermissionsError(FtpError, ValueError):
    def __init__(self, permissions: object) -> None:
        self.permissions = permissions
        super().__init__(f"Invalid permissions format: {permissions!r}")

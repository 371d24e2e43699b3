from ftpsession.config import load_settings, setup_logging
from ftpsession.errors import (
    AuthenticationError,
    ConfigurationError,
    FtpConnectionError,
    FtpError,
    InvalidPermissionsError,
    ProtocolError,
)
from ftpsession.ftp_directory import Directory
from ftpsession.ftp_file import File
from ftpsession.ftp_permissions import format_permissions, parse_permissions
from ftpsession.ftp_session import Session
from ftpsession.models import SessionSettings, TransferMode

__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "Directory",
    "File",
    "FtpConnectionError",
    "FtpError",
    "InvalidPermissionsError",
    "ProtocolError",
    "Session",
    "SessionSettings",
    "TransferMode",
    "format_permissions",
    "load_settings",
    "parse_permissions",
    "setup_logging",
]

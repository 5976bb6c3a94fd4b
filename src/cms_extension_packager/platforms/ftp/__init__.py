"""FTP platform.

Provides the ``ftp`` backend for installations hosted on a remote
server. Uses the standard library's ``ftplib``, so the platform is
always available.

Usage:
    >>> from cms_extension_packager import BackendRegistry
    >>> backend = BackendRegistry.create_backend(
    ...     'ftp', host='ftp.example.com', login='user', password='secret'
    ... )
"""

from .backend import FtpBackend
from .listing import entry_from_mlsd, parse_list_line

# Auto-register with the registry
from ...registry import BackendRegistry


def _create_ftp_backend(
    host: str,
    login: str,
    password: str,
    use_tls: bool = False,
    port: int = 21,
    timeout: float = 20,
    passive: bool = True,
    **kwargs,
) -> FtpBackend:
    """Factory function for creating connected FTP backends.

    Args:
        host: Server host name
        login: User name
        password: Password
        use_tls: Use explicit FTPS
        port: Control connection port
        timeout: Socket timeout in seconds
        passive: Use passive mode
        **kwargs: Additional arguments (currently unused)

    Returns:
        Connected FtpBackend

    Raises:
        BackendConnectionError: If the connection fails
    """
    backend = FtpBackend()
    backend.connect(host, login, password, use_tls, port, timeout, passive)
    return backend


# Auto-register with registry when module is imported
BackendRegistry.register_factory("ftp", _create_ftp_backend)

__all__ = [
    "FtpBackend",
    "entry_from_mlsd",
    "parse_list_line",
]

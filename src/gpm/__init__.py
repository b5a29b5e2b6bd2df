from ._version import __version__
from .client import GitHostClient, GpmError, GpmHTTPError, PackageRef, parse_package_ref
from .manager import InstallOptions, InstallResult, PackageManager
from .versions import VersionResolver, compare_versions

__all__ = [
    "__version__",
    "GitHostClient",
    "GpmError",
    "GpmHTTPError",
    "InstallOptions",
    "InstallResult",
    "PackageManager",
    "PackageRef",
    "VersionResolver",
    "compare_versions",
    "parse_package_ref",
]

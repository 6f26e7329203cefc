"""Go package metadata resolution."""

from gorerun.packages.resolver import GoPackageResolver, Package, PackageResolver

__all__ = [
    "GoPackageResolver",
    "Package",
    "PackageResolver",
]

"""
Architecture names as apk understands them.

Hosts and container platforms spell architectures differently
("amd64", "arm64", "armv7l", "i686"); repositories and system keyrings
are laid out by the apk spelling ("x86_64", "aarch64", "armv7", "x86").
"""

from __future__ import annotations

import platform

_APK_ARCHES = {
    "386": "x86",
    "i386": "x86",
    "i486": "x86",
    "i586": "x86",
    "i686": "x86",
    "amd64": "x86_64",
    "x86_64": "x86_64",
    "arm64": "aarch64",
    "aarch64": "aarch64",
    "arm/v6": "armhf",
    "armv6l": "armhf",
    "arm/v7": "armv7",
    "armv7l": "armv7",
    "armv8l": "armv7",
}


def arch_to_apk(arch: str) -> str:
    """Translate a platform or machine architecture name to its apk name.

    Unknown names (ppc64le, s390x, riscv64, ...) are already spelled the
    same way by apk and pass through lowercased.

    >>> arch_to_apk("amd64")
    'x86_64'
    >>> arch_to_apk("armv7l")
    'armv7'
    """
    key = arch.strip().lower()
    return _APK_ARCHES.get(key, key)


def host_arch() -> str:
    """apk architecture of the running host."""
    return arch_to_apk(platform.machine())

"""Mount point descriptor."""

from __future__ import annotations


class MountPoint:
    """A named mount point and whether it is mounted."""

    __slots__ = ("mounted", "mount_name")

    def __init__(self, name: str) -> None:
        self.mounted = False
        self.mount_name = name

    def __repr__(self) -> str:
        quoted = self.mount_name.replace("\\", "\\\\").replace('"', '\\"')
        return f'Ext4MountPoint {{ mount_name: "{quoted}" }}'
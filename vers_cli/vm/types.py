"""Shared data types for VM resolution."""

from dataclasses import dataclass


@dataclass
class HeadInfo:
    """Contents of ``.vers/HEAD``."""

    id: str
    alias: str = ""

    @property
    def display_name(self) -> str:
        return self.alias or self.id


@dataclass
class ConnectTarget:
    """Everything needed to build an SSH client for one VM."""

    vm_id: str
    host: str
    key_path: str
    used_head: bool = False

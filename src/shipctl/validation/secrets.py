"""Required secret presence across the local secret file and the managed store."""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from shipctl.core.exceptions import CommandError, PlatformError
from shipctl.core.process import COMMAND_NOT_FOUND

if TYPE_CHECKING:
    from shipctl.clients.platform import PlatformClient

LOCAL_SOURCE = "local secret file"
MANAGED_SOURCE = "managed secret store"

EMPTY_VALUES = ("", '""', "''")


class SecretState(str, Enum):
    CONFIGURED = "configured"
    EMPTY = "empty"
    MISSING = "missing"


@dataclass
class LocalSecrets:
    file_exists: bool
    # name -> is_empty, for names defined in the file
    values: dict[str, bool] = field(default_factory=dict)

    def present(self, name: str) -> bool:
        return name in self.values and not self.values[name]

    def empty(self, name: str) -> bool:
        return self.values.get(name, False)


@dataclass
class ManagedSecrets:
    available: bool
    found: set[str] = field(default_factory=set)
    reason: str | None = None


@dataclass
class SecretStatus:
    name: str
    state: SecretState
    sources: list[str] = field(default_factory=list)


@dataclass
class SecretReport:
    """Combined view of both sources."""

    statuses: list[SecretStatus]
    local: LocalSecrets
    managed: ManagedSecrets

    def with_state(self, state: SecretState) -> list[SecretStatus]:
        return [s for s in self.statuses if s.state == state]


def read_local_secrets(path: Path, names: list[str]) -> LocalSecrets:
    """Which names are defined in a KEY=value file, and whether they are empty."""
    if not path.exists():
        return LocalSecrets(file_exists=False)
    content = path.read_text(errors="replace")
    values: dict[str, bool] = {}
    for name in names:
        match = re.search(rf"^{re.escape(name)}=(.*)$", content, re.MULTILINE)
        if match:
            values[name] = match.group(1).strip() in EMPTY_VALUES
    return LocalSecrets(file_exists=True, values=values)


async def read_managed_secrets(platform: "PlatformClient", names: list[str]) -> ManagedSecrets:
    """Probe the managed store secret by secret.

    A PlatformError means the secret is absent or unreadable, unless the
    CLI itself is missing. That case and any other command failure
    (timeout) mean the store is unavailable.
    """
    found: set[str] = set()
    for name in names:
        try:
            value = await platform.access_secret(name)
        except CommandError as e:
            if isinstance(e, PlatformError) and e.returncode != COMMAND_NOT_FOUND:
                continue
            return ManagedSecrets(available=False, reason=f"Managed secret store not accessible: {e.message}")
        if value:
            found.add(name)
    return ManagedSecrets(available=True, found=found)


def combine(names: list[str], local: LocalSecrets, managed: ManagedSecrets) -> SecretReport:
    statuses = []
    for name in names:
        sources = []
        if local.present(name):
            sources.append(LOCAL_SOURCE)
        if name in managed.found:
            sources.append(MANAGED_SOURCE)

        if sources:
            state = SecretState.CONFIGURED
        elif local.empty(name):
            state = SecretState.EMPTY
        else:
            state = SecretState.MISSING
        statuses.append(SecretStatus(name, state, sources))
    return SecretReport(statuses=statuses, local=local, managed=managed)

"""
Capability (plugin) identity and display helpers

A capability id is derived from (name, version) and used as the join key
between activation requests, registered plugin lists and availability
reports. Escaping rules:
- leading/trailing whitespace is stripped from both parts
- every run of characters that is not a (Unicode) letter or digit becomes one '_'
- leading/trailing '_' produced by the substitution are dropped
- name and version are joined with '&'

So ("Lane Keep", "1.2"), (" Lane  Keep ", "1.2") and ("Lane-Keep", "1_2")
all map to "Lane_Keep&1_2".
"""
import re
from dataclasses import dataclass
from typing import Iterable, List


_SEPARATOR_RUN = re.compile(r'[\W_]+')
ID_JOINER = '&'


def _escape(part: str) -> str:
    return _SEPARATOR_RUN.sub('_', part.strip()).strip('_')


def capability_id(name: str, version: str) -> str:
    """Derive the stable capability id for a plugin name and version"""
    return f"{_escape(name)}{ID_JOINER}{_escape(version)}"


def abbreviate(name: str) -> str:
    """First letter of every word, e.g. 'Lane Keep Assist' -> 'LKA'"""
    return ''.join(word[0] for word in re.findall(r'\w+', name.strip()))


@dataclass
class Capability:
    """A registered plugin as seen by the console"""
    name: str
    version: str
    is_activated: bool = False
    is_required: bool = False
    is_available: bool = False

    @property
    def id(self) -> str:
        return capability_id(self.name, self.version)

    @property
    def title(self) -> str:
        return f"{self.name} {self.version}"

    @property
    def display_name(self) -> str:
        abbreviation = abbreviate(self.name)
        if abbreviation:
            return f"{self.title} ({abbreviation})"
        return self.title


def count_activated(capabilities: Iterable[Capability]) -> int:
    return sum(1 for capability in capabilities if capability.is_activated)


def activated_ids(capabilities: Iterable[Capability]) -> List[str]:
    return [capability.id for capability in capabilities if capability.is_activated]

"""
Session State for the Guidance Console

Typed accessors over a key-value session store. The store survives a console
restart within one operator session and is only cleared by explicit removal,
so a mid-workflow reconnect rebuilds its state from these flags.

Stored keys:
- isGuidanceActive: operator toggled automation on (bus confirmed)
- isGuidanceEngaged: vehicle confirmed the ENGAGED state
- isSystemAlert: latest terminal system alert classification was READY
- selectedRouteName: name of the route chosen this session
- startDateTime: first engagement time (seconds since epoch)
"""
import os
import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional

import yaml


NO_ROUTE_SELECTED = 'No Route Selected'

KEY_GUIDANCE_ACTIVE = 'isGuidanceActive'
KEY_GUIDANCE_ENGAGED = 'isGuidanceEngaged'
KEY_SYSTEM_ALERT = 'isSystemAlert'
KEY_SELECTED_ROUTE = 'selectedRouteName'
KEY_START_DATE_TIME = 'startDateTime'


class SessionStore(ABC):
    """String key-value store with session lifetime"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str):
        pass

    @abstractmethod
    def remove(self, key: str):
        pass


class InMemorySessionStore(SessionStore):
    """Session store that lives as long as the process"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str):
        self._items[key] = str(value)

    def remove(self, key: str):
        self._items.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._items)


class YamlFileSessionStore(SessionStore):
    """
    Session store persisted to a YAML file.

    Every write rewrites the whole file so a restarted console process sees
    the latest value of every flag (last write wins).
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._items: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, 'r') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Session file {self.path} does not contain a mapping")
        return {str(k): str(v) for k, v in data.items()}

    def _save(self):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, 'w') as f:
            yaml.safe_dump(self._items, f, default_flow_style=False)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set(self, key: str, value: str):
        with self._lock:
            self._items[key] = str(value)
            self._save()

    def remove(self, key: str):
        with self._lock:
            if self._items.pop(key, None) is not None:
                self._save()


def _parse_bool(raw: Optional[str]) -> bool:
    # Anything other than an explicit 'true' reads as false
    if raw is None or raw in ('', 'undefined'):
        return False
    return raw.strip().lower() == 'true'


def _format_bool(value: bool) -> str:
    return 'true' if value else 'false'


class SessionFlags:
    """
    Typed view over the session store.

    Every read goes to the store; nothing is cached, so callbacks arriving in
    any order always see the latest written value.
    Invariant: guidance_engaged implies guidance_active.
    """

    def __init__(self, store: SessionStore, clock=time.time):
        self.store = store
        self._clock = clock

    # === Guidance ===

    @property
    def guidance_active(self) -> bool:
        return _parse_bool(self.store.get(KEY_GUIDANCE_ACTIVE))

    @guidance_active.setter
    def guidance_active(self, value: bool):
        self.store.set(KEY_GUIDANCE_ACTIVE, _format_bool(value))
        if not value:
            self.store.set(KEY_GUIDANCE_ENGAGED, _format_bool(False))

    @property
    def guidance_engaged(self) -> bool:
        return _parse_bool(self.store.get(KEY_GUIDANCE_ENGAGED)) and self.guidance_active

    @guidance_engaged.setter
    def guidance_engaged(self, value: bool):
        if value and not self.guidance_active:
            self.store.set(KEY_GUIDANCE_ACTIVE, _format_bool(True))
        self.store.set(KEY_GUIDANCE_ENGAGED, _format_bool(value))

    def remove_guidance(self):
        self.store.remove(KEY_GUIDANCE_ACTIVE)
        self.store.remove(KEY_GUIDANCE_ENGAGED)

    # === System alert ===

    @property
    def system_alert_ready(self) -> bool:
        return _parse_bool(self.store.get(KEY_SYSTEM_ALERT))

    @system_alert_ready.setter
    def system_alert_ready(self, value: bool):
        self.store.set(KEY_SYSTEM_ALERT, _format_bool(value))

    def remove_system_alert(self):
        self.store.remove(KEY_SYSTEM_ALERT)

    # === Route ===

    @property
    def selected_route_name(self) -> str:
        name = self.store.get(KEY_SELECTED_ROUTE)
        if name is None or name in ('', 'undefined'):
            return NO_ROUTE_SELECTED
        return name

    @selected_route_name.setter
    def selected_route_name(self, value: str):
        self.store.set(KEY_SELECTED_ROUTE, value)

    @property
    def has_selected_route(self) -> bool:
        return self.selected_route_name != NO_ROUTE_SELECTED

    def remove_route(self):
        self.store.remove(KEY_SELECTED_ROUTE)

    # === Engagement timer ===

    @property
    def engaged_start_time(self) -> Optional[float]:
        raw = self.store.get(KEY_START_DATE_TIME)
        if raw is None or raw in ('', 'undefined'):
            return None
        try:
            return float(raw)
        except ValueError:
            return None

    def start_engaged_timer(self) -> float:
        """Record the first engagement time; later calls keep the original value"""
        start = self.engaged_start_time
        if start is None:
            start = self._clock()
            self.store.set(KEY_START_DATE_TIME, repr(start))
        return start

    def engaged_elapsed(self) -> float:
        start = self.engaged_start_time
        if start is None:
            return 0.0
        return max(0.0, self._clock() - start)

    def remove_engaged_timer(self):
        self.store.remove(KEY_START_DATE_TIME)

    def remove_all(self):
        self.remove_guidance()
        self.remove_system_alert()
        self.remove_route()
        self.remove_engaged_timer()


def format_elapsed(seconds: float) -> str:
    """Format elapsed seconds as '00h 00m 00s'"""
    total = int(max(0, seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}h {minutes:02d}m {secs:02d}s"

"Directory of the qualifying instances"

import asyncio

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Instance:
    url: str
    host: str
    software: str
    registration_mode: str
    description: Optional[str] = None
    icon: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        instance_dict: Dict[str, Any] = {"url": self.url, "host": self.host}
        if self.description is not None:
            instance_dict["description"] = self.description
        if self.icon is not None:
            instance_dict["icon"] = self.icon
        instance_dict["software"] = self.software
        instance_dict["registrationMode"] = self.registration_mode
        return instance_dict


class ResultStore:
    """Instances accepted during the crawl, keyed by host."""

    def __init__(self):
        self._instances: Dict[str, Instance] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, instance: Instance):
        async with self._lock:
            self._instances[instance.host] = instance

    def snapshot(self) -> List[Instance]:
        """Returns the stored instances sorted by host."""
        return sorted(self._instances.values(), key=lambda instance: instance.host)

    def __len__(self) -> int:
        return len(self._instances)

    def __contains__(self, host: str) -> bool:
        return host in self._instances

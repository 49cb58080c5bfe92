"Per-software inspection of an instance"

import enum
import logging

from typing import List, Optional

from .common import RequestError, instance_host, is_supported_software
from .dates import RECENCY_DAYS, is_recent
from .frontier import Frontier
from .schemas import (
    FederatedInstances,
    LemmySiteV3,
    NodeInfo,
    PeerLink,
    PieFedSiteAlpha,
)
from .store import Instance, ResultStore

MIN_ACTIVE_USERS = 20


class DispatchOutcome(enum.Enum):
    QUALIFIED = "qualified"
    NOT_QUALIFIED = "not qualified"
    UNSUPPORTED_SOFTWARE = "unsupported software"
    UNSUPPORTED_VERSION = "unsupported version"


def major_version(version: str) -> Optional[int]:
    try:
        return int(version.strip().split(".")[0])
    except ValueError:
        return None


def is_qualified(
    users_active_month: Optional[int],
    private_instance: Optional[bool],
    min_active_users: int = MIN_ACTIVE_USERS,
) -> bool:
    """An instance enters the directory if it is public and active enough."""
    if users_active_month is None or private_instance is None:
        return False
    return users_active_month >= min_active_users and not private_instance


class Dispatcher:
    """Inspects one instance according to the software it runs.

    The node info decides the endpoints to query. The peer list feeds the
    frontier and the site information decides whether the instance is stored.
    Request errors are left to the caller.
    """

    def __init__(
        self,
        client,
        frontier: Frontier,
        store: ResultStore,
        min_active_users: int = MIN_ACTIVE_USERS,
        recency_days: int = RECENCY_DAYS,
        logger: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.frontier = frontier
        self.store = store
        self.min_active_users = min_active_users
        self.recency_days = recency_days
        self.logger = logger or logging.getLogger(__name__)

    async def inspect_instance(self, address: str) -> DispatchOutcome:
        node_info = await self.client.get(address + "/nodeinfo/2.1", NodeInfo)
        software = node_info.software.name.strip().lower()
        version = node_info.software.version

        if software == "lemmy":
            if major_version(version) == 1:
                # Lemmy 1.x serves a new API which is not crawled yet
                self.logger.debug(
                    "Instance %s runs lemmy %s: not supported", address, version
                )
                return DispatchOutcome.UNSUPPORTED_VERSION
            return await self._inspect_lemmy_v3(address, "lemmy")

        if software == "piefed":
            return await self._inspect_piefed(address)

        self.logger.debug("Instance %s runs %s: ignored", address, software)
        return DispatchOutcome.UNSUPPORTED_SOFTWARE

    async def explore(self, peers: Optional[List[PeerLink]]) -> int:
        """Queues the supported peers seen in the last days."""
        nb_new = 0
        for peer in peers or []:
            if not is_supported_software(peer.software):
                continue
            if not is_recent(peer.last_seen, self.recency_days):
                continue
            if await self.frontier.try_enqueue(peer.domain):
                nb_new += 1
        return nb_new

    async def _inspect_lemmy_v3(
        self, address: str, software: str
    ) -> DispatchOutcome:
        federated = await self.client.get(
            address + "/api/v3/federated_instances", FederatedInstances
        )
        return await self._inspect_v3_site(address, software, federated)

    async def _inspect_v3_site(
        self, address: str, software: str, federated: FederatedInstances
    ) -> DispatchOutcome:
        nb_new = await self.explore(federated.federated_instances.linked)
        self.logger.debug("Instance %s: %d new peers", address, nb_new)

        site = await self.client.get(address + "/api/v3/site", LemmySiteV3)
        site_view = site.site_view
        if not is_qualified(
            site_view.counts.users_active_month,
            site_view.local_site.private_instance,
            self.min_active_users,
        ):
            return DispatchOutcome.NOT_QUALIFIED

        await self.store.upsert(
            Instance(
                url=address,
                host=instance_host(address),
                software=software,
                registration_mode=site_view.local_site.registration_mode,
                description=site_view.site.description,
                icon=site_view.site.icon,
            )
        )
        return DispatchOutcome.QUALIFIED

    async def _inspect_piefed(self, address: str) -> DispatchOutcome:
        # PieFed deployments either mirror the Lemmy API or serve their own
        try:
            federated = await self.client.get(
                address + "/api/v3/federated_instances", FederatedInstances
            )
        except RequestError as err:
            if err.TRANSIENT:
                raise
            self.logger.debug(
                "Instance %s has no Lemmy-compatible API (%s)", address, str(err)
            )
        else:
            return await self._inspect_v3_site(address, "piefed", federated)

        federated = await self.client.get(
            address + "/api/v1/federated_instances", FederatedInstances
        )
        nb_new = await self.explore(federated.federated_instances.linked)
        self.logger.debug("Instance %s: %d new peers", address, nb_new)

        site = await self.client.get(address + "/api/alpha/site", PieFedSiteAlpha)
        # No activity nor privacy information in this API
        self.logger.debug(
            "Instance %s (registration: %s) cannot be qualified",
            address,
            site.site.registration_mode,
        )
        return DispatchOutcome.NOT_QUALIFIED

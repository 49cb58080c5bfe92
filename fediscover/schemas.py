"""Expected shapes of the instance API responses.

Only the fields used by the crawler are declared, any other field sent by the
instance is ignored.
"""

from typing import List, Optional

from pydantic import BaseModel


class Software(BaseModel):
    name: str
    version: str


class NodeInfo(BaseModel):
    software: Software


class PeerLink(BaseModel):
    domain: str
    software: Optional[str] = None
    published: Optional[str] = None
    updated: Optional[str] = None

    @property
    def last_seen(self) -> Optional[str]:
        return self.updated or self.published


class LinkedInstances(BaseModel):
    linked: Optional[List[PeerLink]] = None  # null on some older versions


class FederatedInstances(BaseModel):
    federated_instances: LinkedInstances


# Lemmy (and PieFed when it mirrors the Lemmy API): /api/v3/site
class SiteInfo(BaseModel):
    description: Optional[str] = None
    icon: Optional[str] = None


class LocalSite(BaseModel):
    registration_mode: str
    private_instance: bool


class SiteCounts(BaseModel):
    users_active_month: int


class SiteView(BaseModel):
    site: SiteInfo
    local_site: LocalSite
    counts: SiteCounts


class LemmySiteV3(BaseModel):
    site_view: SiteView


# PieFed: /api/alpha/site
class PieFedSite(BaseModel):
    description: Optional[str] = None
    icon: Optional[str] = None
    registration_mode: str


class PieFedSiteAlpha(BaseModel):
    site: PieFedSite

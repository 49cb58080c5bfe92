from importlib.metadata import PackageNotFoundError, version

from .client import ProtocolClient
from .common import (
    CrawlerException,
    HTTPStatusError,
    NetworkError,
    RequestError,
    RequestTimeout,
    SchemaValidationError,
    TaskTimeout,
    normalize_instance,
)
from .crawler import CrawlState, ThreadiverseCrawler, launch_crawl
from .dispatcher import DispatchOutcome, Dispatcher, is_qualified
from .frontier import Frontier
from .snapshot import SnapshotWriter
from .store import Instance, ResultStore

try:
    __version__ = version("fediscover")
except PackageNotFoundError:  # Running from a source checkout
    __version__ = "0.0.0"
__license__ = "GPLv3"

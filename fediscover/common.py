"Shared crawler primitives: exceptions, address handling and seeding"

import json
import logging
import re

from typing import List, Optional
from urllib.parse import urlsplit

import aiohttp
import colorlog
import requests

from aiohttp_retry import ExponentialRetry, RetryClient

SUPPORTED_SOFTWARE = ("lemmy", "piefed")
OBSERVER_API = "https://api.fediverse.observer"
USER_AGENT = "fediscover, the threadiverse instance crawler"
SCHEME_REGEX = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


class CrawlerException(Exception):
    """Base exception class for the crawlers"""

    def __init__(self, err):
        super().__init__(err)
        self.msg = err

    def __str__(self):
        return self.msg


class RequestError(CrawlerException):
    """A request to an instance API did not produce usable data."""

    TRANSIENT = False

    def __init__(self, url: str, cause: str):
        super().__init__(f"{cause} ({url})")
        self.url = url
        self.cause = cause


class NetworkError(RequestError):
    TRANSIENT = True


class RequestTimeout(RequestError):
    TRANSIENT = True


class HTTPStatusError(RequestError):
    def __init__(self, url: str, status: int):
        super().__init__(url, f"Error code {status}")
        self.status = status


class SchemaValidationError(RequestError):
    pass


class TaskTimeout(CrawlerException):
    """The inspection of an instance exceeded its time budget."""

    def __init__(self, address: str, timeout: float):
        super().__init__(f"Inspection of {address} timed out after {timeout}s")
        self.address = address
        self.timeout = timeout


def normalize_instance(instance: str) -> str:
    """Canonical form of an instance address.

    A bare domain gets the https scheme, scheme and host are lower-cased and
    trailing slashes are removed. Applying it twice gives the same result.
    """
    instance = instance.strip()
    if not SCHEME_REGEX.match(instance):
        instance = "https://" + instance
    try:
        parts = urlsplit(instance)
    except ValueError:
        return instance  # Best effort: keep what we were given
    return (
        parts.scheme.lower() + "://" + parts.netloc.lower() + parts.path.rstrip("/")
    )


def instance_host(address: str) -> str:
    return urlsplit(address).netloc


def is_supported_software(software: Optional[str]) -> bool:
    if not software:
        return False
    return software.strip().lower() in SUPPORTED_SOFTWARE


def setup_logger(name: str, logfile: Optional[str] = None, verbose: bool = False):
    logger = colorlog.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for old_handler in logger.handlers:
        old_handler.close()
    logger.handlers = []  # Reset handlers
    handler = colorlog.StreamHandler()
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s[%(asctime)s %(levelname)s]%(reset)s %(white)s%(message)s",
            datefmt="%H:%M:%S",
            reset=True,
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red",
            },
        )
    )
    handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.addHandler(handler)
    if logfile is not None:
        fhandler = logging.FileHandler(logfile, encoding="utf-8")
        fhandler.setFormatter(
            logging.Formatter("[%(asctime)s %(levelname)s] %(message)s")
        )
        fhandler.setLevel(logging.DEBUG)
        logger.addHandler(fhandler)
    return logger


async def fetch_fediverse_instance_list(software: str) -> List[str]:
    """Lists the domains of the instances known by fediverse.observer."""
    # GraphQL query
    body = '''{nodes(softwarename:"''' + software + """" status: "UP"){domain}}"""

    retry_options = ExponentialRetry(attempts=3, statuses={429})
    try:
        async with RetryClient(
            retry_options=retry_options, headers={"User-Agent": USER_AGENT}
        ) as session:
            async with session.post(
                OBSERVER_API, json={"query": body}, timeout=aiohttp.ClientTimeout(300)
            ) as resp:
                data = json.loads(await resp.read())
    except json.decoder.JSONDecodeError:  # Sometimes, Cloudflare blocks aiohttp
        resp = requests.post(
            OBSERVER_API,
            json={"query": body},
            headers={"User-Agent": USER_AGENT},
            timeout=300,
        )
        data = resp.json()
    return [instance["domain"] for instance in data["data"]["nodes"]]

"""REST client for the cloud control plane - sessions, version negotiation and VM entities."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlsplit

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import VcdConfig
from .errors import (
    InvalidMachineHandle,
    MalformedDocument,
    NegotiationFailed,
    SessionNotFound,
    TransportError,
)
from .models import DiskSpecDocument, StorageProfileRef
from .vm_document import (
    VDC_MEDIA_TYPE,
    VM_MEDIA_TYPE,
    Link,
    TaskInfo,
    parse_links,
    parse_supported_versions,
    parse_task,
    parse_vdc_storage_profiles,
    parse_vm_document,
    render_vm_document,
    root_media_tag,
)

logger = logging.getLogger(__name__)

_VM_ID_RE = re.compile(r"^(?:urn:vcloud:vm:|vm-)(?P<uuid>[0-9a-fA-F-]{36})$")
_MAX_UP_LINKS = 4


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SessionToken:
    token: str
    token_type: str = "bearer"      # bearer | vcloud

    def headers(self) -> dict[str, str]:
        if self.token_type == "vcloud":
            return {"x-vcloud-authorization": self.token}
        return {"Authorization": f"Bearer {self.token}"}


class SessionProvider(Protocol):
    def resolve(self, host: str) -> SessionToken:
        """Return the token of the connected session for *host* or raise SessionNotFound."""
        ...


class StaticSessionProvider:
    """Sessions established elsewhere, keyed by endpoint host."""

    def __init__(self, sessions: dict[str, SessionToken] | None = None):
        self._sessions = {host.lower(): tok for host, tok in (sessions or {}).items()}

    @classmethod
    def from_config(cls, cfg: VcdConfig) -> StaticSessionProvider:
        if not cfg.host or not cfg.auth_token:
            return cls()
        return cls({cfg.host: SessionToken(cfg.auth_token, cfg.token_type)})

    def add(self, host: str, token: SessionToken) -> None:
        self._sessions[host.lower()] = token

    def resolve(self, host: str) -> SessionToken:
        try:
            return self._sessions[host.lower()]
        except KeyError:
            raise SessionNotFound(host) from None


# ---------------------------------------------------------------------------
# Machine handles
# ---------------------------------------------------------------------------

def resolve_machine_href(handle: str, default_host: str = "") -> str:
    """Expand a VM id (``vm-<uuid>`` / ``urn:vcloud:vm:<uuid>``) into its href."""
    handle = handle.strip()
    if handle.startswith(("https://", "http://")):
        return handle.rstrip("/")
    match = _VM_ID_RE.match(handle)
    if not match:
        raise InvalidMachineHandle(f"Not a VM href or id: {handle!r}")
    if not default_host:
        raise InvalidMachineHandle(f"VM id {handle!r} given but no host configured (set VCD_HOST)")
    return f"https://{default_host}/api/vApp/vm-{match.group('uuid')}"


def endpoint_host(href: str) -> str:
    host = urlsplit(href).hostname
    if not host:
        raise InvalidMachineHandle(f"No host in {href!r}")
    return host


def base_url(href: str) -> str:
    parts = urlsplit(href)
    return f"{parts.scheme}://{parts.netloc}"


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

def build_http_session(verify: bool = True) -> requests.Session:
    """Session with no automatic retries; a failed request is fatal to the call."""
    adapter = HTTPAdapter(max_retries=Retry(total=0, raise_on_status=False))
    session = requests.Session()
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.verify = verify
    if not verify:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    return session


def _send(session: requests.Session, method: str, url: str, *, timeout: float, **kwargs) -> bytes:
    logger.debug("%s %s", method, url)
    try:
        resp = session.request(method, url, timeout=timeout, **kwargs)
        resp.raise_for_status()
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        raise TransportError(f"{method} {url} failed: HTTP {status}", status_code=status) from e
    except requests.RequestException as e:
        raise TransportError(f"{method} {url} failed: {e}") from e
    return resp.content


def _version_key(version: str) -> tuple[int, ...]:
    try:
        return tuple(int(p) for p in version.split("."))
    except ValueError:
        return ()


def negotiate_protocol_version(session: requests.Session, base: str, timeout: float = 30.0) -> str:
    """Highest non-deprecated API version advertised by *base*."""
    try:
        raw = _send(session, "GET", f"{base}/api/versions", timeout=timeout)
        versions = parse_supported_versions(raw)
    except (TransportError, MalformedDocument) as e:
        raise NegotiationFailed(f"Could not read supported API versions from {base}: {e}") from e
    supported = [v for v, deprecated in versions if not deprecated and _version_key(v)]
    if not supported:
        raise NegotiationFailed(f"{base} advertises no usable (non-deprecated) API version")
    best = max(supported, key=_version_key)
    logger.debug("Negotiated API version %s with %s", best, base)
    return best


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class VcdClient:
    """Authenticated accessor for one endpoint at one API version."""

    def __init__(
        self,
        token: SessionToken,
        api_version: str,
        *,
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ):
        self.token = token
        self.api_version = api_version
        self.timeout = timeout
        self.session = session or build_http_session()

    def _headers(self, content_type: str | None = None) -> dict[str, str]:
        headers = {"Accept": f"application/*+xml;version={self.api_version}"}
        headers.update(self.token.headers())
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def get(self, url: str) -> bytes:
        return _send(self.session, "GET", url, timeout=self.timeout, headers=self._headers())

    def post(self, url: str, body: bytes, content_type: str) -> bytes:
        return _send(
            self.session, "POST", url,
            timeout=self.timeout, headers=self._headers(content_type), data=body,
        )

    # -- VM entity ----------------------------------------------------------

    def fetch_vm_document(self, vm_href: str) -> DiskSpecDocument:
        return parse_vm_document(self.get(vm_href))

    def list_storage_profiles(self, doc: DiskSpecDocument) -> list[StorageProfileRef]:
        """Storage profiles of the VDC the VM lives in (VM -> vApp -> VDC)."""
        raw = doc.raw_xml
        for _ in range(_MAX_UP_LINKS):
            up = _first_up_link(parse_links(raw))
            if up is None:
                break
            raw = self.get(up.href)
            if up.type == VDC_MEDIA_TYPE or root_media_tag(raw) == "Vdc":
                profiles = parse_vdc_storage_profiles(raw)
                logger.debug("VDC %s offers %d storage profile(s)", up.href, len(profiles))
                return profiles
        logger.warning("Could not locate the VDC of VM %s; no storage profiles listed", doc.machine.name)
        return []

    def submit_reconfigure(self, doc: DiskSpecDocument) -> TaskInfo:
        body = render_vm_document(doc)
        raw = self.post(f"{doc.machine.href}/action/reconfigureVm", body, VM_MEDIA_TYPE)
        return parse_task(raw)

    def get_task(self, task_href: str) -> TaskInfo:
        return parse_task(self.get(task_href))


def _first_up_link(links: list[Link]) -> Link | None:
    for link in links:
        if link.rel == "up":
            return link
    return None


def connect(
    machine_href: str,
    sessions: SessionProvider,
    *,
    skip_cert_check: bool = False,
    api_version: str = "",
    timeout: float = 30.0,
) -> VcdClient:
    """Resolve the session for *machine_href*'s endpoint and build a client for it."""
    token = sessions.resolve(endpoint_host(machine_href))
    http = build_http_session(verify=not skip_cert_check)
    version = api_version or negotiate_protocol_version(http, base_url(machine_href), timeout)
    return VcdClient(token, version, session=http, timeout=timeout)

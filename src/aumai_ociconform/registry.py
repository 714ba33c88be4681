"""Registry transport for aumai-ociconform.

``RegistryTransport`` is the narrow interface the scenario engine consumes.
``RegistryClient`` implements it over the OCI distribution HTTP API with just
the calls the scenarios need: monolithic blob upload, manifest PUT and
manifest GET by digest.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urljoin

import requests
import structlog

from .digest import sha256_bytes
from .errors import ManifestRejectedError, TransportError
from .mediatypes import MANIFEST_ACCEPT
from .models import Descriptor, ManifestLike

__all__ = [
    "Reference",
    "RegistryClient",
    "RegistryTransport",
]

logger = structlog.get_logger(__name__)

_REFERENCE_RE = re.compile(
    r"^(?P<host>[^/]+)/(?P<repository>[a-z0-9][a-z0-9._/-]*?)(?::(?P<tag>[A-Za-z0-9_][A-Za-z0-9._-]{0,127}))?$"
)
_CHALLENGE_PARAM_RE = re.compile(r'(\w+)="([^"]*)"')

# Status codes on a manifest PUT that are a transport fault, not a verdict
_TRANSPORT_STATUSES = frozenset({401, 403, 407, 429})


@dataclass(frozen=True)
class Reference:
    """``host[:port]/repository:tag``."""

    host: str
    repository: str
    tag: str = "latest"

    @classmethod
    def parse(cls, value: str) -> Reference:
        match = _REFERENCE_RE.match(value)
        if match is None:
            raise ValueError(f"Invalid registry reference: {value!r}")
        return cls(
            host=match["host"],
            repository=match["repository"],
            tag=match["tag"] or "latest",
        )

    def __str__(self) -> str:
        return f"{self.host}/{self.repository}:{self.tag}"


@runtime_checkable
class RegistryTransport(Protocol):
    """Operations the conformance engine needs from a registry."""

    def put_blob(self, ref: Reference, content: bytes) -> Descriptor:
        """Upload *content* as a blob and return its descriptor."""
        ...

    def put_manifest(self, ref: Reference, obj: ManifestLike) -> Descriptor:
        """
        Push a manifest or index under ``ref.tag``.

        Raises ``ManifestRejectedError`` when the registry refuses the
        payload and ``TransportError`` for any other failure.
        """
        ...

    def get_manifest(self, ref: Reference, digest: str) -> bytes:
        """Fetch a manifest or index by digest."""
        ...


class RegistryClient:
    """
    ``RegistryTransport`` over the OCI distribution API.

    Authentication follows the usual registry handshake: HTTP Basic when
    credentials are configured, and a Bearer token fetched from the realm
    advertised in a ``WWW-Authenticate`` challenge.
    """

    def __init__(
        self,
        user: str = "",
        password: str = "",
        tls: bool = True,
        timeout: float = 30.0,
        debug: bool = False,
        session: requests.Session | None = None,
    ) -> None:
        self.scheme = "https" if tls else "http"
        self.timeout = timeout
        self.debug = debug
        self._auth = (user, password) if user else None
        self._session = session or requests.Session()
        self._token: str | None = None

    @classmethod
    def from_settings(cls, settings: Any) -> RegistryClient:
        return cls(
            user=settings.user,
            password=settings.password,
            tls=settings.tls,
            timeout=settings.timeout,
            debug=settings.debug,
        )

    # ------------------------------------------------------------------
    # RegistryTransport
    # ------------------------------------------------------------------

    def put_blob(self, ref: Reference, content: bytes) -> Descriptor:
        digest = sha256_bytes(content)
        start = self._request(
            "POST", self._url(ref, "blobs/uploads/"), headers={"Content-Length": "0"}
        )
        if start.status_code != 202:
            raise self._error(start, f"blob upload to {ref} could not be started")

        location = start.headers.get("Location")
        if not location:
            raise TransportError(
                "registry did not return an upload location", start.status_code
            )
        upload_url = urljoin(self._base(ref), location)
        separator = "&" if "?" in upload_url else "?"
        finish = self._request(
            "PUT",
            f"{upload_url}{separator}digest={digest}",
            data=content,
            headers={"Content-Type": "application/octet-stream"},
        )
        if finish.status_code != 201:
            raise self._error(finish, f"blob upload of {digest} failed")

        return Descriptor(
            media_type="application/octet-stream", digest=digest, size=len(content)
        )

    def put_manifest(self, ref: Reference, obj: ManifestLike) -> Descriptor:
        payload = obj.to_payload()
        media_type = obj.implied_media_type
        response = self._request(
            "PUT",
            self._url(ref, f"manifests/{ref.tag}"),
            data=payload,
            headers={"Content-Type": media_type},
        )
        if response.status_code != 201:
            if 400 <= response.status_code < 500 and (
                response.status_code not in _TRANSPORT_STATUSES
            ):
                raise self._error(
                    response, f"manifest rejected by {ref.host}", ManifestRejectedError
                )
            raise self._error(response, f"manifest push to {ref} failed")

        digest = response.headers.get("Docker-Content-Digest") or sha256_bytes(payload)
        return Descriptor(media_type=media_type, digest=digest, size=len(payload))

    def get_manifest(self, ref: Reference, digest: str) -> bytes:
        response = self._request(
            "GET",
            self._url(ref, f"manifests/{digest}"),
            headers={"Accept": MANIFEST_ACCEPT},
        )
        if response.status_code != 200:
            raise self._error(response, f"manifest {digest} could not be fetched")
        return response.content

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _base(self, ref: Reference) -> str:
        return f"{self.scheme}://{ref.host}"

    def _url(self, ref: Reference, path: str) -> str:
        return f"{self._base(ref)}/v2/{ref.repository}/{path}"

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """Send one request, answering at most one auth challenge."""
        headers = dict(kwargs.pop("headers", {}))
        response = self._send(method, url, headers, **kwargs)
        if response.status_code == 401 and self._answer_challenge(response):
            response = self._send(method, url, headers, **kwargs)
        return response

    def _send(
        self, method: str, url: str, headers: dict[str, str], **kwargs: Any
    ) -> requests.Response:
        headers = dict(headers)
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
            auth = None
        else:
            auth = self._auth
        if self.debug:
            logger.debug("http.request", method=method, url=url, headers=headers)
        try:
            response = self._session.request(
                method, url, headers=headers, auth=auth, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        if self.debug:
            logger.debug(
                "http.response",
                status=response.status_code,
                headers=dict(response.headers),
                body=response.text[:2048],
            )
        return response

    def _answer_challenge(self, response: requests.Response) -> bool:
        """Fetch a Bearer token for a ``WWW-Authenticate`` challenge."""
        challenge = response.headers.get("WWW-Authenticate", "")
        if not challenge.lower().startswith("bearer"):
            return False
        params = dict(_CHALLENGE_PARAM_RE.findall(challenge))
        realm = params.pop("realm", None)
        if not realm:
            return False
        try:
            token_response = self._session.get(
                realm, params=params, auth=self._auth, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise TransportError(f"token request to {realm} failed: {exc}") from exc
        if token_response.status_code != 200:
            raise self._error(token_response, f"token request to {realm} was refused")
        try:
            body = token_response.json()
        except ValueError as exc:
            raise TransportError(
                f"token response from {realm} is not JSON: {exc}",
                token_response.status_code,
            ) from exc
        if not isinstance(body, dict):
            raise TransportError(
                f"token response from {realm} is not a JSON object",
                token_response.status_code,
            )
        self._token = body.get("token") or body.get("access_token")
        logger.debug("registry.token_acquired", realm=realm, scope=params.get("scope"))
        return bool(self._token)

    @staticmethod
    def _error(
        response: requests.Response,
        summary: str,
        error_cls: type[TransportError] | type[ManifestRejectedError] = TransportError,
    ) -> TransportError | ManifestRejectedError:
        """Build an error carrying the registry's ``errors[]`` entries."""
        try:
            body = response.json()
        except ValueError:
            body = None
        errors = list(body.get("errors") or []) if isinstance(body, dict) else []
        if errors:
            detail = "; ".join(
                f"{e.get('code', 'UNKNOWN')}: {e.get('message', '')}"
                + (f" ({e['detail']})" if e.get("detail") else "")
                for e in errors
            )
        else:
            detail = response.text.strip() or response.reason or ""
        return error_cls(
            f"{summary}: HTTP {response.status_code}: {detail}",
            status_code=response.status_code,
            errors=errors,
        )

# redirect_service/links.py

import logging
import re
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests
from pydantic import BaseModel

from redirect_service.config import Settings
from redirect_service.errors import TargetUrlError

# ===================================================================
# ===                     LINK RECORD SCHEMA                      ===
# ===================================================================

UTM_PARAMS = ("utm_source", "utm_medium", "utm_campaign", "utm_content")
LINK_COLUMNS = "target_url,parameter_pass_through," + ",".join(UTM_PARAMS) + ",status"

class LinkRecord(BaseModel):
    # Left untyped so a bad value reaches build_target_url and is reported there
    target_url: Any = None
    parameter_pass_through: bool | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    utm_content: str | None = None
    # Older tables have no status column. Only a literal false marks a link
    # inactive, so the value is kept exactly as the datastore sent it.
    status: Any = None

# ===================================================================
# ===                   REQUEST PARSING HELPERS                   ===
# ===================================================================

SLUG_PATTERN = re.compile(r"[a-z0-9-]{3,30}", re.IGNORECASE | re.ASCII)

def extract_slug(path: str) -> str | None:
    """
    Turns a request path like "/abc123" into the slug "abc123".
    Returns None for anything that cannot be a short link: the site root,
    index.html, the api/ namespace, or a value outside 3-30 of [a-z0-9-].
    """
    candidate = path[1:] if path.startswith("/") else path
    candidate = re.split(r"[?#]", candidate, maxsplit=1)[0]

    if not candidate or candidate == "index.html" or candidate.startswith("api/"):
        return None
    if not SLUG_PATTERN.fullmatch(candidate):
        return None
    return candidate.lower()

def normalize_domain(hostname: str) -> str:
    # Stored domains never carry the www. prefix, everything else must match exactly.
    if hostname.startswith("www."):
        return hostname[len("www."):]
    return hostname

# ===================================================================
# ===                      DATASTORE LOOKUP                       ===
# ===================================================================

def fetch_link(slug: str, domain: str, settings: Settings) -> LinkRecord | None:
    """
    Queries the Supabase REST API for the active link registered for this
    slug on this domain. Every failure (HTTP error, network error, bad JSON)
    is logged and reported as None, exactly like a link that does not exist.
    """
    api_url = f"{settings.supabase_url.rstrip('/')}/rest/v1/links"
    params = {
        "slug": f"eq.{slug}",
        "domain": f"eq.{domain}",
        "select": LINK_COLUMNS,
    }
    headers = {
        "apikey": settings.supabase_key,
        "Authorization": f"Bearer {settings.supabase_key}",
        "Content-Type": "application/json",
        "Prefer": "return=representation",
    }
    try:
        response = requests.get(api_url, params=params, headers=headers, timeout=settings.datastore_timeout)

        if not response.ok:
            logging.error(
                f"Datastore query failed for slug={slug} domain={domain}: "
                f"{response.status_code} {response.text}"
            )
            return None

        rows = response.json()
        if not isinstance(rows, list) or not rows:
            logging.warning(f"No link registered for slug={slug} domain={domain}")
            return None

        link = LinkRecord.model_validate(rows[0])
    except Exception as e:
        # A datastore outage must look like a missing link to the visitor,
        # so nothing is raised past this point.
        logging.error(f"Could not query datastore for slug={slug} domain={domain}: {e}")
        return None

    if link.status is False:
        logging.warning(f"Link slug={slug} domain={domain} is inactive")
        return None
    return link

# ===================================================================
# ===                      TARGET URL BUILDER                     ===
# ===================================================================

# Schemes whose URLs always have a host and at least "/" as their path.
HIERARCHICAL_SCHEMES = {"http", "https", "ws", "wss", "ftp"}

def _set_query_param(params: list[tuple[str, str]], key: str, value: str):
    """Replaces the first occurrence of key in place and drops the rest, or appends it."""
    positions = [i for i, (name, _) in enumerate(params) if name == key]
    if not positions:
        params.append((key, value))
        return
    params[positions[0]] = (key, value)
    for i in reversed(positions[1:]):
        del params[i]

def _parse_target_url(target_url: Any):
    if not isinstance(target_url, str) or not target_url.strip():
        raise TargetUrlError(f"target_url must be a non-empty string, got {target_url!r}")
    try:
        parts = urlsplit(target_url.strip())
        parts.port  # raises ValueError on a malformed port
    except ValueError as e:
        raise TargetUrlError(f"Could not parse target_url {target_url!r}: {e}") from e

    if not parts.scheme:
        raise TargetUrlError(f"target_url {target_url!r} is not an absolute URL")
    if parts.scheme in HIERARCHICAL_SCHEMES and not parts.hostname:
        raise TargetUrlError(f"target_url {target_url!r} has no host")
    return parts

def build_target_url(target_url: Any, link: LinkRecord, request_url: str) -> str:
    """
    Builds the final redirect destination.

    UTM values configured on the link are always applied. When the link allows
    parameter pass-through, every query parameter of the incoming request is
    copied as well, except the four UTM keys, which stay as configured.
    """
    parts = _parse_target_url(target_url)
    params = parse_qsl(parts.query, keep_blank_values=True)
    changed = False

    for name in UTM_PARAMS:
        value = getattr(link, name)
        if value:
            _set_query_param(params, name, value)
            changed = True

    if link.parameter_pass_through:
        incoming = parse_qsl(urlsplit(request_url).query, keep_blank_values=True)
        for key, value in incoming:
            if key in UTM_PARAMS:
                continue
            _set_query_param(params, key, value)
            changed = True

    path = parts.path
    if not path and parts.scheme in HIERARCHICAL_SCHEMES:
        path = "/"
    query = urlencode(params) if changed else parts.query
    return urlunsplit((parts.scheme, parts.netloc, path, query, parts.fragment))

# redirect_service/main.py

import logging

from fastapi import Depends, FastAPI, Request, status
from starlette.responses import PlainTextResponse, RedirectResponse

from redirect_service.config import LOG_LEVEL, Settings
from redirect_service.errors import ConfigurationError, LinkNotFound, RedirectError
from redirect_service.links import build_target_url, extract_slug, fetch_link, normalize_domain

# ===================================================================
# ===               CONFIGURATION & APPLICATION                   ===
# ===================================================================

# Standard setup
logging.basicConfig(level=LOG_LEVEL)
app = FastAPI(title="Redirect Service")

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE"]

def get_settings() -> Settings:
    """Environment is read per request so a fixed deployment recovers without a restart."""
    try:
        return Settings.from_env()
    except ValueError as e:
        logging.error(f"Invalid service configuration: {e}")
        raise ConfigurationError() from e

def require_settings(settings: Settings = Depends(get_settings)) -> Settings:
    if not settings.is_configured:
        logging.error("Missing Supabase configuration (SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY)")
        raise ConfigurationError()
    return settings

@app.exception_handler(RedirectError)
async def redirect_error_handler(request: Request, exc: RedirectError):
    return PlainTextResponse(exc.message, status_code=exc.status_code)

# ===================================================================
# ===                    HELPER FUNCTIONS                         ===
# ===================================================================

def raw_request_path(request: Request) -> str:
    # scope["path"] is already percent-decoded; slugs are matched on the path as sent.
    raw_path = request.scope.get("raw_path")
    if raw_path:
        return raw_path.decode("latin-1")
    return request.url.path

def resolve_redirect(request: Request, settings: Settings) -> RedirectResponse:
    """
    Runs the whole lookup for one request: slug from the path, domain from
    the host, link from Supabase, then the final URL with UTM parameters.
    """
    slug = extract_slug(raw_request_path(request))
    if not slug:
        raise LinkNotFound()

    domain = normalize_domain(request.url.hostname or "")
    logging.info(f"Looking up link: slug={slug}, domain={domain}")

    link = fetch_link(slug, domain, settings)
    if link is None:
        raise LinkNotFound()

    try:
        final_url = build_target_url(link.target_url, link, str(request.url))
    except RedirectError as e:
        logging.error(f"Cannot redirect slug={slug} domain={domain}: {e}")
        raise

    logging.info(f"Redirecting to: {final_url}")
    return RedirectResponse(url=final_url, status_code=status.HTTP_301_MOVED_PERMANENTLY)

# ===================================================================
# ===                     API ENDPOINTS                           ===
# ===================================================================

@app.get("/api/health", status_code=status.HTTP_200_OK)
def health_check(settings: Settings = Depends(get_settings)):
    """Simple health check for the load balancer; api/ paths are never slugs."""
    return {"status": "ok", "datastore_configured": settings.is_configured}

@app.api_route("/{full_path:path}", methods=ALL_METHODS)
def perform_redirect(request: Request, settings: Settings = Depends(require_settings)):
    """
    This is the core endpoint. Every path that is not claimed above lands here
    and either redirects to the link's destination or answers 404.
    """
    try:
        return resolve_redirect(request, settings)
    except RedirectError:
        raise
    except Exception:
        logging.exception(f"Unexpected error while handling {request.url.path}")
        return PlainTextResponse("Internal server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

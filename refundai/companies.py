"""Company lookup: popular companies, autocomplete search and logos.

Search and logo requests are proxied to Clearbit so the client never
talks to it directly. Both calls are single-shot with a short timeout.
"""

import re
from dataclasses import dataclass

import httpx

from refundai.utils.config import CompaniesConfig
from refundai.utils.logger import get_logger

logger = get_logger(__name__)

_DOMAIN = re.compile(
    r"^(?:https?://)?(?:www\.)?[a-z0-9-]+(?:\.[a-z0-9-]+)*\.[a-z]{2,}(?:/.*)?$",
    re.IGNORECASE,
)
_BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


@dataclass(frozen=True)
class Company:
    """A company the form offers as a one-click choice."""

    name: str
    domain: str


POPULAR_COMPANIES: tuple[Company, ...] = (
    Company("Amazon", "amazon.com"),
    Company("Apple", "apple.com"),
    Company("Netflix", "netflix.com"),
    Company("Spotify", "spotify.com"),
    Company("Uber", "uber.com"),
    Company("Airbnb", "airbnb.com"),
    Company("Booking.com", "booking.com"),
    Company("Zalando", "zalando.com"),
    Company("eBay", "ebay.com"),
    Company("AliExpress", "aliexpress.com"),
)


class UpstreamTimeoutError(RuntimeError):
    """Raised when the upstream lookup service does not answer in time."""


class UpstreamError(RuntimeError):
    """Raised when the upstream lookup service responds with an error."""


class LogoNotFoundError(LookupError):
    """Raised when no logo exists for a domain."""


def normalize_domain(value: str | None, default: str = "example.com") -> str:
    """Reduce a URL or domain to a bare lower-case host name.

    ``"https://www.Amazon.com/gp/help"`` becomes ``"www.amazon.com"``.
    """
    domain = (value or "").strip().lower()
    domain = re.sub(r"^https?://", "", domain)
    domain = re.sub(r"/.*$", "", domain)
    return domain or default


def looks_like_domain(value: str) -> bool:
    """Tell whether a company value is a website domain rather than a name."""
    return bool(_DOMAIN.match(value.strip())) and " " not in value.strip()


def find_popular_company(name: str) -> Company | None:
    """Find a popular company by name or domain, case-insensitively."""
    key = name.strip().lower()
    for company in POPULAR_COMPANIES:
        if key in (company.name.lower(), company.domain):
            return company
    return None


def resolve_company(company: str, other_company: str | None = None) -> tuple[str, str]:
    """Resolve the form's company choice to ``(domain, display_name)``.

    Args:
        company: Selected company name, or ``"other"``.
        other_company: Domain typed by the user when ``company`` is ``"other"``.

    Returns:
        Normalized domain and the name to address the email to.
    """
    if company == "other":
        domain = normalize_domain(other_company)
        host = domain.removeprefix("www.")
        display = host.split(".")[0].capitalize() if host else "The Company"
        return domain, display

    popular = find_popular_company(company)
    if popular is not None:
        return popular.domain, popular.name
    if looks_like_domain(company):
        domain = normalize_domain(company)
        return domain, domain.removeprefix("www.").split(".")[0].capitalize()

    slug = re.sub(r"[^a-z0-9]", "", company.lower())
    return f"{slug or 'example'}.com", company.strip() or "The Company"


def validate_query(query: object, config: CompaniesConfig) -> str:
    """Validate and trim a company search query.

    Raises:
        ValueError: If the query is missing or outside the allowed length.
    """
    if not isinstance(query, str) or not query.strip():
        raise ValueError("Query parameter is required.")
    trimmed = query.strip()
    if not config.min_query_length <= len(trimmed) <= config.max_query_length:
        raise ValueError(
            f"Query must be between {config.min_query_length} and "
            f"{config.max_query_length} characters."
        )
    return trimmed


def search_companies(
    query: str, config: CompaniesConfig, client: httpx.Client | None = None
) -> list[dict[str, str]]:
    """Search companies by name through the autocomplete service.

    Args:
        query: Partial company name.
        config: Company lookup configuration.
        client: HTTP client to use; a short-lived one is created otherwise.

    Returns:
        Suggestions as ``{"name", "domain", "logo"}`` dictionaries.

    Raises:
        ValueError: If the query is invalid.
        UpstreamTimeoutError: If the service times out.
        UpstreamError: If the service responds with an error status.
    """
    trimmed = validate_query(query, config)
    http = client or httpx.Client(timeout=config.timeout)
    try:
        response = http.get(config.suggest_url, params={"query": trimmed})
    except httpx.TimeoutException as exc:
        raise UpstreamTimeoutError(
            "Upstream error: The request to Clearbit timed out."
        ) from exc
    finally:
        if client is None:
            http.close()

    if response.is_error:
        raise UpstreamError(
            f"Upstream Clearbit API responded with status: {response.status_code}"
        )

    try:
        suggestions = response.json() or []
    except ValueError as exc:
        raise UpstreamError("Upstream Clearbit API returned invalid JSON.") from exc
    logger.info("Company search %r returned %d results", trimmed, len(suggestions))
    return [
        {
            "name": str(item.get("name", "")),
            "domain": str(item.get("domain", "")),
            "logo": str(item.get("logo") or ""),
        }
        for item in suggestions
        if isinstance(item, dict)
    ]


def fetch_logo(
    domain: str, config: CompaniesConfig, client: httpx.Client | None = None
) -> tuple[bytes, str]:
    """Fetch a company logo by domain.

    Returns:
        Tuple of (image bytes, content type).

    Raises:
        ValueError: If no domain is given.
        LogoNotFoundError: If the logo service has no image for the domain.
    """
    if not domain or not domain.strip():
        raise ValueError("Domain parameter is required.")

    url = f"{config.logo_url.rstrip('/')}/{normalize_domain(domain)}"
    http = client or httpx.Client(timeout=config.timeout, follow_redirects=True)
    try:
        response = http.get(url, headers={"User-Agent": _BROWSER_UA})
    finally:
        if client is None:
            http.close()

    if response.is_error:
        raise LogoNotFoundError("Logo not found")
    content_type = response.headers.get("content-type") or "image/png"
    return response.content, content_type

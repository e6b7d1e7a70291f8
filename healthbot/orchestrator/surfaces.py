"""Surface catalog construction from configuration."""

from typing import List

from ..config import Settings
from ..models.surfaces import Surface


def build_surface_catalog(settings: Settings) -> List[Surface]:
    """Build the probe catalog: pages, APIs, storage tables, then security headers."""
    surfaces: List[Surface] = []

    for page in settings.pages:
        surfaces.append(Surface(name=f"page:{page}", kind='page', target=page))

    for endpoint in settings.api_endpoints:
        surfaces.append(Surface(
            name=f"api:{endpoint.method.upper()} {endpoint.path}",
            kind='api',
            target=endpoint.path,
            method=endpoint.method.upper(),
            expected_statuses=tuple(endpoint.expected),
        ))

    for table in settings.required_tables:
        surfaces.append(Surface(name=f"table:{table}", kind='storage_table', target=table))

    if settings.security_headers:
        surfaces.append(Surface(
            name="security-headers",
            kind='security_headers',
            target='/',
            method='HEAD',
            required_headers=tuple(h.lower() for h in settings.security_headers),
        ))

    return surfaces

from fastapi import Request

from app.services.diagnostics import DiagnosticsReporter
from app.services.proxy import ProxyService


def get_proxy_service(request: Request) -> ProxyService:
    """Dependency returning the ProxyService built at startup."""
    return request.app.state.proxy_service


def get_diagnostics(request: Request) -> DiagnosticsReporter:
    """Dependency returning the DiagnosticsReporter built at startup."""
    return request.app.state.diagnostics

"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from fastapi import Header, Request

from workers.monitor.orchestrator import ScanDeps


def get_scan_deps(request: Request) -> ScanDeps:
    """Collaborators built once in the app lifespan."""
    return request.app.state.deps


def get_tenant(x_tenant_id: str | None = Header(default=None)) -> str | None:
    """Tenant from ``X-Tenant-Id``; absent means single-tenant mode."""
    return x_tenant_id or None

# api/routers/__init__.py
from api.routers.router_proteins import router_proteins
from api.routers.router_domains import router_domains
from api.routers.router_filters import router_filters
from api.routers.router_batches import router_batches
from api.routers.router_audit import router_audit
from api.routers.router_curation import router_curation
from api.routers.router_dashboard import router_dashboard
from api.routers.router_pdb import router_pdb
from api.routers.router_metadata import router_metadata

__all__ = [
    "router_proteins",
    "router_domains",
    "router_filters",
    "router_batches",
    "router_audit",
    "router_curation",
    "router_dashboard",
    "router_pdb",
    "router_metadata",
]

from docrelay_api.api.routes.contact import build_contact_router
from docrelay_api.api.routes.documents import build_documents_router

__all__ = [
    "build_contact_router",
    "build_documents_router",
]

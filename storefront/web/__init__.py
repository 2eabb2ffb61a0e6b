"""
HTTP surface — FastAPI routes over the storefront operations.

    app = create_app(settings)                        # production wiring
    app = create_app(settings, session_factory, fake) # tests

Every response uses one envelope; see ``_responses``.
"""

from storefront.web._app import SIGNATURE_HEADER, Services, create_app
from storefront.web._responses import STATUS_BY_CODE, failure, from_error, success

__all__ = (
    "create_app",
    "Services",
    "SIGNATURE_HEADER",
    "STATUS_BY_CODE",
    "success",
    "failure",
    "from_error",
)

from __future__ import annotations

import logging

from fastapi import FastAPI

from marketplace.api.dependencies import authorizer
from marketplace.api.health import router as health_router
from marketplace.api.metrics_endpoint import router as metrics_router
from marketplace.api.orders import router as orders_router
from marketplace.api.products import router as products_router
from marketplace.api.shops import router as shops_router
from marketplace.core.config import SETTINGS
from marketplace.core.logging import setup_logging
from marketplace.middleware.metrics import MetricsMiddleware
from marketplace.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="marketplace-authz",
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Last added runs first: RequestContext -> Metrics -> route handler.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(products_router)
app.include_router(orders_router)
app.include_router(shops_router)

logger.info(
    "marketplace-authz started  env=%s log_level=%s port=%d matrix=%s roles=%d",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.permission_matrix_path or "built-in",
    len(authorizer.matrix.roles),
)

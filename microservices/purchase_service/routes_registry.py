"""
Purchase Service Routes Registry

Service metadata and the public route table, reported at startup and by
the detailed health check.
"""

SERVICE_METADATA = {
    "service_name": "purchase",
    "version": "1.0.0",
    "tags": ["purchase", "subscription", "payment", "microservice"],
    "capabilities": [
        "subscription_purchase",
        "transaction_ledger",
        "payment_notification",
    ]
}

ROUTES = [
    # Health endpoints
    {"path": "/health", "methods": ["GET"], "description": "Health check"},
    {"path": "/health/detailed", "methods": ["GET"], "description": "Detailed health check"},

    # Purchase
    {"path": "/api/v1/purchases/subscription", "methods": ["POST"], "description": "Purchase subscription plan"},
    {"path": "/api/v1/purchases/notify", "methods": ["POST"], "description": "Payment provider notification"},

    # Transactions
    {"path": "/api/v1/purchases/transactions", "methods": ["GET"], "description": "List caller transactions"},
    {"path": "/api/v1/purchases/transactions/{order_reference}", "methods": ["GET"], "description": "Get transaction"},
    {"path": "/api/v1/purchases/transactions/{order_reference}/status", "methods": ["POST"], "description": "Update transaction status (internal)"},
]


def get_route_summary():
    """Route metadata for service info"""
    return {
        "route_count": str(len(ROUTES)),
        "routes": ",".join(r["path"] for r in ROUTES),
        "api_version": "v1",
        "base_path": "/api/v1/purchases",
    }


__all__ = ["SERVICE_METADATA", "ROUTES", "get_route_summary"]

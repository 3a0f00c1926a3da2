from fastapi import APIRouter

from quotadesk.api.v1.endpoints import analytics, products, purchase_orders, quotas, shipments, storage

api_router = APIRouter()

api_router.include_router(products.router, prefix="/products", tags=["Catalog"])
api_router.include_router(shipments.router, prefix="/shipments", tags=["Shipments"])
api_router.include_router(quotas.router, prefix="/quotas", tags=["Quotas"])
api_router.include_router(purchase_orders.router, prefix="/purchase-orders", tags=["Purchase Orders"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])
api_router.include_router(storage.router, prefix="/storage", tags=["Storage"])

from fastapi import APIRouter
from app.api.v1.endpoints.inventory import stock_adjustments, stocks, transfers
from app.api.v1.endpoints.purchase import purchases

api_router = APIRouter()

# Inventory routes
api_router.include_router(stocks.router, prefix="/inventory/stock", tags=["Inventory"])
api_router.include_router(transfers.router, prefix="/inventory/transfer", tags=["Inventory"])
api_router.include_router(stock_adjustments.router, prefix="/inventory/stock-adjustment", tags=["Inventory"])

# Purchase routes
api_router.include_router(purchases.router, prefix="/purchase", tags=["Purchase"])

from app.models.organization.business import Business
from app.models.organization.branch import Branch
from app.models.inventory.product import Product
from app.models.inventory.stock import Stock, StockSnapshot
from app.models.inventory.stock_movement import StockMovement
from app.models.inventory.stock_batch import StockBatch
from app.models.inventory.stock_adjustment import StockAdjustment
from app.models.inventory.stock_transfer import StockTransfer
from app.models.inventory.stock_transfer_item import StockTransferItem
from app.models.purchase.purchase import Purchase
from app.models.purchase.purchase_item import PurchaseItem
from app.models.shared.references import MovementReference

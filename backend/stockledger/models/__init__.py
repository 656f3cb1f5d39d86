from .tenancy import Vendor, Location
from .inventory import Product, ProductVariant, Inventory, StockMovement
from .sessions import PosSession

__all__ = [
    'Vendor', 'Location',
    'Product', 'ProductVariant', 'Inventory', 'StockMovement',
    'PosSession',
]

from .catalog import Product, StockMovement
from .orders import Order, OrderItem
from .returns import Return, ReturnItem
from .credits import DiscountCode

__all__ = [
    'Product', 'StockMovement',
    'Order', 'OrderItem',
    'Return', 'ReturnItem',
    'DiscountCode',
]

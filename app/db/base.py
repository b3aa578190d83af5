from app.db.base_class import Base


# IMPORT ALL MODELS HERE (THIS REGISTERS THEM WITH Base.metadata)
from app.models.user import User
from app.models.product import Product, ProductVariant
from app.models.coupon import Coupon
from app.models.coupon_usage import CouponUsage
from app.models.order import Order, OrderItem
from app.models.order_status_history import OrderStatusHistory
from app.models.payment import Payment

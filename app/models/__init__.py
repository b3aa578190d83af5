from app.models.user import User, UserRole
from app.models.product import Product, ProductVariant
from app.models.order import Order, OrderItem, OrderStatus
from app.models.payment import Payment, PaymentStatus, PaymentMethod
from app.models.coupon import Coupon, DiscountType
from app.models.coupon_usage import CouponUsage
from app.models.order_status_history import OrderStatusHistory

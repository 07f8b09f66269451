from app.models.restaurant import Restaurant
from app.models.balance import BalanceTransaction, RestaurantBalance, TransactionType
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.restaurant_table import RestaurantTable
from app.models.menu_category import MenuCategory
from app.models.menu_item import MenuItem
from app.models.order import Order, OrderStatus
from app.models.order_item import OrderItem
from app.models.admin_user import AdminRole, AdminUser
from app.models.admin_audit_log import AdminAuditLog

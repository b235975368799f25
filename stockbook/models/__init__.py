from stockbook.models.user import User
from stockbook.models.business import Business
from stockbook.models.business_membership import BusinessMembership
from stockbook.models.audit_log import AuditLog
from stockbook.models.product import Product, UnitOfMeasure
from stockbook.models.stock_movement import StockMovement, StockMovementType

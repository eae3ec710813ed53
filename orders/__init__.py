"""
Orders domain package.

Public API:
- Domain models: Order, OrderStatus, PriorityClass, OrderKind
- Processing: process_order, validate_order, estimate_delivery_minutes, ProcessingReport

"""
from .models import Order, OrderStatus, PriorityClass, OrderKind, DEFAULT_PRIORITY
from .processing import process_order, validate_order, estimate_delivery_minutes, ProcessingReport

__all__ = ["Order",
           "OrderStatus",
             "PriorityClass",
               "OrderKind",
               "DEFAULT_PRIORITY",
               "process_order",
               "validate_order",
               "estimate_delivery_minutes",
               "ProcessingReport",
               ]

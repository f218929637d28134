from .categories import Category
from .inventory import Item, InboundRecord, OutboundRecord
from .approvals import ApprovalRequest
from .operation_log import OperationLog

__all__ = [
    'Category',
    'Item', 'InboundRecord', 'OutboundRecord',
    'ApprovalRequest',
    'OperationLog',
]

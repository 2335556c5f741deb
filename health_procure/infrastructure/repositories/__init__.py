from .base import BaseRepository
from .procurement_request_repository import ProcurementRequestRepository, new_request_id, row_to_request

__all__ = [
    "BaseRepository",
    "ProcurementRequestRepository",
    "new_request_id",
    "row_to_request",
]

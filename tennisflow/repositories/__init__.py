# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .user_repository import UserRepository
from .points_repository import PointsRepository, InsertOutcome, InsertResult
from .inventory_repository import InventoryRepository
from .order_repository import OrderRepository
from .rental_repository import RentalRepository
from .stringing_repository import StringingRepository
from .board_repository import BoardRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "PointsRepository",
    "InsertOutcome",
    "InsertResult",
    "InventoryRepository",
    "OrderRepository",
    "RentalRepository",
    "StringingRepository",
    "BoardRepository",
]

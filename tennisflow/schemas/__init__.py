from .common import BaseResponse
from .user import User
from .points import PointsSummaryResponse, PointTransactionPage
from .order import OrderResponse
from .rental import RentalResponse
from .board import BoardPostResponse

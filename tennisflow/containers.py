from dependency_injector import containers, providers

from tennisflow.config import Settings
from tennisflow.services.board_service import BoardService
from tennisflow.services.order_service import OrderService
from tennisflow.services.point_service import PointService
from tennisflow.services.rental_service import RentalService


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies.

    DB 세션은 요청마다 달라야 하므로 호출 시점에 db=... 로 넘긴다 (deps.py).
    """

    config = providers.DependenciesContainer()

    point_service = providers.Factory(PointService, settings=config.config)
    order_service = providers.Factory(OrderService, settings=config.config)
    rental_service = providers.Factory(RentalService, settings=config.config)
    board_service = providers.Factory(BoardService)


class Container(containers.DeclarativeContainer):
    """Application container."""

    config = providers.Container(ConfigModule)
    services = providers.Container(ServiceModule, config=config)

"""Service container for constructor injection.

Services are registered as factories keyed by their interface and
created lazily on first resolve, once per container.
"""

from typing import Any, Callable, TypeVar

from ..repositories import (
    ConfigRepository,
    FileRepository,
    IConfigRepository,
    IFileRepository,
)
from ..services import (
    FreezeService,
    IFreezeService,
    IManifestService,
    IReaderService,
    IRenderService,
    ISiteService,
    ManifestService,
    ReaderService,
    RenderService,
    SiteService,
    TocService,
)

T = TypeVar("T")


class ServiceContainer:
    """A minimal dependency injection container."""

    def __init__(self) -> None:
        self._factories: dict[Any, Callable[["ServiceContainer"], Any]] = {}
        self._instances: dict[Any, Any] = {}

    def register(self, key: Any, factory: Callable[["ServiceContainer"], Any]) -> None:
        """Register a factory that builds the service from the container."""
        self._factories[key] = factory
        self._instances.pop(key, None)

    def register_instance(self, key: Any, instance: Any) -> None:
        """Register an already constructed service."""
        self._instances[key] = instance

    def resolve(self, key: type[T]) -> T:
        """Get the service registered under ``key``.

        Raises:
            KeyError: If nothing is registered for the key.
        """
        if key not in self._instances:
            if key not in self._factories:
                raise KeyError(f"No service registered for {key!r}")
            self._instances[key] = self._factories[key](self)
        return self._instances[key]


def configure_services() -> ServiceContainer:
    """Create a container with the default service wiring."""
    container = ServiceContainer()

    container.register(IFileRepository, lambda c: FileRepository())
    container.register(
        IConfigRepository, lambda c: ConfigRepository(c.resolve(IFileRepository))
    )
    container.register(
        IManifestService,
        lambda c: ManifestService(
            c.resolve(IFileRepository), c.resolve(IConfigRepository)
        ),
    )
    container.register(IReaderService, lambda c: ReaderService(c.resolve(IFileRepository)))
    container.register(IRenderService, lambda c: RenderService())
    container.register(TocService, lambda c: TocService())
    container.register(
        IFreezeService,
        lambda c: FreezeService(
            c.resolve(IFileRepository), c.resolve(IConfigRepository)
        ),
    )
    container.register(
        ISiteService,
        lambda c: SiteService(
            c.resolve(IFileRepository),
            c.resolve(IReaderService),
            c.resolve(IRenderService),
            c.resolve(TocService),
            c.resolve(IFreezeService),
        ),
    )

    return container

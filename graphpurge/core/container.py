from graphpurge.core.settings import get_settings
from graphpurge.infra.graph.memory_store import InMemoryGraphStore
from graphpurge.infra.graph.redis_store import RedisGraphStore
from graphpurge.services.orchestrator import DestructionOrchestrator


class Container:
    def __init__(self):
        self.settings = get_settings()
        if self.settings.GRAPH_REDIS_URL:
            try:
                self.graph_store = RedisGraphStore(
                    self.settings.GRAPH_REDIS_URL, prefix=self.settings.GRAPH_REDIS_PREFIX
                )
                self.storage_backend = "redis"
            except Exception as err:
                if getattr(self.settings, "REQUIRE_REDIS", False):
                    raise RuntimeError("Redis required but unavailable") from err
                self.graph_store = InMemoryGraphStore()
                self.storage_backend = "memory-fallback"
        else:
            if getattr(self.settings, "REQUIRE_REDIS", False):
                raise RuntimeError("Redis required but GRAPH_REDIS_URL not set")
            self.graph_store = InMemoryGraphStore()
            self.storage_backend = "memory"

        # One orchestrator (and therefore one run guard) per process
        self.orchestrator = DestructionOrchestrator.from_settings(self.graph_store, self.settings)


container = Container()
"""
Conteneur d'injection de dépendances et configuration application.

Instancie les composants centraux (settings, store graphe, orchestrateur de purge)
et expose un singleton `container` utilisé par le reste de l'application.
"""

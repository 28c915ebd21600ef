"""Adaptateur de store graphe adossé à Redis.

Disposition des clés:
- `{prefix}:node:{parent}`: hash des enfants d'un chemin (champ = clé enfant, valeur = JSON)
- `{prefix}:root`: hash des chemins de premier niveau (ex: `users`, `~<id>`)
- `{prefix}:clock`: compteur (INCR) fournissant l'horloge logique de chaque écriture
- `{prefix}:events:{parent}`: canal pub/sub relayant chaque écriture sous `parent`

Chaque valeur est stockée sous la forme `{"v": <valeur>, "s": <horloge>}`; un tombstone a
`"v": null`. Comme pour le store mémoire, un tombstone sur un ancêtre masque les enfants
d'horloge antérieure, et un enfant écrit plus tard redevient visible. Les erreurs de
connectivité Redis sont traduites en `StoreUnavailable` et ne sont jamais retentées ici.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import redis
import structlog

from graphpurge.domain.collections import split_path
from graphpurge.domain.errors import StoreUnavailable
from graphpurge.infra.graph.base import TOMBSTONE, ChildCallback, Unsubscribe, is_tombstone


@contextmanager
def _translate_errors(op: str) -> Iterator[None]:
    try:
        yield
    except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError) as exc:
        raise StoreUnavailable(f"redis {op} failed: {exc}") from exc


def _encode(value: Any, state: int) -> str:
    return json.dumps({"v": None if is_tombstone(value) else value, "s": state})


def _decode(raw: str | None) -> tuple[Any, int]:
    """Retourne `(valeur, horloge)`; un champ absent vaut `(TOMBSTONE, 0)`."""
    if raw is None:
        return TOMBSTONE, 0
    doc = json.loads(raw)
    value = doc.get("v")
    return (TOMBSTONE if value is None else value), int(doc.get("s", 0))


class RedisGraphStore:
    """Implémentation Redis de `GraphStoreClient`."""

    def __init__(
        self,
        url: str | None = None,
        prefix: str = "graph",
        client: Any | None = None,
        live_updates: bool = True,
        poll_interval_s: float = 0.05,
    ) -> None:
        """Crée un client Redis à partir de l'URL fournie, sauf si `client` est injecté."""
        if client is None:
            if not url:
                raise ValueError("RedisGraphStore requires a url or a client")
            client = redis.Redis.from_url(url, decode_responses=True)
        self.client = client
        self.prefix = prefix
        self.live_updates = live_updates
        self.poll_interval_s = poll_interval_s
        self._log = structlog.get_logger(__name__).bind(component="redis_graph_store")

    def _hash_key(self, parent: str | None) -> str:
        if parent is None:
            return f"{self.prefix}:root"
        return f"{self.prefix}:node:{parent}"

    def _channel(self, parent: str) -> str:
        return f"{self.prefix}:events:{parent}"

    def _get(self, path: str) -> tuple[Any, int]:
        parent, key = split_path(path)
        return _decode(self.client.hget(self._hash_key(parent), key))

    def _tombstone_floor(self, path: str | None) -> int:
        """Horloge du tombstone le plus récent sur `path` ou l'un de ses ancêtres (0 sinon)."""
        floor = 0
        while path is not None:
            value, state = self._get(path)
            if is_tombstone(value):
                floor = max(floor, state)
            path, _ = split_path(path)
        return floor

    def write(self, path: str, value: Any) -> None:
        """Écrit la valeur (ou un tombstone) avec l'horloge suivante et publie l'évènement."""
        parent, key = split_path(path)
        with _translate_errors("write"):
            state = int(self.client.incr(f"{self.prefix}:clock"))
            payload = _encode(value, state)
            pipe = self.client.pipeline()
            pipe.hset(self._hash_key(parent), key, payload)
            if parent is not None:
                pipe.publish(self._channel(parent), json.dumps({"key": key, "value": payload}))
            pipe.execute()

    def read(self, path: str) -> Any:
        """Valeur visible du chemin, ou None si absente, tombstonée ou masquée."""
        parent, _ = split_path(path)
        with _translate_errors("read"):
            value, state = self._get(path)
            if is_tombstone(value) or state < self._tombstone_floor(parent):
                return None
        return value

    def subscribe_children(self, path: str, callback: ChildCallback) -> Unsubscribe:
        """Rejoue les enfants connus (HSCAN) puis relaie les écritures publiées sous `path`.

        Les enfants masqués par un tombstone plus récent sur `path` ou un ancêtre ne sont pas
        rejoués.
        """
        worker = None
        pubsub = None
        if self.live_updates:

            def _on_message(message: dict[str, Any]) -> None:
                try:
                    event = json.loads(message["data"])
                    value, _ = _decode(event["value"])
                    callback(value, event["key"])
                except (KeyError, TypeError, ValueError):
                    self._log.warning("graph_event_malformed", path=path)

            with _translate_errors("subscribe"):
                pubsub = self.client.pubsub(ignore_subscribe_messages=True)
                pubsub.subscribe(**{self._channel(path): _on_message})
                worker = pubsub.run_in_thread(sleep_time=self.poll_interval_s, daemon=True)

        def _unsubscribe() -> None:
            if worker is not None:
                worker.stop()
            if pubsub is not None:
                pubsub.close()

        try:
            with _translate_errors("scan"):
                floor = self._tombstone_floor(path)
                for key, raw in self.client.hscan_iter(self._hash_key(path)):
                    value, state = _decode(raw)
                    if not is_tombstone(value) and state < floor:
                        continue
                    callback(value, key)
        except BaseException:
            _unsubscribe()
            raise
        return _unsubscribe

    def clear_store(self) -> int:
        """Supprime physiquement toutes les clés du préfixe; renvoie le nombre supprimé."""
        removed = 0
        with _translate_errors("clear"):
            for key in self.client.scan_iter(match=f"{self.prefix}:*"):
                removed += int(self.client.delete(key) or 0)
        self._log.info("graph_store_cleared", removed=removed)
        return removed

"""Racines de collections du graphe et disposition dénormalisée des entités.

Une entité logique (ex: un utilisateur) est répliquée sous plusieurs chemins du graphe.
La table `FANOUT_LAYOUT` décrit, par collection, l'ensemble complet des chemins qui la
représentent: c'est l'unique endroit qui connaît la disposition du stockage.
"""

from __future__ import annotations

from enum import Enum

PATH_SEP = "/"
PERSONAL_ROOT_PREFIX = "~"
# Clé de métadonnées émise par le store à côté des enfants réels
META_KEY = "_"


class CollectionRoot(str, Enum):
    """Chemins de premier niveau du graphe."""

    USERS = "users"
    CONVERSATIONS = "conversations"
    MESSAGES = "messages"
    FRIENDSHIPS = "friendships"
    PROFILES = "profiles"


class Phase(str, Enum):
    """Phases ordonnées d'une destruction complète."""

    USERS = "users"
    CONVERSATIONS = "conversations"
    MESSAGES = "messages"
    FRIENDSHIPS = "friendships"
    INTERNAL_STORE_CLEAR = "internal_store_clear"
    ANTI_RECOVERY_OVERWRITE = "anti_recovery_overwrite"


PHASE_ORDER: tuple[Phase, ...] = (
    Phase.USERS,
    Phase.CONVERSATIONS,
    Phase.MESSAGES,
    Phase.FRIENDSHIPS,
    Phase.INTERNAL_STORE_CLEAR,
    Phase.ANTI_RECOVERY_OVERWRITE,
)

# Roots tombstoned by a quick reset, in write order
TOP_LEVEL_ROOTS: tuple[CollectionRoot, ...] = (
    CollectionRoot.USERS,
    CollectionRoot.CONVERSATIONS,
    CollectionRoot.MESSAGES,
    CollectionRoot.FRIENDSHIPS,
    CollectionRoot.PROFILES,
)

# "{id}" is replaced with the entity identifier
FANOUT_LAYOUT: dict[CollectionRoot, tuple[str, ...]] = {
    CollectionRoot.USERS: ("users/{id}", "~{id}", "profiles/{id}"),
    CollectionRoot.CONVERSATIONS: ("conversations/{id}", "messages/{id}"),
    CollectionRoot.MESSAGES: ("messages/{id}",),
    CollectionRoot.FRIENDSHIPS: ("friendships/{id}",),
    CollectionRoot.PROFILES: ("profiles/{id}",),
}

# Collection scanned by each tombstone phase, and the label used in the ledger
SCAN_PHASES: dict[Phase, tuple[CollectionRoot, str]] = {
    Phase.USERS: (CollectionRoot.USERS, "User"),
    Phase.CONVERSATIONS: (CollectionRoot.CONVERSATIONS, "Conversation"),
    Phase.MESSAGES: (CollectionRoot.MESSAGES, "Message"),
    Phase.FRIENDSHIPS: (CollectionRoot.FRIENDSHIPS, "Friendship"),
}


def child_path(parent: str, key: str) -> str:
    """Compose le chemin d'un enfant sous `parent`."""
    return f"{parent}{PATH_SEP}{key}"


def split_path(path: str) -> tuple[str | None, str]:
    """Retourne `(parent, key)`; parent vaut None pour un chemin de premier niveau."""
    parent, sep, key = path.rpartition(PATH_SEP)
    if not sep:
        return None, path
    return parent, key


def personal_root(entity_id: str) -> str:
    """Racine personnelle (indexée par identité) d'un utilisateur."""
    return f"{PERSONAL_ROOT_PREFIX}{entity_id}"

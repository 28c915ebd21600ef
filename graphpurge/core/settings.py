"""Définition et chargement des paramètres de configuration applicative.

Objectif du module
------------------
- Centraliser les paramètres (env/.env) via Pydantic Settings
- Résoudre le fichier `.env` à utiliser selon la stratégie: ENV_FILE > .env.{APP_ENV} > .env
"""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Détermination du fichier .env à utiliser avec priorité:
# 1) ENV_FILE (chemin explicite)
# 2) .env.{APP_ENV} si présent
# 3) .env (défaut)
_cwd = Path.cwd()
_env_file_from_env = os.getenv("ENV_FILE")
if _env_file_from_env:
    _ENV_FILE_PATH = _env_file_from_env
else:
    _app_env = os.getenv("APP_ENV", "dev")
    _candidate_specific = _cwd / f".env.{_app_env}"
    _candidate_default = _cwd / ".env"
    if _candidate_specific.exists():
        _ENV_FILE_PATH = _candidate_specific
    else:
        _ENV_FILE_PATH = _candidate_default


class Settings(BaseSettings):
    """Modèle de configuration chargé depuis l'environnement et .env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
    )
    APP_NAME: str = "graphpurge"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Graph store
    GRAPH_REDIS_URL: str | None = None
    GRAPH_REDIS_PREFIX: str = "graph"
    REQUIRE_REDIS: bool = False

    # Scan settle: idle window (debounce) + absolute deadline, in seconds
    PURGE_IDLE_WINDOW_S: float = 2.0
    PURGE_DEADLINE_S: float = 30.0
    # Bounded pool for per-entity tombstone writes within a phase
    PURGE_WRITE_WORKERS: int = 8

    # Anti-recovery overwrite counts
    PURGE_FAKE_USERS: int = 5
    PURGE_FAKE_CONVERSATIONS: int = 3

    # None = unbounded ledger; an int turns it into a ring buffer
    PURGE_LEDGER_MAX_ENTRIES: int | None = None


def get_settings() -> Settings:
    """Construit et retourne la configuration de l'application."""
    return Settings()

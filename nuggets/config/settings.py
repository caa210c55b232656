"""
Configuration du serveur (Settings)
===================================

Rôle
----
- Centraliser les constantes de jeu (joueurs max, or total, piles) et les
  paramètres réseau/log du serveur.
- Les valeurs par défaut sont celles du jeu d'origine.
- Les variables peuvent être surchargées via un fichier `.env` ou l'environnement
  (préfixe `NUGGETS_`).

Intégrations
------------
- `pydantic-settings` charge automatiquement les variables d'env et `.env`.
- Les services importent `from nuggets.config.settings import settings`.
- `Game` accepte aussi une instance `Settings` explicite (tests).

Exemples de `.env`
------------------
NUGGETS_MAX_PLAYERS=10
NUGGETS_GOLD_TOTAL=500
NUGGETS_LOG_LEVEL="DEBUG"
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Longueur max du nom affiché (au-delà: tronqué)
    MAX_NAME_LENGTH: int = 50
    # Un alias par lettre majuscule
    MAX_PLAYERS: int = 26

    # Économie de l'or
    GOLD_TOTAL: int = 250
    GOLD_MIN_NUM_PILES: int = 10
    GOLD_MAX_NUM_PILES: int = 30

    # Bind réseau (UDP, port éphémère)
    BIND_HOST: str = "0.0.0.0"
    # Taille max d'un datagramme UDP
    MESSAGE_MAX_BYTES: int = 65507

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="NUGGETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Instance unique importable partout : `settings`
settings = Settings()

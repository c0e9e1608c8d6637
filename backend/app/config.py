"""
Configuration centrale de l'application via variables d'environnement.
Charger depuis un fichier .env en développement.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Persistance : fichier SQLite local par défaut (pas de serveur de BDD requis)
    DATABASE_URL: str = "sqlite:///./missionassure.db"
    STORE_BACKEND: str = "sql"  # sql, memory

    # Tâche planifiée de réconciliation des paiements
    SCHEDULER_ENABLED: bool = True
    RECONCILE_INTERVAL_MINUTES: int = 60

    # Tarifs par défaut insérés au démarrage si la table est vide
    SEED_RATES: bool = True

    # Environnement
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()

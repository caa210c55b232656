"""
Models / player.py
Rôle:
- Résumé figé d'un joueur pour le tableau de fin de partie (côté modèles Pydantic).

Champs:
- alias: lettre attribuée à l'arrivée ('A', 'B', ...).
- purse: or total ramassé.
- name: nom d'affichage (déjà assaini).
"""
from pydantic import BaseModel, Field


class PlayerSummary(BaseModel):
    """Ligne du tableau "GAME OVER" (une par joueur ayant rejoint la partie)."""
    alias: str = Field(min_length=1, max_length=1)
    purse: int = Field(default=0, ge=0)
    name: str

    def row(self) -> str:
        # alias, or aligné à droite sur 6 colonnes, trois espaces, nom
        return f"{self.alias}{self.purse:6d}   {self.name}"

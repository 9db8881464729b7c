"""
Galaxy AI Core Package

This package contains the game model the decision engine works on:
- Game state representation (card arena, players, shared pools)
- Card designs and physical cards
- Per-player state
- The rules engine interface
- Constants and enums

All core components can be imported directly from this package.
"""

# Game state
from galaxy_ai.core.game import GameState, Takeover

# Player
from galaxy_ai.core.player import PlayerState

# Cards
from galaxy_ai.core.cards import Card, CardDesign, create_cards

# Rules interface
from galaxy_ai.core.rules import RulesEngine, PowerSpec

# Constants
from galaxy_ai.core.constants import (
    Where, CardType, GoodType, Action, ChoiceKind, SearchCategory,
    Completion, Leader, Phase,
    ACT_PRESTIGE, ACT_MASK, MAX_ACTION, MAX_GOAL, MAX_PLAYERS,
    action_name,
)

__all__ = [
    # Game
    'GameState', 'Takeover',

    # Player
    'PlayerState',

    # Cards
    'Card', 'CardDesign', 'create_cards',

    # Rules
    'RulesEngine', 'PowerSpec',

    # Constants
    'Where', 'CardType', 'GoodType', 'Action', 'ChoiceKind', 'SearchCategory',
    'Completion', 'Leader', 'Phase',
    'ACT_PRESTIGE', 'ACT_MASK', 'MAX_ACTION', 'MAX_GOAL', 'MAX_PLAYERS',
    'action_name',
]

"""
Pot and payout accounting.

Pure calculations over a game's player list. The lifecycle manager owns
the writes; these helpers only compute.
"""
from decimal import Decimal
from typing import Iterable, List, Dict, Any

from models import Game, Player


def calculate_pot_total(players: Iterable[Player]) -> Decimal:
    """Sum of deposit_amount over players that have deposited."""
    return sum(
        (Decimal(p.deposit_amount) for p in players if p.has_deposited),
        Decimal(0)
    )


def all_players_deposited(players: Iterable[Player]) -> bool:
    """
    True when the game has at least one player and every one of them
    has deposited. A lone creator counts: single-player games are legal.
    """
    players = list(players)
    return bool(players) and all(p.has_deposited for p in players)


def calculate_payouts(game: Game) -> List[Dict[str, Any]]:
    """
    Settle a completed game.

    Every deposited player gets their principal back; the winner also
    takes the whole accrued yield. The result always sums to
    total_pot + current_yield.
    """
    current_yield = Decimal(game.current_yield or 0)
    payouts: List[Dict[str, Any]] = []

    for player in game.players:
        principal = Decimal(player.deposit_amount) if player.has_deposited else Decimal(0)
        yield_share = current_yield if player.player_id == game.winner_id else Decimal(0)
        payouts.append({
            "player_id": player.player_id,
            "principal": principal,
            "yield_share": yield_share,
            "total": principal + yield_share,
            "is_winner": player.player_id == game.winner_id,
        })

    return payouts

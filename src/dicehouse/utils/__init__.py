"""
Utility modules for the dice settlement engine
"""

from .lamports import (
    LAMPORTS_PER_SOL,
    SOL_PRECISION,
    format_lamports,
    format_sol,
    lamports_to_sol,
    sol_to_lamports,
    to_decimal,
)

__all__ = [
    'LAMPORTS_PER_SOL',
    'SOL_PRECISION',
    'format_lamports',
    'format_sol',
    'lamports_to_sol',
    'sol_to_lamports',
    'to_decimal',
]

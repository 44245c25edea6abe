CIVILIAN_SIDE = frozenset(('civilian', 'sheriff'))
MAFIA_SIDE = frozenset(('mafia', 'don'))

_WINNING_SIDE = {
    'civilians_win': CIVILIAN_SIDE,
    'mafia_win': MAFIA_SIDE,
}


def is_win(role, outcome) -> bool:
    """True when ``role`` is on the side that won ``outcome``.

    Draws and unfinished games (outcome ``None``) are a loss for every role.
    """
    return role in _WINNING_SIDE.get(outcome, ())

"""Higher/lower guess evaluation."""


def evaluate_guess(known_score: int, hidden_score: int, guessed_higher: bool) -> bool:  # noqa: FBT001
    """Return whether a higher/lower guess is correct.

    Equal scores always count as a correct guess, whichever direction was
    chosen. Otherwise the guess is correct when its direction matches the
    hidden score's position relative to the known score.
    """
    if hidden_score == known_score:
        return True
    actually_higher = hidden_score > known_score
    return guessed_higher == actually_higher

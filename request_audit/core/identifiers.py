"""Session identifier generation for correlating documents of one middleware instance."""

import random
import string
from typing import Optional

SESSION_ID_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits + "-"
SESSION_ID_LENGTH = 10


def generate_session_id(
    rng: Optional[random.Random] = None, length: int = SESSION_ID_LENGTH
) -> str:
    """
    Draw `length` characters uniformly from [A-Za-z0-9-].

    Uses the non-cryptographic `random` module. Pass a seeded `random.Random`
    for reproducible ids; callers needing unpredictable ids should supply their
    own generator to resolve_config().
    """
    source = rng or random
    return "".join(source.choice(SESSION_ID_ALPHABET) for _ in range(length))

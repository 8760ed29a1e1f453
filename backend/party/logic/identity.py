"""Room codes, player identities and bot cosmetics."""

import random
import string

# No I, O, 1, 0: codes are read aloud and typed by hand.
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6

_ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_LENGTH = 9

HOST_ID_PREFIX = "host-"
PLAYER_ID_PREFIX = "p-"
BOT_ID_PREFIX = "bot-"

AVATAR_VERSION = "v1"
_AVATAR_PART_CHOICES = {"type": 6, "skin": 3, "eyes": 5, "mouth": 5, "acc": 3}


def generate_room_code(rng: random.Random) -> str:
    return "".join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def generate_player_id(prefix: str, rng: random.Random) -> str:
    return prefix + "".join(rng.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))


def generate_bot_name(rng: random.Random) -> str:
    return f"Bot {rng.randrange(1000)}"


def random_avatar(rng: random.Random) -> str:
    """Build a versioned avatar descriptor.

    The core treats descriptors as opaque strings; only the rendering layer parses them.
    """
    parts = "-".join(str(rng.randrange(choices)) for choices in _AVATAR_PART_CHOICES.values())
    return f"{AVATAR_VERSION}:{parts}"

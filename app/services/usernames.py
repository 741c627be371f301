import re
import secrets

USERNAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*[a-z0-9]$")
USERNAME_MIN_LENGTH = 5
USERNAME_MAX_LENGTH = 30

ADJECTIVES = [
    "happy", "sunny", "bright", "gentle", "calm", "brave", "kind", "swift",
    "quiet", "clever", "cheerful", "steady", "warm", "lucky", "merry",
]
ANIMALS = [
    "panda", "tiger", "eagle", "dolphin", "koala", "otter", "falcon", "lion",
    "rabbit", "sparrow", "turtle", "heron", "fox", "deer", "owl",
]


def generate_username() -> str:
    """Easy to read out over the phone: adjective-animal-NN."""
    adjective = secrets.choice(ADJECTIVES)
    animal = secrets.choice(ANIMALS)
    number = secrets.randbelow(90) + 10
    return f"{adjective}-{animal}-{number}"


def is_valid_username(username: str) -> bool:
    if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
        return False
    return bool(USERNAME_PATTERN.match(username))

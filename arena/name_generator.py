import random
import uuid

# Curated word lists for generating friendly tournament ids
ADJECTIVES = [
    'swift', 'brave', 'quiet', 'golden', 'silver', 'crimson', 'azure', 'emerald',
    'fierce', 'noble', 'royal', 'hidden', 'poisoned', 'cosmic', 'stellar', 'radiant',
    'thunder', 'frost', 'shadow', 'mystic', 'ancient', 'iron', 'ivory', 'ebony',
    'crystal', 'blazing', 'rising', 'eternal', 'cunning', 'clever', 'wise', 'bold',
    'daring', 'fearless', 'valiant', 'patient', 'sharp', 'tactical', 'positional'
]

PIECES = [
    'king', 'queen', 'rook', 'bishop', 'knight', 'pawn', 'castle', 'fianchetto',
    'gambit', 'zugzwang', 'fork', 'pin', 'skewer', 'outpost', 'file', 'diagonal',
    'endgame', 'opening', 'sicilian', 'najdorf', 'dragon', 'grunfeld', 'catalan',
    'caro', 'slav', 'english', 'italian', 'scotch', 'ruy', 'benoni', 'pirc'
]

EVENT_DESCRIPTORS = [
    'open', 'classic', 'invitational', 'cup', 'derby', 'masters', 'rapid',
    'blitz', 'arena', 'challenge', 'championship', 'festival', 'marathon'
]


def generate_tournament_id() -> str:
    """Generate a friendly tournament id like 'quiet-rook-invitational'"""
    adj = random.choice(ADJECTIVES)
    piece = random.choice(PIECES)
    descriptor = random.choice(EVENT_DESCRIPTORS)
    return f"{adj}-{piece}-{descriptor}"


def generate_match_id(round_num: int, board: int) -> str:
    """Match ids are only unique within a tournament: 'r2_m3' is round 2, board 3."""
    return f"r{round_num}_m{board}"


def generate_short_id(prefix: str = "") -> str:
    """Generate a short random ID for uniqueness (fallback)"""
    short = uuid.uuid4().hex[:8]
    return f"{prefix}{short}" if prefix else short

"""
Constants used across the training scheduler.
"""

# Round planner scoring
REPEAT_PARTNER_PENALTY = 1000  # Pair were partners in an earlier round
REPEAT_OPPONENT_PENALTY = 500  # Pair shared a court in an earlier round
OPPONENT_GAP_WEIGHT = 0.25

# Slot layout
DOUBLES_SLOTS = (0, 1, 2, 3)  # Team 1: 0,1 - Team 2: 2,3
SINGLES_SLOTS = (1, 2)  # One player each side of the net
MAX_PLAYERS_PER_COURT = 4

# Check-in ledger
MAX_NOTES_LENGTH = 500

# Badminton scoring rules
BADMINTON_MAX_SETS = 3
BADMINTON_SETS_TO_WIN = 2
BADMINTON_MIN_WINNING_SCORE = 21
BADMINTON_MAX_SCORE = 30
BADMINTON_MIN_SCORE_DIFFERENCE = 2
BADMINTON_GOLDEN_POINT = (30, 29)  # The only valid one-point win

# Statistics snapshot document format
SNAPSHOT_FORMAT_VERSION = 1

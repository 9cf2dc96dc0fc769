"""
Constants used across the queue and match engine.
"""

# Queue
MATCH_DURATION_MINUTES = 5  # Estimated minutes per participant ahead in line
DEFAULT_CALL_COUNT = 4  # Doubles match
CURRENTLY_PLAYING_LIMIT = 8
COURTS = ["Court 1", "Court 2", "Court 3", "Court 4"]

# Matches
MIN_TEAM_SIZE = 1
MAX_TEAM_SIZE = 2
DEFAULT_HISTORY_LIMIT = 20
ADMIN_HISTORY_LIMIT = 50
DEFAULT_COMPLETED_LIMIT = 50

# Stats
PROVISIONAL_MATCHES = 5  # Everyone is a Beginner below this many matches
EXPERT_WIN_RATE = 75
ADVANCED_WIN_RATE = 55
INTERMEDIATE_WIN_RATE = 40
POINTS_PER_MATCH = 10
POINTS_PER_WIN = 5

"""
Real or AI - Guessing game session engine

Players are shown two images, one real photograph and one AI-generated, and
must pick the AI one. The engine provides:
- Daily challenges (three rounds of rising difficulty, once a day)
- Streak games (play until the first miss, harder as the streak grows)
- Weighted pair selection that favors balanced, under-used pairs
- Scoring, leaderboards and per-pair statistics
"""

__version__ = "0.1.0"

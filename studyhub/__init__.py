"""StudyHub gamification engine: achievements, group challenges and leaderboards"""

__version__ = "1.0.0"

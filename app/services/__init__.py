from app.services.catalog import seed_modules
from app.services.scoring import compute_credits, compute_leaderboard_score, update_streak

__all__ = ["compute_credits", "compute_leaderboard_score", "seed_modules", "update_streak"]

import os

API_URL = "https://api.sleeper.app/v1"
CACHE_TTL_SECONDS = int(os.getenv("KEEPER_CACHE_TTL_SECONDS", "21600"))  # 6 hours
DATABASE_URL = os.getenv("KEEPER_DATABASE_URL", "keeper_engine.db")
LOG_LEVEL = os.getenv("KEEPER_LOG_LEVEL", "INFO")

CORS_ORIGINS = [
    "http://localhost:3000",  # Next.js development server
    "http://127.0.0.1:3000",
]

# Outbound request policy
REQUEST_TIMEOUT_SECONDS = 30.0
MAX_RETRIES = 3
RETRY_BASE_DELAY_SECONDS = 1.0
RATE_LIMIT_MAX_REQUESTS = 60
RATE_LIMIT_WINDOW_SECONDS = 60.0

# Sleeper splits transactions by "leg"; 0 holds offseason moves
TRANSACTION_LEGS = range(0, 19)

MAX_CHAIN_DEPTH = 10

# Keeper rules, overridable per league
DEFAULT_KEEPER_RULES = {
    "max_keepers": 5,
    "max_franchise_tags": 2,
    "max_regular_keeper_years": 2,
    "undrafted_round": 10,
    "minimum_round": 1,
    "total_rounds": 16,
    # Offseason trade window for keeper season N: start is in N-1, end in N
    "offseason_start_month": 12,
    "offseason_start_day": 1,
    "offseason_end_month": 8,
    "offseason_end_day": 31,
    # Timestamps before this month belong to the previous season (playoffs)
    "season_rollover_month": 3,
}

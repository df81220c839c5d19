import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./members.db")
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "0") == "1"

# ✅ Security (admin bearer tokens)
SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

# ✅ Stripe
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_API_VERSION = os.getenv("STRIPE_API_VERSION")
STRIPE_MAX_NETWORK_RETRIES = int(os.getenv("STRIPE_MAX_NETWORK_RETRIES", "2"))

# ✅ Plans (JSON list of {"id", "nickname", "interval", "currency", "amount"})
STRIPE_PLANS = os.getenv("STRIPE_PLANS", "[]")
COMPLIMENTARY_PLAN_NICKNAME = os.getenv("COMPLIMENTARY_PLAN_NICKNAME", "Complimentary")

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ✅ CORS
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

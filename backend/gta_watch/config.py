import os
from dotenv import load_dotenv

load_dotenv()

SUPABASE_DB_URL = os.getenv("SUPABASE_DB_URL", "sqlite:///./gta_watch.db")

OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
GUIDANCE_MODEL = os.getenv("GUIDANCE_MODEL", "meta-llama/llama-3.1-8b-instruct:free")

GEOAPIFY_KEY = os.getenv("GEOAPIFY_KEY")
GEOAPIFY_BASE_URL = os.getenv("GEOAPIFY_BASE_URL", "https://api.geoapify.com")

HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))

# Sent to OpenRouter for attribution
APP_TITLE = os.getenv("APP_TITLE", "GTA Watch Emergency Guidance")
APP_REFERER = os.getenv("APP_REFERER", "https://gta-watch.local")

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if o.strip()
]

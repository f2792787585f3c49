import argparse
import random
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parents[1] / ".env")

BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.append(str(BASE_DIR))

from gta_watch.config import SUPABASE_DB_URL  # noqa: E402
from gta_watch.db import Base, create_db_engine, create_session_factory  # noqa: E402
from gta_watch.models.incidents import IncidentCategory  # noqa: E402
from gta_watch.schemas import IncidentCreate  # noqa: E402
from gta_watch.services.incident_store import IncidentStore  # noqa: E402
from gta_watch.utils import TORONTO_CENTER, format_coordinates, round_coordinates  # noqa: E402

DESCRIPTIONS = {
    IncidentCategory.FIRE: "Heavy smoke visible from the third floor",
    IncidentCategory.MEDICAL: "Person collapsed near the subway entrance",
    IncidentCategory.ACCIDENT: "Two-car collision, one lane blocked",
    IncidentCategory.SUSPICIOUS: "Someone trying car door handles",
    IncidentCategory.THEFT: "Bike stolen from the rack outside",
}

# Roughly the old City of Toronto
SPREAD_DEG = 0.06


def demo_incidents(count: int, rng: random.Random) -> List[IncidentCreate]:
    categories = list(IncidentCategory)
    out = []
    for _ in range(count):
        category = rng.choice(categories)
        lat, lon = round_coordinates(
            TORONTO_CENTER[0] + rng.uniform(-SPREAD_DEG, SPREAD_DEG),
            TORONTO_CENTER[1] + rng.uniform(-SPREAD_DEG, SPREAD_DEG),
        )
        out.append(
            IncidentCreate(
                category=category,
                description=DESCRIPTIONS.get(category),
                latitude=lat,
                longitude=lon,
                location_label=format_coordinates(lat, lon),
            )
        )
    return out


def seed(store: IncidentStore, count: int, seed_value: Optional[int] = None) -> int:
    rng = random.Random(seed_value)
    for incident in demo_incidents(count, rng):
        store.insert(incident)
    return count


def main() -> None:
    parser = argparse.ArgumentParser(description="Insert demo incidents around Toronto.")
    parser.add_argument("--count", type=int, default=12, help="How many incidents to insert.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for repeatable data.")
    parser.add_argument("--db-url", default=SUPABASE_DB_URL, help="Database URL (defaults to SUPABASE_DB_URL).")
    args = parser.parse_args()

    engine = create_db_engine(args.db_url)
    Base.metadata.create_all(bind=engine)
    try:
        total = seed(IncidentStore(create_session_factory(engine)), args.count, args.seed)
        print(f"Inserted {total} demo incidents.")
    finally:
        engine.dispose()


if __name__ == "__main__":
    main()

# scripts/seed_demo_data.py

import os
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(ROOT)

# Now imports will work
from app.config import configure_logging
from app.demo_data import reset_demo_data


def run():
    configure_logging()
    counts = reset_demo_data()
    for name, count in counts.items():
        print(f"Created {count} {name}")


if __name__ == "__main__":
    run()

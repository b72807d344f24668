# cart_offer/config.py
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./cart_offer.db")
SEGMENT_SERVICE_URL = os.getenv("SEGMENT_SERVICE_URL", "http://localhost:8000")
SEGMENT_SERVICE_TIMEOUT = float(os.getenv("SEGMENT_SERVICE_TIMEOUT", "5.0"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


@dataclass
class SegmentTable:
    users: dict[int, str] = field(default_factory=dict)
    fallback: str = "unknown"

    def segment_for(self, user_id: int) -> str:
        return self.users.get(user_id, self.fallback)


# user_id -> segment, served by the mock /api/v1/user_segment endpoint
USER_SEGMENTS = SegmentTable(
    users={
        1: "p1",
        2: "p2",
        3: "p3",
    },
)

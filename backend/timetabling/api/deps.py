import random
from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from timetabling.core.config import Settings, get_settings
from timetabling.db.session import SessionLocal
from timetabling.services.policy import SchedulingPolicy


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_policy(settings: Settings = Depends(get_settings)) -> SchedulingPolicy:
    return SchedulingPolicy.from_settings(settings)


def get_rng(settings: Settings = Depends(get_settings)) -> random.Random:
    return random.Random(settings.scheduler_random_seed)

import json
from datetime import date

import pytest
from sqlalchemy.orm import sessionmaker

from familybrief.db import init_db, make_engine
from familybrief.models import CalendarEvent, Child, Guardian, GuardianChild
from familybrief.store import SqlBriefStore


@pytest.fixture
def db_session(tmp_path):
    db_url = f"sqlite:///{tmp_path}/test.db"
    engine = make_engine(db_url)
    init_db(engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def store(db_session):
    return SqlBriefStore(db_session)


def add_family(db, user_id, first_name="Ava", school_id="school-1", org_id="org-1",
               birthdate=date(2016, 5, 1), role="parent", email=None):
    g = Guardian(user_id=user_id, app_role=role, organization_id=org_id, school_id=school_id, email=email)
    c = Child(first_name=first_name, birthdate=birthdate)
    db.add_all([g, c]); db.commit()
    db.add(GuardianChild(guardian_id=g.id, child_id=c.id)); db.commit()
    return g, c


def add_event(db, school_id, title, starts_at, description=None):
    ev = CalendarEvent(school_id=school_id, title=title, description=description, starts_at=starts_at)
    db.add(ev); db.commit()
    return ev


VALID_DRAFT = {
    "shape_of_the_week": "A steady week with one short day in the middle.",
    "school_things_to_know": [
        {"label": "Early dismissal Tuesday", "why": "Pickup may come a bit sooner than usual."},
    ],
    "moment_to_protect": "A slow breakfast on Thursday could be a nice anchor.",
    "gentle_heads_up": "Short days can feel bumpy. That is normal.",
    "tiny_connection_idea": {
        "title": "One-Word Check-In",
        "description": "Ask for one word that sums up the day.",
        "script": "What's your word today?",
    },
}


@pytest.fixture
def valid_draft():
    return json.loads(json.dumps(VALID_DRAFT))


@pytest.fixture
def good_complete(valid_draft):
    def _complete(system_prompt, user_prompt):
        return json.dumps(valid_draft)
    return _complete

# familybrief/store.py
"""
Persistence and lookup collaborators for the weekly brief run.

SqlBriefStore talks to our own tables through SQLAlchemy; HasuraBriefStore
issues the same operations as GraphQL against Hasura. Both expose the same
methods, so the runner never knows which one it has.
"""
import os
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from .hasura import HasuraClient
from .logger import logger
from .models import CalendarEvent, Child, Guardian, GuardianChild, Notification, WeeklyBrief, WeeklyBriefRun

# Columns an upsert may overwrite; identity (parent, child, week) is never touched.
BRIEF_UPDATE_COLUMNS = [
    "ux_state",
    "load_score",
    "shape_of_the_week",
    "school_things_to_know",
    "moment_to_protect",
    "gentle_heads_up",
    "tiny_connection_idea",
    "content_html",
    "content_text",
    "raw_inputs",
    "generated_at",
]

SCHOOL_EVENTS_LIMIT = 200


def _day_bounds(week_start: date, week_end: date):
    return datetime.combine(week_start, time.min), datetime.combine(week_end + timedelta(days=1), time.min)


def _iso(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


class SqlBriefStore:
    def __init__(self, db: Session):
        self.db = db

    def close(self):
        self.db.close()

    # --- runs ---
    def create_run(self, fields: Dict[str, Any]) -> str:
        run = WeeklyBriefRun(**fields)
        self.db.add(run); self.db.commit(); self.db.refresh(run)
        return run.id

    def finish_run(self, run_id: str, changes: Dict[str, Any]) -> None:
        run = self.db.get(WeeklyBriefRun, run_id)
        if not run:
            return
        for k, v in changes.items():
            setattr(run, k, v)
        self.db.add(run); self.db.commit()

    # --- lookups ---
    def lookup_eligible_families(self, scope: Optional[Dict[str, Any]] = None,
                                 limit: Optional[int] = None) -> List[Dict[str, Any]]:
        scope = scope or {}
        q = (
            self.db.query(GuardianChild, Guardian, Child)
            .join(Guardian, GuardianChild.guardian_id == Guardian.id)
            .join(Child, GuardianChild.child_id == Child.id)
            .filter(Guardian.app_role == "parent")
        )
        if scope.get("organization_id"):
            q = q.filter(Guardian.organization_id == scope["organization_id"])
        if scope.get("school_id"):
            q = q.filter(Guardian.school_id == scope["school_id"])
        q = q.order_by(GuardianChild.id.asc())
        if limit is not None:
            q = q.limit(int(limit))

        return [
            {
                "parent_user_id": g.user_id,
                "child_id": c.id,
                "first_name": c.first_name,
                "birthdate": c.birthdate.isoformat() if c.birthdate else None,
                "school_id": g.school_id,
            }
            for _, g, c in q.all()
        ]

    def lookup_school_events(self, school_id: str, week_start: date, week_end: date) -> List[Dict[str, Any]]:
        start, end = _day_bounds(week_start, week_end)
        rows = (
            self.db.query(CalendarEvent)
            .filter(CalendarEvent.school_id == school_id)
            .filter(CalendarEvent.starts_at >= start, CalendarEvent.starts_at < end)
            .order_by(CalendarEvent.starts_at.asc())
            .limit(SCHOOL_EVENTS_LIMIT)
            .all()
        )
        return [
            {"id": r.id, "title": r.title, "description": r.description, "starts_at": r.starts_at.isoformat()}
            for r in rows
        ]

    def lookup_family_history(self, parent_user_id: str, child_id: str, prev_week_start: date) -> Dict[str, bool]:
        base = self.db.query(WeeklyBrief).filter_by(parent_user_id=parent_user_id, child_id=child_id)
        has_history = base.count() > 0
        prev = base.filter(WeeklyBrief.week_start == prev_week_start).first()
        return {"has_history": has_history, "missed_last_week": bool(prev and prev.opened_at is None)}

    def lookup_user_email(self, user_id: str) -> Optional[str]:
        g = self.db.query(Guardian).filter(Guardian.user_id == user_id, Guardian.email.isnot(None)).first()
        return g.email if g else None

    # --- briefs ---
    def upsert_brief(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        brief = (
            self.db.query(WeeklyBrief)
            .filter_by(parent_user_id=fields["parent_user_id"], child_id=fields["child_id"],
                       week_start=fields["week_start"])
            .first()
        )
        if brief is None:
            brief = WeeklyBrief(**fields)
        else:
            for k in BRIEF_UPDATE_COLUMNS:
                if k in fields:
                    setattr(brief, k, fields[k])
        self.db.add(brief); self.db.commit(); self.db.refresh(brief)
        return {"id": brief.id, "ux_state": brief.ux_state, "generated_at": brief.generated_at}

    def mark_brief_opened(self, brief_id: str) -> bool:
        brief = self.db.get(WeeklyBrief, brief_id)
        if not brief:
            return False
        if brief.opened_at is None:
            brief.opened_at = datetime.utcnow()
            self.db.add(brief); self.db.commit()
        return True

    # --- notifications ---
    def create_notification(self, user_id: str, type: str, title: str, body: str,
                            metadata: Optional[Dict[str, Any]] = None) -> str:
        n = Notification(user_id=user_id, type=type, title=title, body=body,
                         metadata_json={k: _iso(v) for k, v in (metadata or {}).items()})
        self.db.add(n); self.db.commit(); self.db.refresh(n)
        return n.id


# --- GraphQL ------------------------------------------------

_INSERT_RUN = """
mutation InsertWeeklyBriefRun($object: weekly_brief_runs_insert_input!) {
  insert_weekly_brief_runs_one(object: $object) { id }
}"""

_UPDATE_RUN = """
mutation UpdateWeeklyBriefRun($id: uuid!, $changes: weekly_brief_runs_set_input!) {
  update_weekly_brief_runs_by_pk(pk_columns: { id: $id }, _set: $changes) { id }
}"""

_PARENTS = """
query WeeklyBriefParents($where: guardian_children_bool_exp!, $limit: Int) {
  guardian_children(where: $where, limit: $limit) {
    guardian_id
    child_id
    guardian { user_id organization_id school_id }
    child { id first_name birthdate }
  }
}"""

_EVENTS = """
query WeeklyBriefEvents($schoolId: uuid!, $start: timestamptz!, $end: timestamptz!) {
  calendar_events(
    where: { school_id: { _eq: $schoolId }, starts_at: { _gte: $start, _lt: $end } }
    order_by: { starts_at: asc }
    limit: 200
  ) { id title description starts_at }
}"""

_HISTORY = """
query WeeklyBriefHistory($parent: uuid!, $child: uuid!, $prevStart: date!) {
  history: weekly_briefs_aggregate(where: {parent_user_id: {_eq: $parent}, child_id: {_eq: $child}}) {
    aggregate { count }
  }
  prev: weekly_briefs(where: {parent_user_id: {_eq: $parent}, child_id: {_eq: $child}, week_start: {_eq: $prevStart}}, limit: 1) {
    id
    opened_at
  }
}"""

_UPSERT_BRIEF = """
mutation UpsertWeeklyBrief($object: weekly_briefs_insert_input!) {
  insert_weekly_briefs_one(
    object: $object,
    on_conflict: {
      constraint: weekly_briefs_parent_user_id_child_id_week_start_key,
      update_columns: [%s]
    }
  ) { id ux_state generated_at }
}""" % ", ".join(BRIEF_UPDATE_COLUMNS)

_MARK_OPENED = """
mutation MarkWeeklyBriefOpened($id: uuid!, $now: timestamptz!) {
  update_weekly_briefs(where: {id: {_eq: $id}, opened_at: {_is_null: true}}, _set: {opened_at: $now}) {
    affected_rows
  }
  weekly_briefs_by_pk(id: $id) { id }
}"""

_INSERT_NOTIFICATION = """
mutation InsertNotification($object: notifications_insert_input!) {
  insert_notifications_one(object: $object) { id }
}"""

_USER_EMAIL = """
query UserEmail($id: uuid!) {
  user(id: $id) { email }
}"""


class HasuraBriefStore:
    def __init__(self, client: HasuraClient):
        self.client = client

    def close(self):
        pass

    def create_run(self, fields: Dict[str, Any]) -> Optional[str]:
        obj = {k: _iso(v) for k, v in fields.items() if k != "metadata_json"}
        obj["metadata"] = fields.get("metadata_json") or {}
        data = self.client.execute(_INSERT_RUN, {"object": obj})
        return (data.get("insert_weekly_brief_runs_one") or {}).get("id")

    def finish_run(self, run_id: str, changes: Dict[str, Any]) -> None:
        self.client.execute(_UPDATE_RUN, {"id": run_id, "changes": {k: _iso(v) for k, v in changes.items()}})

    def lookup_eligible_families(self, scope: Optional[Dict[str, Any]] = None,
                                 limit: Optional[int] = None) -> List[Dict[str, Any]]:
        scope = scope or {}
        guardian: Dict[str, Any] = {"app_role": {"_eq": "parent"}}
        if scope.get("organization_id"):
            guardian["organization_id"] = {"_eq": scope["organization_id"]}
        if scope.get("school_id"):
            guardian["school_id"] = {"_eq": scope["school_id"]}

        data = self.client.execute(_PARENTS, {"where": {"guardian": guardian},
                                              "limit": int(limit) if limit is not None else None})
        out = []
        for row in data.get("guardian_children") or []:
            g = row.get("guardian") or {}
            c = row.get("child") or {}
            out.append({
                "parent_user_id": g.get("user_id"),
                "child_id": c.get("id") or row.get("child_id"),
                "first_name": c.get("first_name"),
                "birthdate": c.get("birthdate"),
                "school_id": g.get("school_id"),
            })
        return out

    def lookup_school_events(self, school_id: str, week_start: date, week_end: date) -> List[Dict[str, Any]]:
        start, end = _day_bounds(week_start, week_end)
        data = self.client.execute(_EVENTS, {
            "schoolId": school_id,
            "start": f"{start.isoformat()}Z",
            "end": f"{end.isoformat()}Z",
        })
        return data.get("calendar_events") or []

    def lookup_family_history(self, parent_user_id: str, child_id: str, prev_week_start: date) -> Dict[str, bool]:
        data = self.client.execute(_HISTORY, {
            "parent": parent_user_id, "child": child_id, "prevStart": prev_week_start.isoformat(),
        })
        count = ((data.get("history") or {}).get("aggregate") or {}).get("count") or 0
        prev = (data.get("prev") or [None])[0]
        return {"has_history": int(count) > 0, "missed_last_week": bool(prev and not prev.get("opened_at"))}

    def lookup_user_email(self, user_id: str) -> Optional[str]:
        data = self.client.execute(_USER_EMAIL, {"id": user_id})
        return (data.get("user") or {}).get("email")

    def upsert_brief(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        data = self.client.execute(_UPSERT_BRIEF, {"object": {k: _iso(v) for k, v in fields.items()}})
        return data.get("insert_weekly_briefs_one") or {}

    def mark_brief_opened(self, brief_id: str) -> bool:
        data = self.client.execute(_MARK_OPENED, {"id": brief_id, "now": f"{datetime.utcnow().isoformat()}Z"})
        return bool(data.get("weekly_briefs_by_pk"))

    def create_notification(self, user_id: str, type: str, title: str, body: str,
                            metadata: Optional[Dict[str, Any]] = None) -> Optional[str]:
        data = self.client.execute(_INSERT_NOTIFICATION, {"object": {
            "user_id": user_id, "type": type, "title": title, "body": body,
            "metadata": {k: _iso(v) for k, v in (metadata or {}).items()},
        }})
        return (data.get("insert_notifications_one") or {}).get("id")


def get_store():
    """Hasura when HASURA_GRAPHQL_URL is configured, otherwise our own database."""
    if os.getenv("HASURA_GRAPHQL_URL"):
        from .hasura import get_hasura
        logger.debug("[STORE] using Hasura")
        return HasuraBriefStore(get_hasura())
    from .db import SessionLocal
    return SqlBriefStore(SessionLocal())

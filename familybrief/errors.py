# familybrief/errors.py
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx


class BriefInputError(ValueError):
    """Bad caller input (week bounds, identifiers). Never retried."""
    status_code = 400


class BriefAuthError(BriefInputError):
    status_code = 403


class DataRequestError(RuntimeError):
    """The data collaborator answered with an error payload or a non-2xx status."""


class LLMError(RuntimeError):
    """The completion collaborator failed (credentials, transport, empty content)."""


@dataclass
class ErrorNotice:
    code: str                  # short machine code, e.g. "NETWORK_DNS", "SMTP_AUTH"
    title: str
    user_message: str          # safe to show to callers
    hint: Optional[str] = None
    support_id: str = ""       # correlates the response with the log line
    debug: Optional[str] = None  # logs only
    status_code: int = 500

    def as_json(self) -> Dict[str, Any]:
        body = {
            "error": self.title,
            "message": self.user_message,
            "ref": self.support_id,
            "code": self.code,
        }
        if self.hint:
            body["hint"] = self.hint
        return body


def _text(exc: BaseException) -> str:
    # wrapped errors (raise ... from e) keep the useful detail on the cause
    parts = [str(exc)]
    if exc.__cause__ is not None:
        parts.append(str(exc.__cause__))
    return " ".join(parts).lower()


def _is_dns(exc):
    s = _text(exc)
    return "nodename nor servname provided" in s or "name or service not known" in s


def _is_rate_limited(exc):
    s = _text(exc)
    return "rate_limit" in s or "rate limit" in s


def _is_quota(exc):
    return "quota" in _text(exc)


def _is_smtp_auth(exc):
    return 535 in (getattr(exc, "smtp_code", None), getattr(exc.__cause__, "smtp_code", None))


def _is_db_down(exc):
    s = _text(exc)
    return any(m in s for m in ("could not connect to server", "connection refused",
                                "unable to open database file"))


def _is_timeout(exc):
    return isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout, httpx.ReadTimeout))


_RETRY = "Please retry. If it persists, contact support."

# First match wins.
_RULES: List[Tuple[Callable[[BaseException], bool], Dict[str, Any]]] = [
    (_is_dns, dict(code="NETWORK_DNS", title="Network problem",
                   user_message="We couldn't reach the writing assistant from this network.",
                   hint="Check outbound network access from the service.")),
    (_is_rate_limited, dict(code="OPENAI_RATE", title="Busy right now",
                            user_message="We're sending too many requests at once.",
                            hint="Please retry in a few seconds.")),
    (_is_quota, dict(code="OPENAI_QUOTA", title="Quota exceeded",
                     user_message="We've hit our OpenAI usage quota.",
                     hint="Briefs will use the standard template until service is restored.")),
    (_is_smtp_auth, dict(code="SMTP_AUTH", title="Email send failed",
                         user_message="The email account rejected our sign-in.",
                         hint="Check the SMTP username and app password.")),
    (lambda e: isinstance(e, DataRequestError),
     dict(code="DATA_REQUEST", title="Data service error",
          user_message="The data service rejected a request.", hint=_RETRY, status_code=502)),
    (_is_db_down, dict(code="DB_CONN", title="Database unavailable",
                       user_message="We couldn't connect to the database.",
                       hint="Please try again shortly.", status_code=503)),
    (_is_timeout, dict(code="NETWORK_TIMEOUT", title="Network timeout",
                       user_message="A request took too long to respond.",
                       hint="Please retry in a moment.", status_code=504)),
]


def build_error_notice(exc: Exception, context: Optional[Dict[str, Any]] = None) -> ErrorNotice:
    """
    Map raw exceptions to user-safe notices.

    Input errors keep their own message since it is written for the caller.
    Everything else gets a generic message plus a support ref; the raw
    exception only goes into ``debug``.
    """
    op = (context or {}).get("op", "operation")
    support_id = uuid.uuid4().hex[:8]
    debug = f"{op}: {exc!r}"

    if isinstance(exc, BriefInputError):
        return ErrorNotice(
            code="FORBIDDEN" if isinstance(exc, BriefAuthError) else "BAD_INPUT",
            title="Request rejected",
            user_message=str(exc),
            support_id=support_id,
            debug=debug,
            status_code=exc.status_code,
        )

    for matches, fields in _RULES:
        if matches(exc):
            return ErrorNotice(support_id=support_id, debug=debug, **fields)

    return ErrorNotice(
        code="UNKNOWN",
        title="Something went wrong",
        user_message="An unexpected error occurred.",
        hint=_RETRY,
        support_id=support_id,
        debug=debug,
    )

import csv
import io
from datetime import date, datetime
from typing import Any, Dict, Iterable

HEADERS = [
    "Registration Date",
    "First Name",
    "Last Name",
    "Email",
    "Phone",
    "Telegram",
    "University",
    "Major",
    "Year of Study",
    "English Level",
    "Session/Event Title",
    "Session Date",
    "Type",
    "Status",
    "Attended",
    "Previous Participation",
    "Special Requests",
]


def _date(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    return str(value or "")


def _yes_no(value: Any) -> str:
    if isinstance(value, str):
        value = value.strip().lower() in ("yes", "true", "1")
    return "Yes" if value else "No"


def _text(value: Any) -> str:
    # one record per line
    return " ".join(str(value or "").splitlines())


def export_filename(today: date) -> str:
    return f"registrations_{today.isoformat()}.csv"


def export_records(records: Iterable[Dict[str, Any]]) -> str:
    """Comma separated, every field double-quoted, header first."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(HEADERS)
    for r in records:
        writer.writerow([
            _date(r.get("registrationDate")),
            _text(r.get("firstName")),
            _text(r.get("lastName")),
            _text(r.get("email")),
            _text(r.get("phone")),
            _text(r.get("telegram")),
            _text(r.get("university")),
            _text(r.get("major")),
            _text(r.get("yearOfStudy")),
            _text(r.get("englishLevel")),
            _text(r.get("sessionTitle")),
            _date(r.get("sessionDate")),
            _text(r.get("sessionType")),
            _text(r.get("status")),
            _yes_no(r.get("attended")),
            _yes_no(r.get("previousParticipation")),
            _text(r.get("specialRequests")),
        ])
    return buf.getvalue()

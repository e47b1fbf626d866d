"""
Source Adapters

Each known source shape (CSV or JSON file, Apps Script JSON export, HTTP request
body) gets one adapter that produces the shared raw record types. Field name
variants are resolved here and nowhere else.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from etl.normalize import clean_string
from etl.records import RawEnrollmentRecord, RawStudentRecord

# First present alias wins
CSV_STUDENT_FIELDS = {
    "email": ("email", "student_email"),
    "date_of_birth": ("date_of_birth", "dateOfBirth", "dateofbirth", "student_date_of_birth"),
    "year": ("year", "student_year"),
    "phone_number": ("phone_number", "phoneNumber", "phonenumber", "phone", "student_phone_number"),
    "department": ("department", "department_name"),
}

CAMEL_STUDENT_FIELDS = {
    "email": ("email",),
    "date_of_birth": ("dateOfBirth",),
    "year": ("year",),
    "phone_number": ("phoneNumber",),
    "department": ("department",),
}

ENROLLMENT_FIELDS = {
    "student_email": ("student_email", "email", "studentEmail"),
    "course_code": ("course_code", "course_id", "courseCode", "courseId"),
    "grade": ("grade",),
    "enrollment_date": ("enrollment_date", "enrollmentDate"),
}

# (first, last) pairs in priority order
NAME_PAIRS = (
    ("first_name", "last_name"),
    ("firstName", "lastName"),
    ("firstname", "lastname"),
)
FULL_NAME_FIELDS = ("name", "full_name", "fullName")


def _first_present(row: Mapping[str, Any], aliases: Sequence[str]) -> Any:
    for alias in aliases:
        value = row.get(alias)
        if clean_string(value) is not None:
            return value
    return None


def _row_id(row: Mapping[str, Any], id_field: str, position: int) -> str:
    value = clean_string(row.get(id_field))
    return value if value is not None else str(position)


def _resolve_name(row: Mapping[str, Any], pairs: Sequence[tuple]) -> Dict[str, Any]:
    """
    Pick the name representation present in the row.

    A first/last pair is used when its first half is present (the last
    name may be blank); the single full-name field is the fallback.
    """
    for first_key, last_key in pairs:
        if clean_string(row.get(first_key)) is not None:
            return {"first_name": row.get(first_key), "last_name": row.get(last_key)}

    full_name = _first_present(row, FULL_NAME_FIELDS)
    if full_name is not None:
        return {"full_name": full_name}

    return {}


def _student(row: Mapping[str, Any], source_row: str, fields: Dict[str, Sequence[str]],
             name_pairs: Sequence[tuple]) -> RawStudentRecord:
    values = {name: _first_present(row, aliases) for name, aliases in fields.items()}
    values.update(_resolve_name(row, name_pairs))
    return RawStudentRecord(source_row=source_row, payload=dict(row), **values)


def student_from_csv_row(row: Mapping[str, Any], position: int) -> RawStudentRecord:
    """
    Adapt a CSV, sheet or generic JSON row.

    Accepts snake_case, camelCase and ``student_``-prefixed keys.
    """
    return _student(row, _row_id(row, "student_id", position), CSV_STUDENT_FIELDS, NAME_PAIRS)


def student_from_json(entry: Mapping[str, Any], position: int) -> RawStudentRecord:
    """Adapt one entry of the Apps Script JSON export (camelCase keys)."""
    return _student(entry, str(position), CAMEL_STUDENT_FIELDS, NAME_PAIRS[1:2])


def student_from_http_body(body: Mapping[str, Any]) -> RawStudentRecord:
    """Adapt a registration request body (camelCase keys)."""
    source_row = clean_string(body.get("email")) or "request"
    return _student(body, source_row, CAMEL_STUDENT_FIELDS, NAME_PAIRS[1:2])


def enrollment_from_row(row: Mapping[str, Any], position: int) -> RawEnrollmentRecord:
    """Adapt an enrollment row from CSV or JSON."""
    values = {name: _first_present(row, aliases) for name, aliases in ENROLLMENT_FIELDS.items()}
    return RawEnrollmentRecord(
        source_row=_row_id(row, "enrollment_id", position),
        payload=dict(row),
        **values,
    )


def students_from_rows(rows: Iterable[Mapping[str, Any]], source: str = "csv") -> List[RawStudentRecord]:
    """
    Adapt a sequence of rows.

    ``source`` is ``csv`` or ``json`` for files (either key style is accepted),
    or ``export`` for the Apps Script export, which is camelCase only.
    """
    adapter = student_from_json if source == "export" else student_from_csv_row
    return [adapter(row, position) for position, row in enumerate(rows, 1)]


def enrollments_from_rows(rows: Iterable[Mapping[str, Any]]) -> List[RawEnrollmentRecord]:
    return [enrollment_from_row(row, position) for position, row in enumerate(rows, 1)]


def detect_source(path: Optional[str]) -> str:
    if path and path.lower().endswith(".json"):
        return "json"
    return "csv"

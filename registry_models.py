from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping, Optional

from registry_errors import MalformedRow


class Shift(str, Enum):
    MORNING = "Morning"
    AFTERNOON = "Afternoon"
    NIGHT = "Night"
    FULL_DAY = "FullDay"

    @property
    def label(self) -> str:
        return "Full day" if self is Shift.FULL_DAY else self.value

    @classmethod
    def parse(cls, value) -> "Shift":
        """Accepts the stored value, the member name or the label, any case."""
        if isinstance(value, Shift):
            return value
        text = str(value).strip().lower().replace(" ", "").replace("_", "")
        for member in cls:
            if text in (member.value.lower(), member.name.lower().replace("_", "")):
                return member
        raise ValueError(f"Unknown shift: {value!r}")


@dataclass(frozen=True)
class Employee:
    name: str
    registration: str
    role: str
    shift: Shift = Shift.FULL_DAY
    id: Optional[int] = None

    def validate(self) -> "Employee":
        """Returns a trimmed copy, or raises ValueError naming the bad field."""
        name = (self.name or "").strip()
        registration = (self.registration or "").strip()
        role = (self.role or "").strip()
        if not name:
            raise ValueError("Name is required.")
        if not registration:
            raise ValueError("Registration is required.")
        if not role:
            raise ValueError("Role is required.")
        return replace(self, name=name, registration=registration, role=role,
                       shift=Shift.parse(self.shift))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "registration": self.registration,
            "role": self.role,
            "shift": self.shift.value,
        }


EMPLOYEE_COLUMNS = ("id", "name", "registration", "role", "shift")


def employee_from_row(row: Mapping[str, Any]) -> Employee:
    """Decode one employees row. Anything that is not a complete, typed record fails loudly."""
    try:
        values = {col: row[col] for col in EMPLOYEE_COLUMNS}
    except (KeyError, IndexError) as e:
        raise MalformedRow(f"Row is missing column {e}") from e

    if not isinstance(values["id"], int) or isinstance(values["id"], bool):
        raise MalformedRow(f"Row id must be an integer, got {values['id']!r}")
    for col in ("name", "registration", "role"):
        if not isinstance(values[col], str) or not values[col].strip():
            raise MalformedRow(f"Row {values['id']}: column '{col}' must be non-empty text")
    try:
        shift = Shift(values["shift"])
    except ValueError as e:
        raise MalformedRow(f"Row {values['id']}: unknown shift {values['shift']!r}") from e

    return Employee(
        id=values["id"],
        name=values["name"],
        registration=values["registration"],
        role=values["role"],
        shift=shift,
    )

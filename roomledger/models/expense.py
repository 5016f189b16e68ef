"""
Core Data Models for Room Ledger

These models define the schemas for everything flowing through the
ledger: stored expenses, the roster, reporting windows and the derived
settlement values.

DESIGN DECISION: Money is always Decimal.
Float accumulation drifts by fractions of a cent over many records,
and totals feed straight into equal-share division.
Floats only appear when a model is rendered to JSON.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Annotated, Iterable, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationError,
    field_validator,
    model_validator,
)

from roomledger.errors import ConfigurationError
from roomledger.money import CENT, ZERO, round_cents


# Decimal in Python, number in JSON
Money = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every stored datetime takes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# =============================================================================
# ROSTER
# =============================================================================

class Roster(BaseModel):
    """
    The fixed, ordered set of roommates who can pay for things.

    Known at configuration time and never derived from stored data.
    Order matters: it is the tie-break for equal balances and decides
    who absorbs leftover cents of an uneven split.
    """
    model_config = ConfigDict(frozen=True)

    members: tuple[str, ...] = Field(
        ...,
        description="Participant identifiers in roster order"
    )

    @field_validator("members")
    @classmethod
    def strip_names(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        names = tuple(name.strip() for name in v)
        if any(not name for name in names):
            raise ValueError("Roster names cannot be blank")
        return names

    @model_validator(mode="after")
    def validate_members(self) -> "Roster":
        if not self.members:
            raise ValueError("Roster must have at least one member")
        if len(set(self.members)) != len(self.members):
            raise ValueError(f"Roster has duplicate members: {list(self.members)}")
        return self

    @classmethod
    def from_members(cls, members: Iterable[str]) -> "Roster":
        """Build a roster, reporting problems as ConfigurationError."""
        try:
            return cls(members=tuple(members))
        except ValidationError as e:
            messages = "; ".join(err["msg"] for err in e.errors())
            raise ConfigurationError(f"Invalid roster: {messages}") from e

    def __contains__(self, name: object) -> bool:
        return name in self.members

    def __len__(self) -> int:
        return len(self.members)


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseRecord(BaseModel):
    """
    A single stored expense.

    Immutable once created. The engine only ever reads these.
    On the wire the amount is called "price" and the payer "person".
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique expense ID"
    )
    item: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="What was bought"
    )
    amount: Money = Field(
        ...,
        ge=0,
        decimal_places=2,
        alias="price",
        description="Amount paid"
    )
    payer: str = Field(
        ...,
        min_length=1,
        alias="person",
        description="Roster member who paid"
    )
    date: datetime = Field(
        default_factory=utcnow,
        description="When the expense happened (naive UTC)"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=500,
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        description="When the record was stored"
    )

    @field_validator("date", "created_at")
    @classmethod
    def normalize_dates(cls, v: datetime) -> datetime:
        """Aware datetimes are converted so every comparison is naive UTC."""
        return _to_naive_utc(v)

    def to_wire(self) -> dict:
        """JSON-ready dict using the HTTP field names."""
        return self.model_dump(mode="json", by_alias=True)


class ExpenseCreate(BaseModel):
    """
    A create request after type parsing.

    Length limits and roster membership are checked by the validator,
    not here, so every problem can be reported at once.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    item: str
    price: Decimal = Field(..., max_digits=12)
    person: str
    date: Optional[datetime] = None
    note: Optional[str] = None

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _to_naive_utc(v)

    @field_validator("note")
    @classmethod
    def empty_note_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    def to_record(self, now: Optional[datetime] = None) -> ExpenseRecord:
        """Build the record to store, generating its ID."""
        now = now or utcnow()
        return ExpenseRecord(
            item=self.item,
            amount=round_cents(self.price),
            payer=self.person,
            date=self.date or now,
            note=self.note,
            created_at=now,
        )


# =============================================================================
# REPORTING WINDOW
# =============================================================================

class DateWindow(BaseModel):
    """A reporting period, inclusive at both ends."""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def validate_order(self) -> "DateWindow":
        if self.end < self.start:
            raise ValueError("Window end cannot be before start")
        return self

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    @classmethod
    def for_month(cls, year: int, month: int) -> "DateWindow":
        """The whole calendar month, up to its last microsecond."""
        start = datetime(year, month, 1)
        if month == 12:
            following = datetime(year + 1, 1, 1)
        else:
            following = datetime(year, month + 1, 1)
        return cls(start=start, end=following - timedelta(microseconds=1))

    @property
    def label(self) -> str:
        """e.g. 'October 2026'."""
        return self.start.strftime("%B %Y")


# =============================================================================
# DERIVED VALUES
# =============================================================================

class PeriodTotals(BaseModel):
    """
    Spend per roommate for one period.

    Every roster member is present, with zero if they paid nothing.
    """

    total: Money = Field(default=ZERO, ge=0)
    per_participant: dict[str, Money] = Field(default_factory=dict)
    record_count: int = Field(default=0, ge=0)


class Transfer(BaseModel):
    """One suggested payment from a debtor to a creditor."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    debtor: str = Field(..., alias="from")
    creditor: str = Field(..., alias="to")
    amount: Money = Field(..., gt=0, decimal_places=2)


class Settlement(BaseModel):
    """
    Balances against the equal share, plus the transfers that clear them.

    Positive balance = paid more than their share (is owed money).
    Negative balance = paid less (owes money).
    """

    average: Money
    balances: dict[str, Money]
    transfers: list[Transfer] = Field(default_factory=list)
    tolerance: Decimal = CENT

    def remaining(self) -> dict[str, Decimal]:
        """Balances left over once every transfer has been paid."""
        left = dict(self.balances)
        for transfer in self.transfers:
            left[transfer.debtor] += transfer.amount
            left[transfer.creditor] -= transfer.amount
        return left

    @property
    def is_settled(self) -> bool:
        return all(abs(v) <= self.tolerance for v in self.remaining().values())


class StatisticsReport(BaseModel):
    """Everything the statistics endpoint reports for one period."""

    window: DateWindow
    totals: PeriodTotals
    settlement: Settlement
    generated_at: datetime = Field(default_factory=utcnow)

    @property
    def month(self) -> str:
        return self.window.label

    def to_response(self) -> dict:
        """Render in the shape served by GET /api/statistics."""
        return {
            "total": float(self.totals.total),
            "perPerson": {
                name: float(amount)
                for name, amount in self.totals.per_participant.items()
            },
            "splits": [
                transfer.model_dump(mode="json", by_alias=True)
                for transfer in self.settlement.transfers
            ],
            "month": self.month,
            "average": float(round_cents(self.settlement.average)),
            "balances": {
                name: float(amount)
                for name, amount in self.settlement.balances.items()
            },
        }


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'too_long', 'unknown_person')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (types, required fields, lengths)
    Stage 2: Semantic validation (roster membership, date sanity)
    """

    validated_at: datetime = Field(default_factory=utcnow)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    # Parsed payload, present only when the schema stage passed
    expense: Optional[ExpenseCreate] = None

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    def to_error_list(self) -> list[dict]:
        """Error-level issues in the shape returned with HTTP 400."""
        return [
            {"field": i.field, "type": i.issue_type, "message": i.message}
            for i in self.issues
            if i.severity == "error"
        ]

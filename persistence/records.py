from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

PaycheckStatus = Literal["Generated", "Paid"]

# Keep integers as integers on the way back to disk.
Number = int | float


class ConsoleRecord(BaseModel):
    """
    Typed view over a stored document.

    The store itself never validates fields; unknown keys are kept
    (`extra="allow"`) so a record read from an imported snapshot writes back
    unchanged.
    """

    model_config = ConfigDict(extra="allow")

    id: str | int

    def to_document(self) -> dict[str, Any]:
        """
        Dump back to a stored document under the stored field names.

        Fields that were read or assigned keep their value, explicit nulls
        included. Unset fields are written only when their default is not None.
        """
        full = self.model_dump(mode="json", by_alias=True)
        explicit = self.model_dump(mode="json", by_alias=True, exclude_unset=True)
        return {k: explicit.get(k, v) for k, v in full.items() if k in explicit or v is not None}


class _Section(BaseModel):
    model_config = ConfigDict(extra="allow")


class UserAccount(ConsoleRecord):
    name: str | None = None
    role: str | None = None
    username: str | None = None
    password: str | None = None
    title: str | None = None
    position: str | None = None
    email: str | None = None
    phone: str | None = None
    salary: Number | None = None
    department: str | None = None
    jobDescription: str | None = None
    joinDate: str | None = None
    status: str | None = None


class ProblemStatement(_Section):
    description: str = ""
    rootCauseAndConsequences: str = ""
    risk: str = ""


class SmartGoal(_Section):
    specific: str = ""
    measurable: str = ""
    attainable: str = ""
    relevance: str = ""
    timeBound: str = ""


class TaskProgress(_Section):
    status: str = "Pending"
    isStarted: bool = False
    keyResult: str = ""
    reflection: str = ""
    challenges: str = ""
    report: str | None = None


class TaskComment(_Section):
    user: str = ""
    text: str = ""
    date: str = ""


class Task(ConsoleRecord):
    sn: int | None = None
    role: str | None = None
    tasksForToday: str | None = None
    problem: ProblemStatement | None = None
    responsibleParty: str | None = None
    smart: SmartGoal | None = None
    skrc: TaskProgress | None = None
    comments: list[TaskComment] = Field(default_factory=list)
    lineRemarks: str | None = None
    deadline: str | None = None
    priority: int | None = None
    addedBy: str | None = None


class TaskTemplate(ConsoleRecord):
    name: str | None = None
    role: str | None = None
    problem: ProblemStatement | None = None
    smart: SmartGoal | None = None


class Expense(ConsoleRecord):
    invoiceDate: str | None = None
    accountName: str | None = None
    problem: str | None = None
    purpose: str | None = None
    quantity: Number | None = None
    amount: Number | None = None
    status: str | None = None


class Paycheck(ConsoleRecord):
    staffName: str | None = None
    baseSalary: Number | None = None
    allowances: Number | None = None
    deductions: Number | None = None
    netPay: Number | None = None
    status: str | None = None
    date: str | None = None


class InventoryItem(ConsoleRecord):
    product: str | None = None
    quantity: Number | None = None
    # "in" is a keyword; the stored field name is kept via the alias.
    in_: Number | None = Field(default=None, alias="in")
    out: Number | None = None
    balance: Number | None = None
    reorderLevel: Number | None = None
    responsibleParty: str | None = None
    date: str | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class OnboardingRecord(ConsoleRecord):
    staffName: str | None = None
    position: str | None = None
    status: str | None = None
    docs: dict[str, bool] = Field(default_factory=dict)
    notes: str | None = None
    lastUpdated: str | None = None


class AttendanceRecord(ConsoleRecord):
    userId: str | None = None
    userName: str | None = None
    date: str | None = None
    clockIn: str | None = None
    clockOut: str | None = None
    status: str | None = None


class Complaint(ConsoleRecord):
    # "from" is a keyword; the stored field name is kept via the alias.
    from_: str | None = Field(default=None, alias="from")
    text: str | None = None
    date: str | None = None
    status: str | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class MeetingMinutes(ConsoleRecord):
    date: str | None = None
    time: str | None = None
    attendance: list[str] = Field(default_factory=list)
    agenda: str | None = None
    actionNotes: str | None = None
    deadlines: str | None = None
    responsibleParty: str | None = None


class ChatMessage(ConsoleRecord):
    senderId: str | None = None
    senderName: str | None = None
    senderRole: str | None = None
    receiverId: str | None = None
    channelId: str | None = None
    text: str | None = None
    timestamp: str | None = None
    isRead: bool = False
    mentions: list[str] | None = None


class PasswordChangeRequest(ConsoleRecord):
    userId: str | None = None
    userName: str | None = None
    newPassword: str | None = None
    status: str = "Pending"
    requestDate: str | None = None

from datetime import date, datetime
from typing import Optional, Any, Dict, Literal, List
from pydantic import BaseModel, EmailStr, ConfigDict, Field, field_validator
from uuid import UUID


Priority = Literal["low", "medium", "high", "urgent"]


class UserOut(BaseModel):
    id: UUID
    username: str
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    is_admin: bool = False
    model_config = ConfigDict(from_attributes=True)


class BackupDiskCreate(BaseModel):
    name: str
    sequence: int = Field(ge=1)
    description: Optional[str] = None
    color: Optional[str] = None
    is_active: bool = True


class BackupDiskUpdate(BaseModel):
    name: Optional[str] = None
    sequence: Optional[int] = Field(default=None, ge=1)
    description: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None


class BackupDiskOut(BaseModel):
    id: UUID
    name: str
    sequence: int
    description: Optional[str] = None
    color: Optional[str] = None
    is_active: bool
    model_config = ConfigDict(from_attributes=True)


class BackupStatusCreate(BaseModel):
    code: str
    label: str
    description: Optional[str] = None
    color: Optional[str] = None
    sort_order: int = 0
    is_final: bool = False
    is_active: bool = True


class BackupStatusUpdate(BaseModel):
    code: Optional[str] = None
    label: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    sort_order: Optional[int] = None
    is_final: Optional[bool] = None
    is_active: Optional[bool] = None


class BackupStatusOut(BaseModel):
    id: UUID
    code: str
    label: str
    description: Optional[str] = None
    color: Optional[str] = None
    sort_order: int
    is_final: bool
    is_active: bool
    model_config = ConfigDict(from_attributes=True)


class BackupFileTypeCreate(BaseModel):
    code: str
    name: str
    description: Optional[str] = None
    sequence: int = 0
    icon: Optional[str] = None
    is_active: bool = True


class BackupFileTypeUpdate(BaseModel):
    code: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    sequence: Optional[int] = None
    icon: Optional[str] = None
    is_active: Optional[bool] = None


class BackupFileTypeOut(BaseModel):
    id: UUID
    code: str
    name: str
    description: Optional[str] = None
    sequence: int
    icon: Optional[str] = None
    is_active: bool
    model_config = ConfigDict(from_attributes=True)


class NotificationSettingUpdate(BaseModel):
    title: Optional[str] = None
    message: Optional[str] = None
    priority: Optional[Priority] = None
    is_enabled: Optional[bool] = None
    send_hour: Optional[int] = Field(default=None, ge=0, le=23)
    send_minute: Optional[int] = Field(default=None, ge=0, le=59)
    days_of_week: Optional[str] = None

    @field_validator("days_of_week")
    @classmethod
    def _validate_days(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value.strip() == "":
            return value
        days = [part.strip() for part in value.split(",")]
        if not all(day.isdigit() and 0 <= int(day) <= 6 for day in days):
            raise ValueError("days_of_week must be a comma separated list of 0-6")
        return ",".join(days)


class NotificationSettingOut(BaseModel):
    id: UUID
    code: str
    title: str
    message: str
    priority: str
    is_enabled: bool
    send_hour: Optional[int] = None
    send_minute: Optional[int] = None
    days_of_week: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class BackupConfigurationOut(BaseModel):
    disks: List[BackupDiskOut]
    statuses: List[BackupStatusOut]
    file_types: List[BackupFileTypeOut]
    notifications: List[NotificationSettingOut]


class FileStatusUpdate(BaseModel):
    file_type_id: UUID
    status_id: UUID


class DailyBackupUpdate(BaseModel):
    # writes always target the server's today; a client supplied date is ignored
    requested_date: Optional[date] = Field(default=None, alias="date")
    notes: Optional[str] = None
    disk_id: Optional[UUID] = None
    disk_number: Optional[int] = Field(default=None, ge=1)
    file_statuses: List[FileStatusUpdate] = Field(default_factory=list)
    model_config = ConfigDict(populate_by_name=True)


class DailyBackupFileOut(BaseModel):
    file_type_id: UUID
    file_type_code: str
    file_type_name: str
    status_id: UUID
    status_code: str
    status_label: str
    is_final: bool


class DailyBackupOut(BaseModel):
    id: UUID
    date: date
    disk: BackupDiskOut
    notes: Optional[str] = None
    completed: bool
    completed_at: Optional[datetime] = None
    completed_by: Optional[UUID] = None
    completed_by_name: Optional[str] = None
    total_files: int
    completed_files: int
    files: List[DailyBackupFileOut]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DailyBackupHistoryOut(BaseModel):
    items: List[DailyBackupOut]
    total: int
    page: int
    limit: int
    pages: int


class BackupPeriodStats(BaseModel):
    total: int
    completed: int
    pending: int


class DailyBackupStatsOut(BackupPeriodStats):
    this_month: BackupPeriodStats
    last_month: BackupPeriodStats


class CalendarEntryOut(BaseModel):
    id: UUID
    date: date
    # local midnight of the entry date, as a UTC instant
    start_time: datetime
    title: str
    description: str
    all_day: bool = True
    color: str
    priority: Literal["normal", "high"]
    tags: List[str] = Field(default_factory=lambda: ["backup", "system"])
    readonly: bool
    is_today: bool
    is_past: bool
    completed: bool
    disk_id: UUID
    disk_name: str
    disk_sequence: int
    total_files: int
    completed_files: int
    files: List[DailyBackupFileOut]
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class NotificationOut(BaseModel):
    id: UUID
    user_id: UUID
    message: str
    title: Optional[str] = None
    category: Optional[str] = None
    context: Optional[str] = None
    priority: str = "medium"
    is_read: bool
    meta: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class NotificationPreferenceUpdate(BaseModel):
    enabled: bool


class NotificationPreferenceOut(BaseModel):
    id: UUID
    user_id: UUID
    pref_type: str
    channel: str
    enabled: bool
    model_config = ConfigDict(from_attributes=True)

# SQLModel definitions - imported here to ensure metadata is populated for create_all.
from .base import IntIdMixin, TimestampMixin  # noqa: F401
from .organization import Organization  # noqa: F401
from .user import User  # noqa: F401
from .user_org import UserOrganization  # noqa: F401
from .org_request import OrgRequest  # noqa: F401
from .pause_rule import PauseRule  # noqa: F401
from .work_schedule_period import WorkSchedulePeriod  # noqa: F401
from .time_entry import TimeEntry  # noqa: F401
from .holiday import Holiday  # noqa: F401
from .absence_day import AbsenceDay  # noqa: F401

from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .advertisement import Advertisement
from .home_banner_slot import HomeBannerSlot
from .slot_notification import SlotNotification
from .job_lock import JobLock

from nerdiversary.schema.family_members import FamilyMember
from nerdiversary.schema.notification_claims import NotificationClaim
from nerdiversary.schema.notification_log import NotificationLog
from nerdiversary.schema.scan_state import ScanState
from nerdiversary.schema.subscriptions import Subscription

__all__ = ["FamilyMember", "NotificationClaim", "NotificationLog", "ScanState", "Subscription"]

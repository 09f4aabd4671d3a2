from app.models.audit import AuditEntry
from app.business.membership.models import Member, MemberService, MembershipHold

__all__ = [
	"AuditEntry",
	"Member",
	"MemberService",
	"MembershipHold",
]

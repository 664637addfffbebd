from mwss.core.models.admin import Admin
from mwss.core.models.member import Member
from mwss.core.models.member_card import MemberCard
from mwss.core.models.payment_transaction import PaymentTransaction
from mwss.core.models.student import Student
from mwss.core.models.volunteer_account import VolunteerAccount

__all__ = [
    "Admin",
    "Member",
    "MemberCard",
    "PaymentTransaction",
    "Student",
    "VolunteerAccount",
]
